"""
Clipboard for copying and pasting field subtrees.
"""

import logging
from typing import Dict, Any, Iterable, Optional

from .field_factory import regenerate_identity
from .field_tree import deep_clone

logger = logging.getLogger(__name__)


class Clipboard:
    """Holds at most one copied field with its owned substructure."""

    def __init__(self):
        self._content: Optional[Dict[str, Any]] = None

    @property
    def is_empty(self) -> bool:
        return self._content is None

    def copy(self, field: Dict[str, Any]) -> None:
        """Store a deep clone of field, keeping its original ids."""
        self._content = deep_clone(field)
        logger.debug(f"Copied field {field.get('id')} to clipboard")

    def peek(self) -> Optional[Dict[str, Any]]:
        """Deep clone of the clipboard contents as copied, or None."""
        if self._content is None:
            return None
        return deep_clone(self._content)

    def paste_clone(self, existing_keys: Iterable[str] = ()) -> Optional[Dict[str, Any]]:
        """
        Produce a pasteable copy of the clipboard contents.

        Every node of the copy gets a fresh id and a fresh key, so pasting the
        same contents any number of times never collides with the tree.

        Args:
            existing_keys: Keys already used in the destination schema

        Returns:
            New field subtree, or None if the clipboard is empty
        """
        if self._content is None:
            return None
        return regenerate_identity(self._content, existing_keys)

    def clear(self) -> None:
        self._content = None
