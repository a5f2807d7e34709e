"""
Keyboard shortcut binding for undo/redo.

A ShortcutBinding connects key combos to Document Store operations for the
lifetime of one editing surface. Attaching is idempotent, so a surface that
is rebuilt (re-run, remounted) never ends up with duplicate handlers.
"""

import logging
from contextlib import contextmanager
from typing import Dict, Any, Callable, Iterator, List, Optional, Union

from .schema_exceptions import OperationResult

logger = logging.getLogger(__name__)

MODIFIER_ORDER = ('ctrl', 'alt', 'shift', 'meta')

MODIFIER_ALIASES = {
    'control': 'ctrl',
    'cmd': 'meta',
    'command': 'meta',
    'super': 'meta',
    'option': 'alt',
}

DEFAULT_BINDINGS = {
    'ctrl+z': 'undo',
    'meta+z': 'undo',
    'ctrl+shift+z': 'redo',
    'meta+shift+z': 'redo',
    'ctrl+y': 'redo',
}

KeyEvent = Union[str, Dict[str, Any]]
KeyListener = Callable[[KeyEvent], Any]


def normalize_combo(combo: str) -> str:
    """
    Canonical form of a key combo: lower case, modifiers in a fixed order.

    Example: "Shift+Ctrl+Z" -> "ctrl+shift+z"

    Raises:
        ValueError: If the combo does not name exactly one non-modifier key
    """
    parts = [part.strip().lower() for part in combo.split('+') if part.strip()]
    modifiers = set()
    keys = []
    for part in parts:
        part = MODIFIER_ALIASES.get(part, part)
        if part in MODIFIER_ORDER:
            modifiers.add(part)
        else:
            keys.append(part)
    if len(keys) != 1:
        raise ValueError(f"Key combo must name exactly one key: {combo!r}")
    return '+'.join([m for m in MODIFIER_ORDER if m in modifiers] + keys)


def combo_from_event(event: KeyEvent) -> Optional[str]:
    """
    Key combo of an event.

    Accepts a combo string or a browser-style mapping with 'key' and the
    ctrlKey/altKey/shiftKey/metaKey flags.
    """
    if isinstance(event, str):
        try:
            return normalize_combo(event)
        except ValueError:
            return None
    if not isinstance(event, dict) or not event.get('key'):
        return None
    parts = [name for name in MODIFIER_ORDER if event.get(f"{name}Key")]
    parts.append(str(event['key']))
    try:
        return normalize_combo('+'.join(parts))
    except ValueError:
        return None


class KeyEventSource:
    """Minimal event source: listeners registered here receive dispatched key events."""

    def __init__(self):
        self._listeners: List[KeyListener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: KeyListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: KeyListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def dispatch(self, event: KeyEvent) -> List[Any]:
        return [listener(event) for listener in list(self._listeners)]


class ShortcutBinding:
    """Binds key combos to store operations while attached to an event source."""

    def __init__(self, store, bindings: Optional[Dict[str, str]] = None):
        """
        Args:
            store: DocumentStore (anything with the bound operation methods)
            bindings: Mapping of key combo to store method name
        """
        self.store = store
        self.bindings = {
            normalize_combo(combo): action
            for combo, action in (bindings if bindings is not None else DEFAULT_BINDINGS).items()
        }
        self._source = None

    @property
    def is_attached(self) -> bool:
        return self._source is not None

    def handle(self, event: KeyEvent) -> Optional[OperationResult]:
        """Run the operation bound to the event's combo, if any."""
        combo = combo_from_event(event)
        action = self.bindings.get(combo) if combo else None
        if action is None:
            return None
        logger.debug(f"Shortcut {combo} -> {action}")
        return getattr(self.store, action)()

    def attach(self, source) -> None:
        """Start listening on source; attaching to the same source again does nothing."""
        if self._source is source:
            return
        if self._source is not None:
            self.detach()
        source.add_listener(self.handle)
        self._source = source

    def detach(self) -> None:
        """Stop listening; safe to call when not attached."""
        if self._source is None:
            return
        self._source.remove_listener(self.handle)
        self._source = None

    @contextmanager
    def attached(self, source) -> Iterator["ShortcutBinding"]:
        self.attach(source)
        try:
            yield self
        finally:
            self.detach()
