"""
Diff utilities for the schema designer.
Compares schema values with DeepDiff to detect no-op edits and to summarize
what an edit (or an undo step) changes, field by field.
"""

import logging
import re
from typing import Dict, Any, List, Optional, Tuple

from deepdiff import DeepDiff

logger = logging.getLogger(__name__)

_OWNED_KEYS = ('children', 'of')
_ROOT_KEY_PATTERN = re.compile(r"^root\[['\"]([^'\"]+)['\"]\]")


def calculate_diff(original: Any, modified: Any) -> Dict[str, Any]:
    """
    Calculate differences between two values.

    Args:
        original: Original value (schema, field or plain data)
        modified: Modified value

    Returns:
        DeepDiff result as a plain dictionary (empty if equal)
    """
    try:
        return DeepDiff(original, modified, verbose_level=2).to_dict()
    except Exception as e:
        logger.error(f"Failed to calculate diff: {e}")
        raise


def has_changes(original: Any, modified: Any) -> bool:
    """True if the two values differ in any way, including order."""
    return bool(DeepDiff(original, modified))


def get_change_summary(diff: Dict[str, Any]) -> Dict[str, int]:
    """
    Count changes by category.

    Args:
        diff: Result of calculate_diff

    Returns:
        Dictionary with counts of modified, added, removed and type-changed items
    """
    summary = {'modified': 0, 'added': 0, 'removed': 0, 'type_changed': 0}
    for section, items in diff.items():
        count = len(items) if hasattr(items, '__len__') else 1
        if section == 'values_changed':
            summary['modified'] += count
        elif section in ('dictionary_item_added', 'iterable_item_added'):
            summary['added'] += count
        elif section in ('dictionary_item_removed', 'iterable_item_removed'):
            summary['removed'] += count
        elif section == 'type_changes':
            summary['type_changed'] += count
    return summary


def changed_attributes(original: Dict[str, Any], modified: Dict[str, Any]) -> List[str]:
    """
    Names of the top-level attributes that differ between two field dictionaries.

    Owned substructure (children, template) is ignored.
    """
    before = {k: v for k, v in original.items() if k not in _OWNED_KEYS}
    after = {k: v for k, v in modified.items() if k not in _OWNED_KEYS}

    attributes: List[str] = []
    for items in calculate_diff(before, after).values():
        for path in items:
            match = _ROOT_KEY_PATTERN.match(str(path))
            if match and match.group(1) not in attributes:
                attributes.append(match.group(1))
    return sorted(attributes)


def _index_fields(fields: List[Dict[str, Any]], parent_id: Optional[str] = None,
                  index: Optional[Dict[str, Tuple[Dict[str, Any], Optional[str], int]]] = None
                  ) -> Dict[str, Tuple[Dict[str, Any], Optional[str], int]]:
    if index is None:
        index = {}
    for position, field in enumerate(fields):
        index[field.get('id')] = (field, parent_id, position)
        if field.get('type') == 'section':
            _index_fields(field.get('children') or [], field.get('id'), index)
        if field.get('type') == 'array' and isinstance(field.get('of'), dict):
            _index_fields([field['of']], field.get('id'), index)
    return index


def _sibling_ranks(index: Dict[str, Tuple[Dict[str, Any], Optional[str], int]],
                   ids: set) -> Dict[str, int]:
    groups: Dict[Optional[str], List[Tuple[int, str]]] = {}
    for field_id in ids:
        _, parent_id, position = index[field_id]
        groups.setdefault(parent_id, []).append((position, field_id))
    ranks: Dict[str, int] = {}
    for members in groups.values():
        for rank, (_, field_id) in enumerate(sorted(members)):
            ranks[field_id] = rank
    return ranks


def describe_changes(old_schema: Dict[str, Any], new_schema: Dict[str, Any]) -> List[str]:
    """
    Describe field-level changes between two schemas.

    Fields are matched by id, so renames and key changes show up as changes,
    not as a removal plus an addition.

    Returns:
        Human readable change lines in a stable order
    """
    old_index = _index_fields(old_schema.get('fields', []))
    new_index = _index_fields(new_schema.get('fields', []))

    lines: List[str] = []

    for field_id, (field, _, _) in new_index.items():
        if field_id not in old_index:
            lines.append(f"Added {field.get('type')} field '{field.get('key')}'")

    for field_id, (field, _, _) in old_index.items():
        if field_id not in new_index:
            lines.append(f"Removed {field.get('type')} field '{field.get('key')}'")

    common = set(old_index) & set(new_index)
    old_ranks = _sibling_ranks(old_index, common)
    new_ranks = _sibling_ranks(new_index, common)

    for field_id, (new_field, new_parent, new_position) in new_index.items():
        if field_id not in common:
            continue
        old_field, old_parent, old_position = old_index[field_id]
        attributes = changed_attributes(old_field, new_field)
        if attributes:
            lines.append(f"Changed '{new_field.get('key')}': {', '.join(attributes)}")
        # Shifts caused only by added/removed siblings are not moves
        if old_parent != new_parent or old_ranks[field_id] != new_ranks[field_id]:
            lines.append(f"Moved '{new_field.get('key')}' from position {old_position} to {new_position}")

    if old_schema.get('version') != new_schema.get('version'):
        lines.append(f"Version changed from {old_schema.get('version')} to {new_schema.get('version')}")

    return lines
