"""
Field tree utilities for the schema document engine.

Pure traversal and rewrite helpers over an ordered list of field
dictionaries. Every function returns new lists/dicts and leaves its input
untouched; the Document Store builds all of its mutations from these.
"""

import copy
import logging
from typing import Dict, Any, List, Optional, Callable, Iterator, Set, Tuple

logger = logging.getLogger(__name__)

Field = Dict[str, Any]
FieldList = List[Field]


def is_section(field: Optional[Field]) -> bool:
    """True if field is a section container."""
    return isinstance(field, dict) and field.get('type') == 'section'


def _children(field: Field) -> FieldList:
    if is_section(field):
        return field.get('children') or []
    return []


def deep_clone(field: Field) -> Field:
    """Deep copy a field including its owned children and template."""
    return copy.deepcopy(field)


def find_by_id(tree: FieldList, field_id: str) -> Optional[Field]:
    """
    Find a field by id.

    Depth-first preorder, descending only into section children.

    Args:
        tree: Ordered list of fields
        field_id: Id to look for

    Returns:
        The matching field (not a copy) or None
    """
    for field in tree:
        if field.get('id') == field_id:
            return field
        hit = find_by_id(_children(field), field_id)
        if hit is not None:
            return hit
    return None


def find_parent(tree: FieldList, field_id: str) -> Tuple[Optional[Field], Optional[int]]:
    """
    Locate the container of a field.

    Returns:
        (parent_section, index) where parent_section is None for root fields;
        (None, None) if the id is not in the tree
    """
    for index, field in enumerate(tree):
        if field.get('id') == field_id:
            return None, index

    def visit(fields: FieldList) -> Tuple[Optional[Field], Optional[int]]:
        for field in fields:
            kids = _children(field)
            for index, child in enumerate(kids):
                if child.get('id') == field_id:
                    return field, index
            parent, index = visit(kids)
            if parent is not None:
                return parent, index
        return None, None

    return visit(tree)


def map_all(tree: FieldList, fn: Callable[[Field], Field]) -> FieldList:
    """
    Apply fn to every field, children before their parent.

    Args:
        tree: Ordered list of fields
        fn: Receives a copy of each field (with already-mapped children) and returns its replacement

    Returns:
        Structurally new tree
    """
    result = []
    for field in tree:
        node = dict(field)
        if is_section(node):
            node['children'] = map_all(node.get('children') or [], fn)
        result.append(fn(node))
    return result


def remove_by_id(tree: FieldList, field_id: str) -> FieldList:
    """
    Remove the field with field_id from wherever it lives.

    Siblings keep their relative order.
    """
    result = []
    for field in tree:
        if field.get('id') == field_id:
            continue
        if is_section(field):
            node = dict(field)
            node['children'] = remove_by_id(field.get('children') or [], field_id)
            result.append(node)
        else:
            result.append(field)
    return result


def insert_child(tree: FieldList, parent_id: str, field: Field) -> FieldList:
    """
    Append field to the children of the section with parent_id.

    Returns the tree unchanged (same contents) when no such section exists.
    """
    def insert(fields: FieldList) -> FieldList:
        result = []
        for node in fields:
            if is_section(node):
                node = dict(node)
                children = list(node.get('children') or [])
                if node.get('id') == parent_id:
                    children.append(field)
                    node['children'] = children
                else:
                    node['children'] = insert(children)
            result.append(node)
        return result

    if not is_section(find_by_id(tree, parent_id)):
        return list(tree)
    return insert(tree)


def replace_by_id(tree: FieldList, field_id: str, replacement: Field) -> FieldList:
    """Return a tree where the field with field_id is swapped for replacement."""
    def swap(node: Field) -> Field:
        return replacement if node.get('id') == field_id else node
    return map_all(tree, swap)


def replace_children(tree: FieldList, parent_id: str, children: FieldList) -> FieldList:
    """Return a tree where the section with parent_id owns the given children."""
    def swap(node: Field) -> Field:
        if node.get('id') == parent_id and is_section(node):
            node['children'] = children
        return node
    return map_all(tree, swap)


def reorder_within(siblings: List[Any], from_index: int, to_index: int) -> List[Any]:
    """
    Move the element at from_index to to_index.

    Raises:
        IndexError: If either index is outside the list
    """
    size = len(siblings)
    if not (0 <= from_index < size) or not (0 <= to_index < size):
        raise IndexError(f"Cannot move from {from_index} to {to_index} in a list of {size}")
    if from_index == to_index:
        return list(siblings)
    result = list(siblings)
    item = result.pop(from_index)
    result.insert(to_index, item)
    return result


def iter_fields(tree: FieldList, include_templates: bool = True) -> Iterator[Field]:
    """
    Preorder walk over every field in the tree.

    Args:
        tree: Ordered list of fields
        include_templates: Also descend into array templates
    """
    for field in tree:
        yield field
        yield from iter_fields(_children(field), include_templates)
        if include_templates and field.get('type') == 'array' and isinstance(field.get('of'), dict):
            yield from iter_fields([field['of']], include_templates)


def subtree_ids(field: Field) -> Set[str]:
    """Ids of field and everything it owns."""
    return {node.get('id') for node in iter_fields([field])}


def collect_ids(tree: FieldList) -> List[str]:
    """All ids in the tree in preorder (duplicates preserved)."""
    return [node.get('id') for node in iter_fields(tree)]


def collect_keys(tree: FieldList) -> List[str]:
    """All keys in the tree in preorder (duplicates preserved)."""
    return [node.get('key') for node in iter_fields(tree)]


def find_duplicates(values: List[Any]) -> List[Any]:
    """Values that occur more than once, in first-seen order."""
    seen: Set[Any] = set()
    duplicates: List[Any] = []
    for value in values:
        if value in seen and value not in duplicates:
            duplicates.append(value)
        seen.add(value)
    return duplicates
