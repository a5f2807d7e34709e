"""
Value context helpers for rendering a schema as a form.

Seeds default values, applies computed expressions and answers which
fields are visible for a given set of values.
"""

import copy
import logging
from typing import Dict, Any, List, Set

from .expression_evaluator import NO_OVERRIDE, evaluate_computed, evaluate_visibility
from .field_tree import is_section

logger = logging.getLogger(__name__)


def _fields_of(schema: Dict[str, Any]) -> List[Dict[str, Any]]:
    return schema.get('fields') or []


def is_field_visible(field: Dict[str, Any], values: Dict[str, Any]) -> bool:
    """Evaluate the field's visibility expression (no expression means visible)."""
    return evaluate_visibility(field.get('visibleWhen'), values)


def has_computed(field: Dict[str, Any]) -> bool:
    expression = field.get('computed')
    return isinstance(expression, str) and bool(expression.strip())


def seed_defaults(schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Initial value context from each field's defaultValue.

    Section children are included; array templates are not, since their
    defaults belong to individual items.
    """
    values: Dict[str, Any] = {}

    def seed(fields: List[Dict[str, Any]]) -> None:
        for field in fields:
            if field.get('defaultValue') is not None:
                values[field['key']] = copy.deepcopy(field['defaultValue'])
            if is_section(field):
                seed(field.get('children') or [])

    seed(_fields_of(schema))
    return values


def apply_computed(schema: Dict[str, Any], values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply computed expressions in tree order.

    Each expression sees the values produced by the computed fields before
    it. A failing expression leaves that field's value as it was.

    Args:
        schema: Schema document
        values: Current value context (not modified)

    Returns:
        New value context with computed values applied
    """
    result = dict(values)

    def apply(fields: List[Dict[str, Any]]) -> None:
        for field in fields:
            if has_computed(field):
                computed = evaluate_computed(field['computed'], result)
                if computed is not NO_OVERRIDE:
                    result[field['key']] = computed
            if is_section(field):
                apply(field.get('children') or [])

    apply(_fields_of(schema))
    return result


def visible_keys(schema: Dict[str, Any], values: Dict[str, Any]) -> Set[str]:
    """Keys of the visible fields; a hidden section hides all of its descendants."""
    keys: Set[str] = set()

    def walk(fields: List[Dict[str, Any]]) -> None:
        for field in fields:
            if not is_field_visible(field, values):
                continue
            keys.add(field['key'])
            if is_section(field):
                walk(field.get('children') or [])

    walk(_fields_of(schema))
    return keys


def resolve_values(schema: Dict[str, Any], values: Dict[str, Any]) -> Dict[str, Any]:
    """Defaults overlaid with the given values, then computed fields applied."""
    merged = seed_defaults(schema)
    merged.update(values or {})
    return apply_computed(schema, merged)


def item_context(template: Dict[str, Any], item: Any, values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Value context for one array item.

    A section template's item is a mapping of child key to value that is
    layered over the form values; any other template's item is the value of
    the template field itself.
    """
    context = dict(values)
    if is_section(template):
        if isinstance(item, dict):
            context.update(item)
    else:
        context[template.get('key')] = item
    return context
