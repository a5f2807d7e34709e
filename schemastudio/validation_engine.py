"""
Validation of form values against a schema.

Produces one message (or None) per visited field. Hidden fields and fields
with a computed value are never reported. Array items are validated
against the array's template and reported as ``key[i]`` or
``key[i].childKey``.
"""

import logging
import re
from datetime import date, datetime
from typing import Dict, Any, List, Optional

from .expression_evaluator import is_finite, is_number, to_number, to_text
from .field_tree import is_section
from .form_state import has_computed, is_field_visible, item_context

logger = logging.getLogger(__name__)

REQUIRED_MESSAGE = "This field is required."

TEXT_LIKE_TYPES = {'text', 'date', 'select', 'radio'}


def is_empty_value(value: Any) -> bool:
    """None, blank text, an empty list or a non-finite number."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    if is_number(value):
        return not is_finite(value)
    return False


def _rule(field: Dict[str, Any], name: str) -> Optional[float]:
    value = (field.get('validation') or {}).get(name)
    return value if is_number(value) else None


def _check_number(field: Dict[str, Any], value: Any) -> Optional[str]:
    number = to_number(value)
    if number is None or not is_finite(number):
        return "Enter a valid number."
    low, high = _rule(field, 'min'), _rule(field, 'max')
    if low is not None and number < low:
        return f"Must be ≥ {to_text(low)}."
    if high is not None and number > high:
        return f"Must be ≤ {to_text(high)}."
    return None


def _check_count(field: Dict[str, Any], value: Any, too_few: str, too_many: str) -> Optional[str]:
    if not isinstance(value, (list, tuple)):
        return None
    low, high = _rule(field, 'min'), _rule(field, 'max')
    if low is not None and len(value) < low:
        return too_few.format(to_text(low))
    if high is not None and len(value) > high:
        return too_many.format(to_text(high))
    return None


def _check_date(value: Any) -> Optional[str]:
    if isinstance(value, date):
        return None
    if not isinstance(value, str):
        return "Enter a valid date."
    try:
        date.fromisoformat(value.strip())
    except ValueError:
        try:
            datetime.fromisoformat(value.strip())
        except ValueError:
            return "Enter a valid date."
    return None


def _check_text(field: Dict[str, Any], value: Any) -> Optional[str]:
    text = value.isoformat() if isinstance(value, date) else to_text(value)

    pattern = (field.get('validation') or {}).get('regex')
    if isinstance(pattern, str) and pattern:
        try:
            if re.search(pattern, text) is None:
                return "Value does not match pattern."
        except re.error as e:
            logger.warning(f"Ignoring invalid regex on field '{field.get('key')}': {e}")

    low, high = _rule(field, 'min'), _rule(field, 'max')
    if low is not None and len(text) < low:
        return f"Must be at least {to_text(low)} characters."
    if high is not None and len(text) > high:
        return f"Must be at most {to_text(high)} characters."
    return None


def validate_field(field: Dict[str, Any], values: Dict[str, Any]) -> Optional[str]:
    """
    Validate the value of a single field.

    Args:
        field: Field definition
        values: Value context the field's key and expressions are read from

    Returns:
        Error message, or None if the field is valid, hidden or computed
    """
    if not is_field_visible(field, values):
        return None
    if has_computed(field):
        return None

    field_type = field.get('type')
    if field_type == 'section':
        return None

    value = values.get(field.get('key'))

    if is_empty_value(value):
        return REQUIRED_MESSAGE if field.get('required') else None

    if field_type == 'number':
        return _check_number(field, value)
    if field_type == 'multiselect':
        return _check_count(field, value, "Select at least {}.", "Select at most {}.")
    if field_type == 'array':
        return _check_count(field, value, "Add at least {} items.", "Add at most {} items.")
    if field_type == 'date':
        return _check_date(value) or _check_text(field, value)
    if field_type in TEXT_LIKE_TYPES:
        return _check_text(field, value)
    return None


def _visit(field: Dict[str, Any], values: Dict[str, Any], errors: Dict[str, Optional[str]],
           name: str, child_prefix: str) -> None:
    if not is_field_visible(field, values):
        errors[name] = None
        return

    errors[name] = validate_field(field, values)

    if is_section(field):
        for child in field.get('children') or []:
            _visit(child, values, errors, f"{child_prefix}{child.get('key')}", child_prefix)
        return

    template = field.get('of')
    items = values.get(field.get('key'))
    if field.get('type') == 'array' and isinstance(template, dict) and not has_computed(field) \
            and isinstance(items, (list, tuple)):
        for index, item in enumerate(items):
            item_name = f"{name}[{index}]"
            _visit(template, item_context(template, item, values), errors, item_name, f"{item_name}.")


def validate_values(schema: Dict[str, Any], values: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """
    Validate a value context against a schema.

    Returns:
        Mapping of every visited field name to its error message or None
    """
    errors: Dict[str, Optional[str]] = {}
    values = values or {}
    for field in schema.get('fields') or []:
        _visit(field, values, errors, field.get('key'), "")
    return errors


def collect_errors(schema: Dict[str, Any], values: Dict[str, Any]) -> Dict[str, str]:
    """Only the failing entries of validate_values."""
    return {name: message for name, message in validate_values(schema, values).items() if message}


def has_errors(errors: Dict[str, Optional[str]]) -> bool:
    return any(errors.values())


def error_lines(errors: Dict[str, Optional[str]]) -> List[str]:
    """Format failing entries as 'name: message' lines, in field order."""
    return [f"{name}: {message}" for name, message in errors.items() if message]
