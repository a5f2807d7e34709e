"""
Field factory for the schema designer.
Creates field definitions with fresh identities and type-appropriate defaults.
"""

import copy
import logging
import random
import string
import uuid
from typing import Dict, Any, List, Iterable, Set, Tuple

logger = logging.getLogger(__name__)

# Supported field types
FIELD_TYPES = (
    'text', 'number', 'date', 'checkbox', 'select',
    'multiselect', 'radio', 'section', 'array'
)

CHOICE_TYPES = {'select', 'multiselect', 'radio'}

# Palette entries offered by editing surfaces, in display order
PALETTE: List[Tuple[str, str]] = [
    ('text', 'Text'),
    ('number', 'Number'),
    ('date', 'Date'),
    ('checkbox', 'Checkbox'),
    ('select', 'Select'),
    ('multiselect', 'Multi-select'),
    ('radio', 'Radio group'),
    ('section', 'Section'),
    ('array', 'Array'),
]

_KEY_ALPHABET = string.ascii_lowercase + string.digits
_KEY_SUFFIX_LENGTH = 4
_MAX_KEY_ATTEMPTS = 1000


def new_field_id() -> str:
    """Return a fresh, globally unique field id."""
    return str(uuid.uuid4())


def new_field_key(prefix: str, existing_keys: Iterable[str] = ()) -> str:
    """
    Generate a field key of the form ``<prefix>_<suffix>``.

    Args:
        prefix: Key prefix, usually the field type
        existing_keys: Keys already in use; the generated key avoids them

    Returns:
        A key not present in existing_keys
    """
    taken = set(existing_keys)
    suffix_length = _KEY_SUFFIX_LENGTH
    for attempt in range(_MAX_KEY_ATTEMPTS):
        # Widen the suffix if the short space keeps colliding
        if attempt and attempt % 100 == 0:
            suffix_length += 1
        suffix = ''.join(random.choice(_KEY_ALPHABET) for _ in range(suffix_length))
        key = f"{prefix}_{suffix}"
        if key not in taken:
            return key
    raise RuntimeError(f"Could not generate a unique key for prefix '{prefix}'")


def sample_options() -> List[Dict[str, str]]:
    """Default options for choice fields."""
    return [
        {'value': 'one', 'label': 'One'},
        {'value': 'two', 'label': 'Two'},
        {'value': 'three', 'label': 'Three'},
    ]


def create_field(field_type: str, label: str, existing_keys: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Create a new field definition.

    Args:
        field_type: One of FIELD_TYPES
        label: Display label
        existing_keys: Keys already in use in the target schema

    Returns:
        Field dictionary in the canonical serialized shape

    Raises:
        ValueError: If field_type is not supported
    """
    if field_type not in FIELD_TYPES:
        raise ValueError(f"Unsupported field type '{field_type}'. Supported types: {FIELD_TYPES}")

    taken: Set[str] = set(existing_keys)
    key = new_field_key(field_type, taken)
    taken.add(key)

    field = {
        'id': new_field_id(),
        'key': key,
        'type': field_type,
        'label': label,
        'placeholder': '',
        'validation': {},
    }

    if field_type in CHOICE_TYPES:
        field['options'] = sample_options()
    elif field_type == 'section':
        field['children'] = []
    elif field_type == 'array':
        field['of'] = {
            'id': new_field_id(),
            'key': new_field_key('item', taken),
            'type': 'text',
            'label': 'Item',
            'placeholder': '',
            'validation': {},
        }

    logger.debug(f"Created {field_type} field {field['id']} with key {field['key']}")
    return field


def regenerate_identity(field: Dict[str, Any], existing_keys: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Deep copy a field, minting a fresh id and key for every node top-down.

    Args:
        field: Field to copy (left untouched)
        existing_keys: Keys in use in the destination schema

    Returns:
        Copy of the field whose ids and keys collide with nothing
    """
    taken: Set[str] = set(existing_keys)

    def refresh(node: Dict[str, Any]) -> Dict[str, Any]:
        node['id'] = new_field_id()
        prefix = node.get('type', 'field')
        node['key'] = new_field_key(prefix, taken)
        taken.add(node['key'])
        if isinstance(node.get('children'), list):
            node['children'] = [refresh(child) for child in node['children']]
        if isinstance(node.get('of'), dict):
            node['of'] = refresh(node['of'])
        return node

    return refresh(copy.deepcopy(field))


def retype_field(field: Dict[str, Any], new_type: str,
                 existing_keys: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Return a copy of field converted to new_type.

    Variant-specific structure is added or dropped so the result has the
    shape the new type requires (options, children or template).

    Args:
        field: Field to convert
        new_type: Target type
        existing_keys: Keys in use, so a new array template gets a free key

    Returns:
        Converted field copy

    Raises:
        ValueError: If new_type is not supported
    """
    if new_type not in FIELD_TYPES:
        raise ValueError(f"Unsupported field type '{new_type}'")

    converted = copy.deepcopy(field)
    converted['type'] = new_type

    if new_type in CHOICE_TYPES:
        if not isinstance(converted.get('options'), list):
            converted['options'] = sample_options()
    else:
        converted.pop('options', None)

    if new_type == 'section':
        if not isinstance(converted.get('children'), list):
            converted['children'] = []
    else:
        converted.pop('children', None)

    if new_type == 'array':
        if not isinstance(converted.get('of'), dict):
            template = create_field('text', 'Item')
            template['key'] = new_field_key('item', existing_keys)
            converted['of'] = template
    else:
        converted.pop('of', None)

    return converted


def field_type_label(field_type: str) -> str:
    """Palette label for a field type."""
    for palette_type, label in PALETTE:
        if palette_type == field_type:
            return label
    return field_type.title()
