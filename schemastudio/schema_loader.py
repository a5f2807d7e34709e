"""
Schema loader for the schema designer.
Handles parsing, validation and canonical serialization of schema documents,
plus loading and saving them as YAML/JSON files.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple, Union

import yaml

from .field_tree import collect_ids, collect_keys, find_duplicates, iter_fields
from .schema_exceptions import SchemaImportError
from .schema_model import SCHEMA_VERSION, check_schema_shape

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {'.json', '.yaml', '.yml'}


class PlainYamlLoader(yaml.SafeLoader):
    """SafeLoader that leaves dates and timestamps as strings."""


PlainYamlLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != 'tag:yaml.org,2002:timestamp']
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def load_yaml_text(text: str) -> Any:
    """Parse YAML into JSON-compatible values; ``2024-01-01`` stays a string."""
    return yaml.load(text, Loader=PlainYamlLoader)


def empty_schema() -> Dict[str, Any]:
    """Return a new, empty schema."""
    return {'version': SCHEMA_VERSION, 'fields': []}


def parse_schema_text(text: str) -> Any:
    """
    Parse schema text as JSON, falling back to YAML.

    Args:
        text: Document text

    Returns:
        Parsed document (not yet validated)

    Raises:
        SchemaImportError: If the text is neither valid JSON nor valid YAML
    """
    # ValueError also covers integer literals past the int digit limit
    try:
        return json.loads(text)
    except ValueError as json_error:
        logger.debug(f"Schema text is not JSON ({json_error}), trying YAML")

    try:
        return load_yaml_text(text)
    except (yaml.YAMLError, ValueError) as e:
        raise SchemaImportError([f"Document is neither valid JSON nor valid YAML: {e}"])


def validate_schema(schema: Any) -> Tuple[bool, List[str]]:
    """
    Validate schema structure, field definitions and identity invariants.

    Args:
        schema: Parsed schema document

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors = check_schema_shape(schema)
    if errors:
        return False, errors

    fields = schema['fields']

    for field_id in find_duplicates(collect_ids(fields)):
        errors.append(f"Duplicate field id '{field_id}'")

    for key in find_duplicates(collect_keys(fields)):
        errors.append(f"Duplicate field key '{key}'")

    for field in iter_fields(fields):
        error = _check_range(field)
        if error:
            errors.append(error)

    if errors:
        logger.warning(f"Schema validation failed with {len(errors)} error(s)")
    return not errors, errors


def _check_range(field: Dict[str, Any]) -> Optional[str]:
    validation = field.get('validation') or {}
    min_value = validation.get('min')
    max_value = validation.get('max')
    if (isinstance(min_value, (int, float)) and isinstance(max_value, (int, float))
            and min_value > max_value):
        return f"Field '{field.get('key')}' has min {min_value} greater than max {max_value}"
    return None


def load_schema_document(source: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Parse and validate a schema from text or an already parsed mapping.

    Args:
        source: JSON/YAML text or a schema dictionary

    Returns:
        A deep copy of the validated schema

    Raises:
        SchemaImportError: If the document is malformed
    """
    document = parse_schema_text(source) if isinstance(source, str) else source

    is_valid, errors = validate_schema(document)
    if not is_valid:
        raise SchemaImportError(errors)

    return copy.deepcopy(document)


def export_schema_text(schema: Dict[str, Any]) -> str:
    """
    Serialize a schema canonically.

    Keys are sorted and the output is indented, so equal schemas always
    produce identical text.
    """
    return json.dumps(schema, indent=2, sort_keys=True, ensure_ascii=False)


def load_schema_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load and validate a schema from a YAML or JSON file.

    Args:
        path: File path

    Returns:
        Validated schema dictionary

    Raises:
        SchemaImportError: If the file is missing, unsupported or malformed
    """
    full_path = Path(path)

    if full_path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise SchemaImportError([f"Unsupported schema file format: {full_path.suffix}"])

    try:
        text = full_path.read_text(encoding='utf-8')
    except (IOError, OSError) as e:
        logger.error(f"Failed to read schema file {full_path}: {e}")
        raise SchemaImportError([f"Cannot read schema file {full_path}: {e}"])

    schema = load_schema_document(text)
    logger.info(f"Successfully loaded schema: {full_path}")
    return schema


def save_schema_file(path: Union[str, Path], schema: Dict[str, Any]) -> None:
    """
    Save a schema as JSON or YAML depending on the file suffix.

    Raises:
        SchemaImportError: If the schema is invalid or the suffix unsupported
    """
    full_path = Path(path)
    suffix = full_path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise SchemaImportError([f"Unsupported schema file format: {full_path.suffix}"])

    is_valid, errors = validate_schema(schema)
    if not is_valid:
        raise SchemaImportError(errors, message="Refusing to save an invalid schema")

    full_path.parent.mkdir(parents=True, exist_ok=True)
    if suffix == '.json':
        content = export_schema_text(schema)
    else:
        content = yaml.safe_dump(schema, default_flow_style=False, sort_keys=True, allow_unicode=True)
    full_path.write_text(content, encoding='utf-8')
    logger.info(f"Schema saved to {full_path}")


def get_schema_info(schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Get summary information about a schema.

    Args:
        schema: Schema dictionary

    Returns:
        Dictionary with field counts, required keys and type counts
    """
    fields = list(iter_fields(schema.get('fields', [])))

    type_counts: Dict[str, int] = {}
    for field in fields:
        field_type = field.get('type', 'unknown')
        type_counts[field_type] = type_counts.get(field_type, 0) + 1

    return {
        'version': schema.get('version'),
        'root_count': len(schema.get('fields', [])),
        'field_count': len(fields),
        'required_fields': [f.get('key') for f in fields if f.get('required')],
        'computed_fields': [f.get('key') for f in fields if (f.get('computed') or '').strip()],
        'field_types': type_counts,
    }
