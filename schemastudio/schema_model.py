"""
Pydantic models describing the canonical serialized schema shape.

The engine keeps schemas as plain dictionaries; these models are used to
check that a dictionary (an imported document, a new field, a patched field)
has the documented shape before it enters the tree.
"""

import logging
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
)
from pydantic.types import Strict

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Attribute values are checked without coercion: the dictionary that passes
# is the dictionary that gets stored, so "5" must not pass as a number.
JsonScalar = Union[StrictBool, StrictInt, StrictFloat, StrictStr]
DefaultValue = Union[JsonScalar, Annotated[List[JsonScalar], Strict()]]


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra='forbid')


class OptionModel(_StrictModel):
    """One choice of a select, multiselect or radio field."""
    value: StrictStr
    label: StrictStr


class ValidationRules(_StrictModel):
    """Per-field constraints; meaning of min/max depends on the field type."""
    min: Optional[StrictFloat] = None
    max: Optional[StrictFloat] = None
    regex: Optional[StrictStr] = None


class FieldBaseModel(_StrictModel):
    """Attributes shared by every field variant."""
    id: StrictStr = Field(min_length=1)
    key: StrictStr = Field(min_length=1)
    label: StrictStr
    placeholder: Optional[StrictStr] = None
    helpText: Optional[StrictStr] = None
    required: Optional[StrictBool] = None
    defaultValue: Optional[DefaultValue] = None
    validation: Optional[ValidationRules] = None
    visibleWhen: Optional[StrictStr] = None
    computed: Optional[StrictStr] = None


class ScalarFieldModel(FieldBaseModel):
    type: Literal['text', 'number', 'date', 'checkbox']


class ChoiceFieldModel(FieldBaseModel):
    type: Literal['select', 'multiselect', 'radio']
    options: List[OptionModel]


class SectionFieldModel(FieldBaseModel):
    type: Literal['section']
    children: List['FieldModel']


class ArrayFieldModel(FieldBaseModel):
    type: Literal['array']
    of: 'FieldModel'


FieldModel = Annotated[
    Union[ScalarFieldModel, ChoiceFieldModel, SectionFieldModel, ArrayFieldModel],
    Field(discriminator='type'),
]


class SchemaDocument(_StrictModel):
    """Top-level schema document."""
    version: Literal[1]
    fields: List[FieldModel]


SectionFieldModel.model_rebuild()
ArrayFieldModel.model_rebuild()
SchemaDocument.model_rebuild()

_field_adapter: TypeAdapter = TypeAdapter(FieldModel)


def format_validation_errors(error: ValidationError) -> List[str]:
    """
    Turn a pydantic ValidationError into readable messages.

    Args:
        error: Pydantic validation error

    Returns:
        List of "location: message" strings
    """
    messages = []
    for item in error.errors():
        location = ' -> '.join(str(loc) for loc in item.get('loc', ()))
        if location:
            messages.append(f"{location}: {item.get('msg')}")
        else:
            messages.append(str(item.get('msg')))
    return messages


def check_field_shape(field: Any) -> List[str]:
    """
    Check a single field dictionary against the canonical shape.

    Returns:
        List of problems (empty if the shape is valid)
    """
    if not isinstance(field, dict):
        return ["Field must be a mapping"]
    try:
        _field_adapter.validate_python(field)
        return []
    except ValidationError as e:
        return format_validation_errors(e)


def check_schema_shape(document: Any) -> List[str]:
    """
    Check a whole schema document against the canonical shape.

    Returns:
        List of problems (empty if the shape is valid)
    """
    if not isinstance(document, dict):
        return ["Schema must be a mapping with 'version' and 'fields'"]
    version = document.get('version')
    if type(version) is not int or version != SCHEMA_VERSION:
        return [f"Unsupported schema version {document.get('version')!r}; expected {SCHEMA_VERSION}"]
    try:
        SchemaDocument.model_validate(document)
        return []
    except ValidationError as e:
        return format_validation_errors(e)
