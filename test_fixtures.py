"""
Test fixtures for the schema designer tests.

Provides reusable schemas and field builders with fixed ids and keys so
assertions can refer to fields by name.
"""

import copy
from typing import Dict, Any, List, Optional


class SchemaFixtures:
    """Fixtures for schema and field scenarios."""

    @staticmethod
    def text_field(field_id: str, key: str, **extra: Any) -> Dict[str, Any]:
        field = {'id': field_id, 'key': key, 'type': 'text', 'label': key.title(), 'validation': {}}
        field.update(extra)
        return field

    @staticmethod
    def number_field(field_id: str, key: str, **extra: Any) -> Dict[str, Any]:
        field = {'id': field_id, 'key': key, 'type': 'number', 'label': key.title(), 'validation': {}}
        field.update(extra)
        return field

    @staticmethod
    def select_field(field_id: str, key: str, values: Optional[List[str]] = None,
                     field_type: str = 'select', **extra: Any) -> Dict[str, Any]:
        field = {
            'id': field_id,
            'key': key,
            'type': field_type,
            'label': key.title(),
            'options': [{'value': v, 'label': v.title()} for v in (values or ['a', 'b', 'c'])],
        }
        field.update(extra)
        return field

    @staticmethod
    def section_field(field_id: str, key: str, children: List[Dict[str, Any]], **extra: Any) -> Dict[str, Any]:
        field = {'id': field_id, 'key': key, 'type': 'section', 'label': key.title(), 'children': children}
        field.update(extra)
        return field

    @staticmethod
    def array_field(field_id: str, key: str, template: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
        field = {'id': field_id, 'key': key, 'type': 'array', 'label': key.title(), 'of': template}
        field.update(extra)
        return field

    @staticmethod
    def schema(fields: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {'version': 1, 'fields': copy.deepcopy(fields)}

    @staticmethod
    def get_nested_schema() -> Dict[str, Any]:
        """
        Root: name, age, contact (section: email, phone), tags (multiselect),
        items (array of section: sku, qty).
        """
        f = SchemaFixtures
        return f.schema([
            f.text_field('f-name', 'name', required=True),
            f.number_field('f-age', 'age', validation={'min': 10}),
            f.section_field('f-contact', 'contact', [
                f.text_field('f-email', 'email', validation={'regex': r'^[^@\s]+@[^@\s]+$'}),
                f.text_field('f-phone', 'phone'),
            ]),
            f.select_field('f-tags', 'tags', ['red', 'green', 'blue'], field_type='multiselect'),
            f.array_field('f-items', 'items', f.section_field('f-item', 'item', [
                f.text_field('f-sku', 'sku', required=True),
                f.number_field('f-qty', 'qty', validation={'min': 1}),
            ])),
        ])

