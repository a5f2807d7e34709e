"""
Live form preview.

Renders the current schema as a form, hides fields whose visibility
expression is false, shows computed fields read-only and reports
validation messages under each field.
"""

import logging
from datetime import date, datetime
from typing import Dict, Any, List, Optional

import pandas as pd
import streamlit as st
from dateutil import parser as date_parser

from .field_tree import is_section
from .form_state import has_computed, is_field_visible, resolve_values
from .session_manager import SessionManager
from .validation_engine import has_errors, validate_values

logger = logging.getLogger(__name__)

SCALAR_WIDGET_TYPES = {'text', 'number', 'date', 'checkbox', 'select', 'multiselect', 'radio'}


def widget_key(field: Dict[str, Any]) -> str:
    return f"preview_{field['id']}"


def to_widget_value(field: Dict[str, Any], value: Any) -> Any:
    """Convert a form value into what the field's widget expects."""
    field_type = field.get('type')
    if field_type == 'date':
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str) and value.strip():
            try:
                return date_parser.parse(value).date()
            except (ValueError, OverflowError) as e:
                logger.warning(f"Failed to parse date value '{value}' for '{field.get('key')}': {e}")
        return None
    if field_type == 'number':
        if isinstance(value, bool) or value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
    if field_type == 'checkbox':
        return bool(value)
    if field_type == 'multiselect':
        return list(value) if isinstance(value, (list, tuple)) else []
    if field_type in ('select', 'radio'):
        allowed = [option['value'] for option in field.get('options') or []]
        return value if value in allowed else None
    return "" if value is None else str(value)


def from_widget_value(field: Dict[str, Any], value: Any) -> Any:
    """Convert a widget's value back into a form value."""
    if field.get('type') == 'date':
        return value.isoformat() if isinstance(value, date) else None
    if field.get('type') == 'number' and isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def sync_widget_values(fields: List[Dict[str, Any]], values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Copy current widget state into the value context.

    Streamlit updates widget state before the rerun that reports it, so
    reading it first keeps visibility and validation in step with input.
    """
    synced = dict(values)
    for field in fields:
        if is_section(field):
            synced = sync_widget_values(field.get('children') or [], synced)
            continue
        key = widget_key(field)
        if field.get('type') in SCALAR_WIDGET_TYPES and not has_computed(field) and key in st.session_state:
            synced[field['key']] = from_widget_value(field, st.session_state[key])
    return synced


def _clean_cell(value: Any) -> Any:
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if hasattr(value, 'item'):
        return value.item()
    return value


class PreviewView:
    """Streamlit rendering of the form preview."""

    @staticmethod
    def render() -> None:
        store = SessionManager.get_store()
        schema = store.schema

        st.subheader("👀 Preview")
        if not schema['fields']:
            st.info("The schema has no fields yet. Add some in the designer.")
            return

        raw = sync_widget_values(schema['fields'], SessionManager.get_preview_values())
        st.session_state['preview_values'] = raw
        values = resolve_values(schema, raw)
        errors = validate_values(schema, values)

        PreviewView._render_fields(schema['fields'], values, errors)

        st.divider()
        check_col, reset_col = st.columns([1, 1])
        with check_col:
            if st.button("✅ Validate", key="preview_validate"):
                if has_errors(errors):
                    st.error(f"❌ {sum(1 for message in errors.values() if message)} field(s) need attention")
                else:
                    st.success("✅ All visible fields are valid")
        with reset_col:
            if st.button("🔄 Reset form", key="preview_reset"):
                SessionManager.reset_preview()
                st.rerun()

        with st.expander("Values"):
            st.json(values)

    @staticmethod
    def _render_fields(fields: List[Dict[str, Any]], values: Dict[str, Any],
                       errors: Dict[str, Optional[str]]) -> None:
        for field in fields:
            if not is_field_visible(field, values):
                continue

            if is_section(field):
                st.markdown(f"#### {field['label']}")
                if field.get('helpText'):
                    st.caption(field['helpText'])
                with st.container(border=True):
                    PreviewView._render_fields(field.get('children') or [], values, errors)
                continue

            if field['type'] == 'array':
                PreviewView._render_array(field, values, errors)
            else:
                PreviewView._render_field(field, values)

            message = errors.get(field['key'])
            if message:
                st.error(message)

    @staticmethod
    def _render_field(field: Dict[str, Any], values: Dict[str, Any]) -> None:
        """Render one scalar or choice field."""
        key = widget_key(field)
        computed = has_computed(field)

        if computed or key not in st.session_state:
            st.session_state[key] = to_widget_value(field, values.get(field['key']))

        label = f"{field['label']} *" if field.get('required') else field['label']
        kwargs: Dict[str, Any] = {
            'label': label,
            'key': key,
            'help': field.get('helpText') or None,
            'disabled': computed,
        }

        field_type = field['type']
        options = [option['value'] for option in field.get('options') or []]
        labels = {option['value']: option['label'] for option in field.get('options') or []}

        if field_type == 'number':
            st.number_input(placeholder=field.get('placeholder') or None, **kwargs)
        elif field_type == 'date':
            st.date_input(**kwargs)
        elif field_type == 'checkbox':
            st.checkbox(**kwargs)
        elif field_type == 'select':
            st.selectbox(options=options, format_func=lambda v: labels.get(v, v),
                         placeholder=field.get('placeholder') or "Choose an option", **kwargs)
        elif field_type == 'radio':
            st.radio(options=options, format_func=lambda v: labels.get(v, v), **kwargs)
        elif field_type == 'multiselect':
            st.multiselect(options=options, format_func=lambda v: labels.get(v, v), **kwargs)
        else:
            st.text_input(placeholder=field.get('placeholder') or None, **kwargs)

    @staticmethod
    def _render_array(field: Dict[str, Any], values: Dict[str, Any],
                      errors: Dict[str, Optional[str]]) -> None:
        """Render an array field as an editable table, one row per item."""
        template = field.get('of') or {}
        items = values.get(field['key'])
        items = list(items) if isinstance(items, (list, tuple)) else []

        st.markdown(f"**{field['label']}{' *' if field.get('required') else ''}**")
        if field.get('helpText'):
            st.caption(field['helpText'])

        if is_section(template):
            columns = [child['key'] for child in template.get('children') or []]
            rows = [{column: (item or {}).get(column) for column in columns} for item in items]
            data_source = pd.DataFrame(rows, columns=columns)
        else:
            columns = ['value']
            data_source = pd.DataFrame({'value': pd.Series(items, dtype='object')})

        edited_df = st.data_editor(
            data_source,
            num_rows="dynamic",
            use_container_width=True,
            hide_index=True,
            disabled=has_computed(field),
            key=f"preview_{field['id']}_items",
        )

        updated: List[Any] = []
        for record in edited_df.to_dict('records'):
            cleaned = {column: _clean_cell(record.get(column)) for column in columns}
            if all(value is None for value in cleaned.values()):
                continue
            updated.append(cleaned if is_section(template) else cleaned['value'])

        for index in range(len(items)):
            prefix = f"{field['key']}[{index}]"
            for name, message in errors.items():
                if message and (name == prefix or name.startswith(f"{prefix}.")):
                    st.error(f"Item {index + 1}: {message}")

        if updated != items and not has_computed(field):
            SessionManager.set_preview_value(field['key'], updated)
            st.rerun()
