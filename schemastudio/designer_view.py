"""
Schema designer page.

Palette, field tree, inspector, import/export and history panels. Every
change goes through the DocumentStore held in the session; this module
only turns widget input into store operations and shows their results.
"""

import logging
from typing import Dict, Any, List, Optional

import streamlit as st
import yaml

from .error_handler import ErrorHandler, ErrorType
from .expression_parser import check_expression, referenced_keys
from .field_factory import CHOICE_TYPES, FIELD_TYPES, PALETTE, create_field, field_type_label
from .field_tree import is_section
from .schema_exceptions import SchemaImportError
from .schema_loader import get_schema_info, load_yaml_text, parse_schema_text
from .session_manager import SessionManager

logger = logging.getLogger(__name__)


def parse_optional_number(text: str) -> Optional[float]:
    """Number typed into a constraint box; blank means no constraint."""
    text = (text or "").strip()
    if not text:
        return None
    number = float(text)
    return int(number) if number.is_integer() else number


def format_optional_number(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_default_value(text: str) -> Any:
    """
    Default value typed into the inspector.

    Parsed as a YAML scalar so "3" becomes a number and "true" a boolean;
    dates stay ISO strings and blank means no default.
    """
    text = (text or "").strip()
    if not text:
        return None
    try:
        return load_yaml_text(text)
    except yaml.YAMLError:
        return text


def format_default_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return yaml.safe_dump(value, default_flow_style=True).strip().removesuffix("...").strip()


def parse_options(text: str) -> List[Dict[str, str]]:
    """One option per line, written as ``value`` or ``value | label``."""
    options = []
    for line in (text or "").splitlines():
        if not line.strip():
            continue
        value, _, label = line.partition('|')
        value = value.strip()
        options.append({'value': value, 'label': label.strip() or value})
    return options


def format_options(options: List[Dict[str, str]]) -> str:
    return "\n".join(
        option['value'] if option['label'] == option['value'] else f"{option['value']} | {option['label']}"
        for option in options or []
    )


def build_patch(field: Dict[str, Any], form: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate inspector input into an update_field patch.

    Blank text becomes None so the attribute is removed from the field.

    Raises:
        ValueError: If a constraint is not a number
    """
    patch: Dict[str, Any] = {
        'key': form['key'].strip(),
        'label': form['label'],
        'placeholder': form['placeholder'] if form['placeholder'] or 'placeholder' in field else None,
        'helpText': form['helpText'] or None,
        'required': True if form['required'] else None,
        'visibleWhen': form['visibleWhen'].strip() or None,
        'computed': form['computed'].strip() or None,
        'defaultValue': parse_default_value(form['defaultValue']),
        'validation': {
            'min': parse_optional_number(form['min']),
            'max': parse_optional_number(form['max']),
            'regex': form['regex'] or None,
        },
    }
    if form['type'] != field['type']:
        patch['type'] = form['type']
    if 'options' in form and form['type'] in CHOICE_TYPES:
        patch['options'] = parse_options(form['options'])
    return patch


class DesignerView:
    """Streamlit rendering of the schema designer."""

    @staticmethod
    def render() -> None:
        store = SessionManager.get_store()

        DesignerView._render_toolbar()

        tree_col, inspector_col = st.columns([1, 1])
        with tree_col:
            DesignerView._render_palette()
            st.subheader("🌳 Fields")
            if not store.schema['fields']:
                st.info("The schema is empty. Add a field from the palette.")
            DesignerView._render_tree(store.schema['fields'], parent_id=None, depth=0)

        with inspector_col:
            DesignerView._render_inspector()

        st.divider()
        import_col, history_col = st.columns([1, 1])
        with import_col:
            DesignerView._render_import_export()
        with history_col:
            DesignerView._render_history()

    @staticmethod
    def _render_toolbar() -> None:
        store = SessionManager.get_store()
        undo_col, redo_col, paste_col, info_col = st.columns([1, 1, 1, 3])

        with undo_col:
            if st.button("↩️ Undo", disabled=not store.can_undo, key="designer_undo"):
                ErrorHandler.report_result(store.undo(), "undo")
                st.rerun()
        with redo_col:
            if st.button("↪️ Redo", disabled=not store.can_redo, key="designer_redo"):
                ErrorHandler.report_result(store.redo(), "redo")
                st.rerun()
        with paste_col:
            if st.button("📋 Paste", disabled=store.clipboard.is_empty, key="designer_paste"):
                selected = store.selected_field()
                target = selected['id'] if is_section(selected) else None
                result = store.paste(target)
                if ErrorHandler.report_result(result, "paste"):
                    store.select(result.field_id)
                    st.rerun()
        with info_col:
            info = get_schema_info(store.schema)
            st.caption(
                f"{info['field_count']} fields, {len(info['required_fields'])} required, "
                f"{len(info['computed_fields'])} computed"
            )

    @staticmethod
    def _render_palette() -> None:
        store = SessionManager.get_store()
        selected = store.selected_field()

        st.subheader("🧩 Palette")
        type_col, label_col, add_col = st.columns([2, 2, 1])
        with type_col:
            field_type = st.selectbox(
                "Field type",
                options=[t for t, _ in PALETTE],
                format_func=field_type_label,
                key="palette_type",
            )
        with label_col:
            label = st.text_input("Label", value=field_type_label(field_type), key="palette_label")
        with add_col:
            st.write("")
            if st.button("➕ Add", key="palette_add"):
                field = create_field(field_type, label or field_type_label(field_type), store.existing_keys())
                if is_section(selected):
                    result = store.add_child(selected['id'], field)
                else:
                    result = store.add_field(field)
                if ErrorHandler.report_result(result, "add field"):
                    store.select(field['id'])
                    st.rerun()

        if is_section(selected):
            st.caption(f"New fields go into section '{selected['label']}'. Deselect it to add at the root.")

    @staticmethod
    def _render_tree(fields: List[Dict[str, Any]], parent_id: Optional[str], depth: int) -> None:
        store = SessionManager.get_store()

        for index, field in enumerate(fields):
            marker = "👉 " if field['id'] == store.selected_id else ""
            indent = " " * depth
            label_col, up_col, down_col = st.columns([6, 1, 1])

            with label_col:
                caption = f"{indent}{marker}{field['label']} · `{field['key']}` ({field_type_label(field['type'])})"
                if st.button(caption, key=f"select_{field['id']}", use_container_width=True):
                    store.select(None if field['id'] == store.selected_id else field['id'])
                    st.rerun()
            with up_col:
                if st.button("⬆️", key=f"up_{field['id']}", disabled=index == 0):
                    DesignerView._move(parent_id, index, index - 1)
            with down_col:
                if st.button("⬇️", key=f"down_{field['id']}", disabled=index == len(fields) - 1):
                    DesignerView._move(parent_id, index, index + 1)

            if is_section(field):
                DesignerView._render_tree(field.get('children') or [], field['id'], depth + 1)
            elif field['type'] == 'array' and isinstance(field.get('of'), dict):
                template = field['of']
                st.caption(f"{indent} ↳ each item: {template['label']} ({field_type_label(template['type'])})")

    @staticmethod
    def _move(parent_id: Optional[str], from_index: int, to_index: int) -> None:
        store = SessionManager.get_store()
        if parent_id is None:
            result = store.move_field(from_index, to_index)
        else:
            result = store.move_child(parent_id, from_index, to_index)
        if ErrorHandler.report_result(result, "move field"):
            st.rerun()

    @staticmethod
    def _render_inspector() -> None:
        store = SessionManager.get_store()
        field = store.selected_field()

        st.subheader("🔧 Inspector")
        if field is None:
            st.info("Select a field to edit its properties.")
            return

        prefix = f"inspect_{field['id']}"
        validation = field.get('validation') or {}

        with st.form(key=f"{prefix}_form"):
            form: Dict[str, Any] = {
                'label': st.text_input("Label", value=field.get('label', ''), key=f"{prefix}_label"),
                'key': st.text_input("Key", value=field.get('key', ''), key=f"{prefix}_key"),
                'type': st.selectbox(
                    "Type", options=list(FIELD_TYPES), index=FIELD_TYPES.index(field['type']),
                    format_func=field_type_label, key=f"{prefix}_type"
                ),
                'placeholder': st.text_input("Placeholder", value=field.get('placeholder') or '', key=f"{prefix}_placeholder"),
                'helpText': st.text_input("Help text", value=field.get('helpText') or '', key=f"{prefix}_help"),
                'required': st.checkbox("Required", value=bool(field.get('required')), key=f"{prefix}_required"),
                'defaultValue': st.text_input(
                    "Default value", value=format_default_value(field.get('defaultValue')), key=f"{prefix}_default"
                ),
            }

            min_col, max_col = st.columns(2)
            with min_col:
                form['min'] = st.text_input("Min", value=format_optional_number(validation.get('min')), key=f"{prefix}_min")
            with max_col:
                form['max'] = st.text_input("Max", value=format_optional_number(validation.get('max')), key=f"{prefix}_max")
            form['regex'] = st.text_input("Pattern (regex)", value=validation.get('regex') or '', key=f"{prefix}_regex")

            if field['type'] in CHOICE_TYPES:
                form['options'] = st.text_area(
                    "Options (value | label, one per line)",
                    value=format_options(field.get('options')), key=f"{prefix}_options"
                )

            form['visibleWhen'] = st.text_input(
                "Visible when", value=field.get('visibleWhen') or '', key=f"{prefix}_visible",
                help="Example: age >= 18 and country == \"NZ\""
            )
            form['computed'] = st.text_input(
                "Computed value", value=field.get('computed') or '', key=f"{prefix}_computed",
                help="Example: price * quantity"
            )

            submitted = st.form_submit_button("💾 Apply")

        DesignerView._render_expression_feedback("Visible when", field.get('visibleWhen'))
        DesignerView._render_expression_feedback("Computed value", field.get('computed'))

        if submitted:
            try:
                patch = build_patch(field, form)
            except ValueError as e:
                ErrorHandler.handle_error(e, "inspector input", ErrorType.USER_INPUT,
                                          user_message="⚠️ Min and max must be numbers.")
                return
            for name in ('visibleWhen', 'computed'):
                message = check_expression(patch.get(name))
                if message:
                    st.warning(f"⚠️ {name}: {message}")
            if ErrorHandler.report_result(store.update_field(field['id'], patch), "update field"):
                st.rerun()

        copy_col, remove_col = st.columns(2)
        with copy_col:
            if st.button("📄 Copy", key=f"{prefix}_copy"):
                ErrorHandler.report_result(store.copy(field['id']), "copy field")
        with remove_col:
            if st.button("🗑️ Remove", key=f"{prefix}_remove"):
                if ErrorHandler.report_result(store.remove_field(field['id']), "remove field"):
                    st.rerun()

    @staticmethod
    def _render_expression_feedback(title: str, source: Optional[str]) -> None:
        if not source or not source.strip():
            return
        message = check_expression(source)
        if message:
            st.warning(f"⚠️ {title}: {message}")
            return
        keys = referenced_keys(source)
        known = set(SessionManager.get_store().existing_keys())
        unknown = [key for key in keys if key not in known]
        if unknown:
            st.caption(f"{title} reads unknown keys: {', '.join(unknown)}")

    @staticmethod
    def _render_import_export() -> None:
        store = SessionManager.get_store()

        st.subheader("📦 Import / Export")
        uploaded_file = st.file_uploader("Import schema", type=['json', 'yaml', 'yml'], key="designer_import")
        if uploaded_file is not None and st.button("📥 Import", key="designer_import_apply"):
            DesignerView._handle_schema_import(uploaded_file.getvalue())

        st.download_button(
            "📤 Export JSON",
            data=store.export_schema(),
            file_name="schema.json",
            mime="application/json",
            key="designer_export",
        )
        with st.expander("Schema JSON"):
            st.code(store.export_schema(), language="json")

    @staticmethod
    def _handle_schema_import(raw: bytes) -> None:
        store = SessionManager.get_store()
        try:
            document = parse_schema_text(raw.decode('utf-8'))
        except (SchemaImportError, UnicodeDecodeError) as e:
            ErrorHandler.handle_error(e, "schema import", ErrorType.IMPORT)
            return
        if ErrorHandler.report_result(store.import_schema(document), "schema import", "✅ Schema imported"):
            SessionManager.reset_preview()

    @staticmethod
    def _render_history() -> None:
        store = SessionManager.get_store()
        labels = store.history.labels()

        st.subheader("🕘 History")
        st.caption(f"{len(labels['past'])} undo step(s), {len(labels['future'])} redo step(s)")
        for line in store.describe_last_change():
            st.write(f"- {line}")

        with st.form(key="shortcut_form", clear_on_submit=True):
            combo = st.text_input("Keyboard shortcut", placeholder="ctrl+z", key="shortcut_combo")
            if st.form_submit_button("Run"):
                results = SessionManager.get_key_events().dispatch(combo)
                handled = [result for result in results if result is not None]
                if not handled:
                    st.info(f"ℹ️ No action is bound to '{combo}'")
                for result in handled:
                    ErrorHandler.report_result(result, f"shortcut {combo}")
