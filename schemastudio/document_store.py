"""
Document store for the schema designer.

Owns one schema tree together with its undo/redo history, the selection
cursor and the clipboard. Every structural edit goes through this class:
it computes the next schema with the field_tree helpers, checks the tree
invariants, records the superseded schema in history and only then makes
the new schema current. Failed edits leave everything untouched and say
why through an OperationResult.
"""

import copy
import logging
from typing import Dict, Any, Callable, List, Optional, Union

from .clipboard import Clipboard
from .diff_utils import describe_changes, has_changes
from .field_factory import FIELD_TYPES, retype_field
from .field_tree import (
    collect_ids,
    collect_keys,
    deep_clone,
    find_by_id,
    find_duplicates,
    insert_child,
    is_section,
    remove_by_id,
    reorder_within,
    replace_by_id,
    replace_children,
    subtree_ids,
)
from .history import DEFAULT_HISTORY_CAPACITY, HistoryState
from .persistence import StateStorage, create_storage
from .schema_exceptions import (
    OperationResult,
    ResultCode,
    SchemaImportError,
    StorageError,
)
from .schema_loader import empty_schema, export_schema_text, load_schema_document, validate_schema
from .schema_model import check_field_shape

logger = logging.getLogger(__name__)

Listener = Callable[["DocumentStore"], None]


class DocumentStore:
    """Mutable holder of {schema, history, selected id, clipboard}."""

    def __init__(self, schema: Optional[Union[str, Dict[str, Any]]] = None,
                 history_capacity: int = DEFAULT_HISTORY_CAPACITY,
                 storage: Optional[StateStorage] = None):
        """
        Args:
            schema: Initial schema (dict or JSON/YAML text); empty when omitted
            history_capacity: Maximum entries kept on each history stack
            storage: Optional persistence target, saved after every change

        Raises:
            SchemaImportError: If the initial schema is malformed
        """
        self._schema = load_schema_document(schema) if schema is not None else empty_schema()
        self.history = HistoryState(history_capacity)
        self.selected_id: Optional[str] = None
        self.clipboard = Clipboard()
        self.storage = storage
        self._listeners: List[Listener] = []

    @classmethod
    def from_storage(cls, storage: Optional[StateStorage],
                     history_capacity: int = DEFAULT_HISTORY_CAPACITY) -> "DocumentStore":
        """Create a store and restore its state from storage, falling back to an empty schema."""
        store = cls(history_capacity=history_capacity, storage=storage)
        store.restore()
        return store

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "DocumentStore":
        """Create a store using the 'history' and 'storage' config sections."""
        capacity = config.get('history', {}).get('capacity', DEFAULT_HISTORY_CAPACITY)
        return cls.from_storage(create_storage(config), capacity)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def schema(self) -> Dict[str, Any]:
        """Deep copy of the current schema."""
        return copy.deepcopy(self._schema)

    @property
    def fields(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._schema['fields'])

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def get_field(self, field_id: str) -> Optional[Dict[str, Any]]:
        field = find_by_id(self._schema['fields'], field_id)
        return deep_clone(field) if field is not None else None

    def selected_field(self) -> Optional[Dict[str, Any]]:
        if self.selected_id is None:
            return None
        return self.get_field(self.selected_id)

    def existing_keys(self) -> List[str]:
        return collect_keys(self._schema['fields'])

    def export_schema(self) -> str:
        """Canonical JSON text of the current schema."""
        return export_schema_text(self._schema)

    def describe_last_change(self) -> List[str]:
        """Field-level description of what the most recent undoable edit changed."""
        if not self.history.past:
            return []
        return describe_changes(self.history.past[-1].restore(), self._schema)

    # ------------------------------------------------------------------
    # Subscriptions and persistence
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called after every state change.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def to_state(self) -> Dict[str, Any]:
        """Serializable state: schema, history and selection."""
        return {
            'schema': self.schema,
            'history': self.history.to_dict(),
            'selectedId': self.selected_id,
        }

    def restore(self) -> bool:
        """
        Load state from storage.

        Returns:
            True if a stored state was applied; False if nothing usable was stored,
            in which case the store holds an empty schema
        """
        if self.storage is None:
            return False

        try:
            state = self.storage.load()
        except StorageError as e:
            logger.error(f"Failed to load designer state, starting empty: {e}")
            return False

        if state is None:
            return False

        try:
            schema = load_schema_document(state['schema'])
            history = HistoryState.from_dict(state.get('history') or {}, self.history.capacity)
            for snapshot in list(history.past) + list(history.future):
                is_valid, errors = validate_schema(snapshot.restore())
                if not is_valid:
                    raise SchemaImportError(errors, message="Stored history contains an invalid schema")
        except (SchemaImportError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Stored designer state is invalid, starting empty: {e}")
            self._schema = empty_schema()
            self.history.clear()
            self.selected_id = None
            return False

        self._schema = schema
        self.history = history
        selected_id = state.get('selectedId')
        self.selected_id = selected_id if isinstance(selected_id, str) else None
        logger.info(f"Restored designer state with {len(schema['fields'])} root field(s)")
        return True

    def _persist(self) -> None:
        if self.storage is None:
            return
        try:
            self.storage.save(self.to_state())
        except StorageError as e:
            logger.error(f"Failed to persist designer state: {e}")

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Store listener failed")

    def _after_change(self) -> None:
        self._persist()
        self._notify()

    def _commit(self, fields: List[Dict[str, Any]], label: str,
                field_id: Optional[str] = None) -> OperationResult:
        previous = self._schema
        self.history.record(previous, label)
        self._schema = {**previous, 'fields': fields}
        logger.debug(f"{label}: committed (history depth {len(self.history.past)})")
        self._after_change()
        return OperationResult.success(label, field_id)

    # ------------------------------------------------------------------
    # Invariant checks
    # ------------------------------------------------------------------

    @staticmethod
    def _check_field(field: Any) -> Optional[OperationResult]:
        errors = check_field_shape(field)
        if errors:
            field_id = field.get('id') if isinstance(field, dict) else None
            return OperationResult.failure(
                ResultCode.INVALID_FIELD, "Field definition is malformed", field_id, errors
            )
        return None

    @staticmethod
    def _check_tree(fields: List[Dict[str, Any]]) -> Optional[OperationResult]:
        duplicate_ids = find_duplicates(collect_ids(fields))
        if duplicate_ids:
            return OperationResult.failure(
                ResultCode.DUPLICATE_ID, f"Field id '{duplicate_ids[0]}' is already in use", duplicate_ids[0]
            )
        duplicate_keys = find_duplicates(collect_keys(fields))
        if duplicate_keys:
            return OperationResult.failure(
                ResultCode.DUPLICATE_KEY, f"Field key '{duplicate_keys[0]}' is already in use"
            )
        return None

    def _find_section(self, section_id: str) -> Union[Dict[str, Any], OperationResult]:
        target = find_by_id(self._schema['fields'], section_id)
        if target is None:
            return OperationResult.failure(
                ResultCode.NOT_FOUND, f"No field with id '{section_id}'", section_id
            )
        if not is_section(target):
            return OperationResult.failure(
                ResultCode.NOT_A_SECTION, f"Field '{target.get('key')}' is not a section", section_id
            )
        return target

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def select(self, field_id: Optional[str] = None) -> None:
        """Move the selection cursor; the id is not required to exist."""
        if field_id == self.selected_id:
            return
        self.selected_id = field_id
        self._after_change()

    def add_field(self, field: Dict[str, Any]) -> OperationResult:
        """Append a field to the root of the schema."""
        failure = self._check_field(field)
        if failure is not None:
            return failure

        fields = self._schema['fields'] + [deep_clone(field)]
        failure = self._check_tree(fields)
        if failure is not None:
            return failure

        return self._commit(fields, "add_field", field['id'])

    def add_child(self, section_id: str, field: Dict[str, Any]) -> OperationResult:
        """Append a field to the children of a section."""
        target = self._find_section(section_id)
        if isinstance(target, OperationResult):
            return target

        failure = self._check_field(field)
        if failure is not None:
            return failure

        fields = insert_child(self._schema['fields'], section_id, deep_clone(field))
        failure = self._check_tree(fields)
        if failure is not None:
            return failure

        return self._commit(fields, "add_child", field['id'])

    def update_field(self, field_id: str, patch: Dict[str, Any]) -> OperationResult:
        """
        Merge a partial patch onto a field.

        The merge is shallow except for 'validation', which is merged key by
        key. A None value removes the attribute (or constraint). Changing
        'type' reshapes the field's variant structure.
        """
        if not isinstance(patch, dict):
            return OperationResult.failure(ResultCode.INVALID_PATCH, "Patch must be a mapping", field_id)

        current = find_by_id(self._schema['fields'], field_id)
        if current is None:
            return OperationResult.failure(ResultCode.NOT_FOUND, f"No field with id '{field_id}'", field_id)

        if 'id' in patch and patch['id'] != field_id:
            return OperationResult.failure(ResultCode.INVALID_PATCH, "A field's id cannot be changed", field_id)

        new_type = patch.get('type', current.get('type'))
        if new_type not in FIELD_TYPES:
            return OperationResult.failure(
                ResultCode.INVALID_PATCH, f"Unsupported field type '{new_type}'", field_id
            )

        updated = _merge_patch(current, patch)
        if new_type != current.get('type'):
            updated = retype_field(updated, new_type, self.existing_keys())

        failure = self._check_field(updated)
        if failure is not None:
            return failure

        if not has_changes(current, updated):
            return OperationResult.noop("Patch does not change the field", field_id=field_id)

        fields = replace_by_id(self._schema['fields'], field_id, updated)
        failure = self._check_tree(fields)
        if failure is not None:
            return failure

        return self._commit(fields, "update_field", field_id)

    def remove_field(self, field_id: str) -> OperationResult:
        """Remove a field and everything it owns."""
        target = find_by_id(self._schema['fields'], field_id)
        if target is None:
            return OperationResult.failure(ResultCode.NOT_FOUND, f"No field with id '{field_id}'", field_id)

        removed_ids = subtree_ids(target)
        fields = remove_by_id(self._schema['fields'], field_id)

        if self.selected_id in removed_ids:
            self.selected_id = None

        return self._commit(fields, "remove_field", field_id)

    def move_field(self, from_index: int, to_index: int) -> OperationResult:
        """Reorder a root field."""
        return self._move(self._schema['fields'], from_index, to_index, None)

    def move_child(self, parent_id: str, from_index: int, to_index: int) -> OperationResult:
        """Reorder a child within its section."""
        target = self._find_section(parent_id)
        if isinstance(target, OperationResult):
            return target
        return self._move(target.get('children') or [], from_index, to_index, parent_id)

    def _move(self, siblings: List[Dict[str, Any]], from_index: int, to_index: int,
              parent_id: Optional[str]) -> OperationResult:
        size = len(siblings)
        for index in (from_index, to_index):
            if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < size:
                return OperationResult.failure(
                    ResultCode.OUT_OF_RANGE,
                    f"Position {index!r} is outside 0..{size - 1}" if size else "There is nothing to move",
                    parent_id,
                )

        moved_id = siblings[from_index].get('id')
        if from_index == to_index:
            return OperationResult.noop("Field is already at that position", field_id=moved_id)

        reordered = reorder_within(siblings, from_index, to_index)
        if parent_id is None:
            return self._commit(reordered, "move_field", moved_id)
        fields = replace_children(self._schema['fields'], parent_id, reordered)
        return self._commit(fields, "move_child", moved_id)

    def copy(self, field_id: str) -> OperationResult:
        """Copy a field (with its owned substructure) to the clipboard."""
        target = find_by_id(self._schema['fields'], field_id)
        if target is None:
            return OperationResult.failure(ResultCode.NOT_FOUND, f"No field with id '{field_id}'", field_id)
        self.clipboard.copy(target)
        return OperationResult.noop("Copied to clipboard", field_id=field_id)

    def paste(self, target_section_id: Optional[str] = None) -> OperationResult:
        """
        Paste the clipboard at the root or into a section.

        The pasted subtree gets fresh ids and keys on every node.
        """
        if self.clipboard.is_empty:
            return OperationResult.noop("Clipboard is empty", code=ResultCode.CLIPBOARD_EMPTY)

        if target_section_id is not None:
            target = self._find_section(target_section_id)
            if isinstance(target, OperationResult):
                return target

        clone = self.clipboard.paste_clone(self.existing_keys())
        if target_section_id is None:
            fields = self._schema['fields'] + [clone]
        else:
            fields = insert_child(self._schema['fields'], target_section_id, clone)

        failure = self._check_tree(fields)
        if failure is not None:
            return failure

        return self._commit(fields, "paste", clone['id'])

    def undo(self) -> OperationResult:
        restored = self.history.undo(self._schema)
        if restored is None:
            return OperationResult.noop("Nothing to undo", code=ResultCode.NOTHING_TO_UNDO)
        self._schema = restored
        self._after_change()
        return OperationResult.success("undo")

    def redo(self) -> OperationResult:
        restored = self.history.redo(self._schema)
        if restored is None:
            return OperationResult.noop("Nothing to redo", code=ResultCode.NOTHING_TO_REDO)
        self._schema = restored
        self._after_change()
        return OperationResult.success("redo")

    def import_schema(self, document: Union[str, Dict[str, Any]]) -> OperationResult:
        """
        Replace the whole schema with an external document.

        The document is fully validated first; a rejected document changes
        nothing. A successful import is one undoable history entry.
        """
        try:
            schema = load_schema_document(document)
        except SchemaImportError as e:
            logger.warning(f"Schema import rejected: {e.message}")
            return OperationResult.failure(ResultCode.IMPORT_FAILED, e.message, errors=e.errors)

        # Always one history entry, even when the document matches the current schema
        self.selected_id = None
        previous = self._schema
        self.history.record(previous, "import_schema")
        self._schema = schema
        logger.info(f"Imported schema with {len(schema['fields'])} root field(s)")
        self._after_change()
        return OperationResult.success("import_schema")


def _merge_patch(field: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    merged = deep_clone(field)
    for name, value in patch.items():
        if name == 'id':
            continue
        if name == 'validation' and isinstance(value, dict):
            rules = dict(merged.get('validation') or {})
            for rule, rule_value in value.items():
                if rule_value is None:
                    rules.pop(rule, None)
                else:
                    rules[rule] = rule_value
            if rules or 'validation' in merged:
                merged['validation'] = rules
        elif value is None:
            merged.pop(name, None)
        else:
            merged[name] = copy.deepcopy(value)
    return merged
