"""
Unit tests for keyboard shortcut binding.
"""

from unittest.mock import MagicMock

import pytest

from schemastudio.document_store import DocumentStore
from schemastudio.field_factory import create_field
from schemastudio.schema_exceptions import ResultCode
from schemastudio.shortcuts import (
    KeyEventSource,
    ShortcutBinding,
    combo_from_event,
    normalize_combo,
)


class TestCombos:
    """Test cases for combo parsing."""

    def test_normalize_orders_modifiers(self):
        assert normalize_combo('Shift+Ctrl+Z') == 'ctrl+shift+z'
        assert normalize_combo('cmd + z') == 'meta+z'
        assert normalize_combo('Option+Control+y') == 'ctrl+alt+y'

    @pytest.mark.parametrize('combo', ['ctrl+shift', 'ctrl+z+y', ''])
    def test_normalize_rejects_bad_combos(self, combo):
        with pytest.raises(ValueError):
            normalize_combo(combo)

    def test_combo_from_browser_event(self):
        event = {'key': 'Z', 'ctrlKey': True, 'shiftKey': True, 'altKey': False}
        assert combo_from_event(event) == 'ctrl+shift+z'

    def test_combo_from_invalid_events(self):
        assert combo_from_event({'ctrlKey': True}) is None
        assert combo_from_event('ctrl') is None
        assert combo_from_event(42) is None


class TestShortcutBinding:
    """Test cases for attaching shortcuts to a store."""

    def setup_method(self):
        self.store = DocumentStore()
        self.source = KeyEventSource()
        self.binding = ShortcutBinding(self.store)

    def test_undo_and_redo_keys(self):
        self.store.add_field(create_field('text', 'A'))
        self.binding.attach(self.source)

        [result] = self.source.dispatch('ctrl+z')
        assert result.changed
        assert self.store.schema['fields'] == []

        [result] = self.source.dispatch({'key': 'z', 'metaKey': True, 'shiftKey': True})
        assert result.changed
        assert len(self.store.schema['fields']) == 1

        [result] = self.source.dispatch('ctrl+y')
        assert result.code == ResultCode.NOTHING_TO_REDO

    def test_unbound_key_is_ignored(self):
        self.binding.attach(self.source)
        assert self.source.dispatch('ctrl+s') == [None]

    def test_attach_is_idempotent(self):
        self.binding.attach(self.source)
        self.binding.attach(self.source)
        assert self.source.listener_count == 1

        self.store.add_field(create_field('text', 'A'))
        self.store.add_field(create_field('text', 'B'))
        self.source.dispatch('ctrl+z')
        assert len(self.store.schema['fields']) == 1

    def test_reattach_moves_to_new_source(self):
        other = KeyEventSource()
        self.binding.attach(self.source)
        self.binding.attach(other)
        assert self.source.listener_count == 0
        assert other.listener_count == 1

    def test_detach(self):
        self.binding.detach()
        self.binding.attach(self.source)
        self.binding.detach()
        assert not self.binding.is_attached
        assert self.source.listener_count == 0

    def test_attached_context(self):
        with self.binding.attached(self.source) as binding:
            assert binding.is_attached
        assert self.source.listener_count == 0

    def test_custom_bindings(self):
        store = MagicMock()
        binding = ShortcutBinding(store, {'Alt+P': 'paste'})
        binding.handle('alt+p')
        store.paste.assert_called_once_with()
        assert binding.handle('ctrl+z') is None
