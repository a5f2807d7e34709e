"""
Unit tests for undo/redo history.
"""

import pytest

from schemastudio.history import HistorySnapshot, HistoryState


def schema_with(*keys):
    return {
        'version': 1,
        'fields': [{'id': key, 'key': key, 'type': 'text', 'label': key} for key in keys],
    }


class TestHistorySnapshot:
    """Test cases for snapshots."""

    def test_restore_returns_fresh_copies(self):
        snapshot = HistorySnapshot.capture(schema_with('a'), 'add_field')
        first = snapshot.restore()
        first['fields'].clear()
        assert snapshot.restore() == schema_with('a')

    def test_capture_is_independent_of_source(self):
        schema = schema_with('a')
        snapshot = HistorySnapshot.capture(schema)
        schema['fields'][0]['label'] = 'changed'
        assert snapshot.restore()['fields'][0]['label'] == 'a'

    def test_dict_round_trip(self):
        snapshot = HistorySnapshot.capture(schema_with('a', 'b'), 'paste')
        loaded = HistorySnapshot.from_dict(snapshot.to_dict())
        assert loaded == snapshot


class TestHistoryState:
    """Test cases for the history stacks."""

    def setup_method(self):
        self.history = HistoryState(capacity=3)

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            HistoryState(0)

    def test_empty_history(self):
        assert not self.history.can_undo
        assert not self.history.can_redo
        assert self.history.undo(schema_with()) is None
        assert self.history.redo(schema_with()) is None

    def test_undo_then_redo(self):
        self.history.record(schema_with(), 'add_field')
        present = schema_with('a')

        previous = self.history.undo(present)
        assert previous == schema_with()
        assert self.history.can_redo

        assert self.history.redo(previous) == present
        assert self.history.labels() == {'past': ['add_field'], 'future': []}

    def test_record_clears_future(self):
        self.history.record(schema_with(), 'add_field')
        self.history.undo(schema_with('a'))
        self.history.record(schema_with(), 'add_field')
        assert not self.history.can_redo

    def test_capacity_evicts_oldest(self):
        for count in range(5):
            self.history.record(schema_with(*[str(i) for i in range(count)]), f'op{count}')
        assert self.history.labels()['past'] == ['op2', 'op3', 'op4']

    def test_future_is_bounded_too(self):
        for count in range(3):
            self.history.record(schema_with(*[str(i) for i in range(count)]))
        present = schema_with('0', '1', '2')
        while self.history.can_undo:
            present = self.history.undo(present)
        assert len(self.history.future) == 3

    def test_clear(self):
        self.history.record(schema_with())
        self.history.clear()
        assert not self.history.can_undo

    def test_dict_round_trip(self):
        self.history.record(schema_with(), 'add_field')
        self.history.record(schema_with('a'), 'update_field')
        self.history.undo(schema_with('a', 'b'))

        loaded = HistoryState.from_dict(self.history.to_dict(), capacity=3)
        assert loaded.labels() == self.history.labels()
        assert loaded.undo(schema_with('a')) == schema_with()
