"""
Unit tests for designer state persistence.
"""

import json
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from schemastudio.document_store import DocumentStore
from schemastudio.persistence import JsonFileStorage, MemoryStorage, create_storage
from schemastudio.schema_exceptions import StorageError
from test_fixtures import SchemaFixtures


class TestMemoryStorage:
    """Test cases for in-process storage."""

    def test_round_trip(self):
        storage = MemoryStorage()
        assert storage.load() is None
        storage.save({'selectedId': 'a'})
        assert storage.load() == {'selectedId': 'a'}
        storage.clear()
        assert storage.load() is None

    def test_version_mismatch_ignored(self):
        storage = MemoryStorage()
        storage.save({'selectedId': 'a'})
        storage.version = 2
        assert storage.load() is None

    def test_name_mismatch_is_an_error(self):
        storage = MemoryStorage()
        storage.save({})
        storage.name = 'other'
        with pytest.raises(StorageError):
            storage.load()


class TestJsonFileStorage:
    """Test cases for file storage."""

    def setup_method(self):
        """Set up test environment before each test."""
        self.test_dir = tempfile.mkdtemp()
        self.storage = JsonFileStorage(Path(self.test_dir) / 'state')

    def teardown_method(self):
        """Clean up after each test."""
        shutil.rmtree(self.test_dir)

    def test_missing_file(self):
        assert self.storage.load() is None

    def test_save_and_load(self):
        self.storage.save({'schema': SchemaFixtures.get_nested_schema()})
        assert self.storage.path.exists()
        assert self.storage.load()['schema'] == SchemaFixtures.get_nested_schema()
        assert list(self.storage.directory.glob('*.tmp')) == []

    def test_envelope_layout(self):
        self.storage.save({'selectedId': None})
        envelope = json.loads(self.storage.path.read_text(encoding='utf-8'))
        assert envelope['name'] == 'schemastudio_designer_v1'
        assert envelope['version'] == 1
        assert 'savedAt' in envelope

    def test_corrupted_file(self):
        self.storage.directory.mkdir(parents=True)
        self.storage.path.write_text('{broken', encoding='utf-8')
        with pytest.raises(StorageError) as exc_info:
            self.storage.load()
        assert 'corrupted' in exc_info.value.message

    def test_save_failure(self):
        with patch('schemastudio.persistence.os.replace', side_effect=OSError("disk full")):
            with pytest.raises(StorageError):
                self.storage.save({})
        assert list(self.storage.directory.glob('*.tmp')) == []

    def test_clear(self):
        self.storage.save({})
        self.storage.clear()
        self.storage.clear()
        assert not self.storage.path.exists()

    def test_store_survives_corrupted_state(self):
        self.storage.directory.mkdir(parents=True)
        self.storage.path.write_text('not json', encoding='utf-8')
        store = DocumentStore.from_storage(self.storage)
        assert store.schema == {'version': 1, 'fields': []}

    def test_store_survives_failed_save(self):
        store = DocumentStore(storage=self.storage)
        with patch.object(self.storage, 'save', side_effect=StorageError("read-only")):
            result = store.import_schema(SchemaFixtures.get_nested_schema())
        assert result.ok
        assert len(store.schema['fields']) == 5


class TestCreateStorage:
    """Test cases for create_storage."""

    def test_disabled(self):
        assert create_storage({'storage': {'enabled': False}}) is None

    def test_memory_backend(self):
        storage = create_storage({'storage': {'backend': 'memory', 'name': 'x'}})
        assert isinstance(storage, MemoryStorage)
        assert storage.name == 'x'

    def test_file_backend(self):
        storage = create_storage({'storage': {'directory': 'somewhere'}})
        assert isinstance(storage, JsonFileStorage)
        assert storage.path == Path('somewhere') / 'schemastudio_designer_v1.json'
