"""
Persistence of designer state.

Storage is an opaque get/set keyed by a fixed name and schema version. The
store saves after each mutation and loads once at startup; a missing or
unreadable state is never fatal.
"""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional, Union

from .schema_exceptions import StorageError
from .schema_model import SCHEMA_VERSION

logger = logging.getLogger(__name__)

STORAGE_NAME = "schemastudio_designer_v1"


class StateStorage:
    """Interface for designer state storage."""

    def __init__(self, name: str = STORAGE_NAME, version: int = SCHEMA_VERSION):
        self.name = name
        self.version = version

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored state, or None if nothing (compatible) is stored."""
        raise NotImplementedError

    def save(self, state: Dict[str, Any]) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def _wrap(self, state: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'name': self.name,
            'version': self.version,
            'savedAt': datetime.now().isoformat(),
            'state': state,
        }

    def _unwrap(self, envelope: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(envelope, dict) or envelope.get('name') != self.name:
            raise StorageError(f"Stored state for '{self.name}' has an unexpected layout")
        if envelope.get('version') != self.version:
            logger.warning(
                f"Ignoring stored state version {envelope.get('version')} "
                f"(expected {self.version})"
            )
            return None
        state = envelope.get('state')
        if not isinstance(state, dict):
            raise StorageError(f"Stored state for '{self.name}' is not a mapping")
        return state


class MemoryStorage(StateStorage):
    """In-process storage, used by tests and embedding surfaces."""

    def __init__(self, name: str = STORAGE_NAME, version: int = SCHEMA_VERSION):
        super().__init__(name, version)
        self._envelope: Optional[str] = None

    def load(self) -> Optional[Dict[str, Any]]:
        if self._envelope is None:
            return None
        return self._unwrap(json.loads(self._envelope))

    def save(self, state: Dict[str, Any]) -> None:
        self._envelope = json.dumps(self._wrap(state))

    def clear(self) -> None:
        self._envelope = None


class JsonFileStorage(StateStorage):
    """Stores state as ``<directory>/<name>.json``, written atomically."""

    def __init__(self, directory: Union[str, Path], name: str = STORAGE_NAME,
                 version: int = SCHEMA_VERSION):
        super().__init__(name, version)
        self.directory = Path(directory)

    @property
    def path(self) -> Path:
        return self.directory / f"{self.name}.json"

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Load stored state.

        Returns:
            State dictionary, or None if no file exists or its version differs

        Raises:
            StorageError: If the file cannot be read or parsed
        """
        if not self.path.exists():
            logger.info(f"No stored designer state at {self.path}")
            return None

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                envelope = json.load(f)
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored designer state is corrupted: {self.path}", e)
        except (IOError, OSError) as e:
            raise StorageError(f"Cannot read stored designer state: {self.path}", e)

        state = self._unwrap(envelope)
        if state is not None:
            logger.info(f"Loaded designer state from {self.path}")
        return state

    def save(self, state: Dict[str, Any]) -> None:
        """
        Write state atomically (temp file in the same directory, then replace).

        Raises:
            StorageError: If the state cannot be written
        """
        tmp_path = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{self.name}.", suffix=".tmp")
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(self._wrap(state), f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
            tmp_path = None
            logger.debug(f"Saved designer state to {self.path}")
        except (IOError, OSError, TypeError, ValueError) as e:
            raise StorageError(f"Cannot save designer state to {self.path}", e)
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Cannot remove stored designer state: {self.path}", e)


def create_storage(config: Dict[str, Any]) -> Optional[StateStorage]:
    """
    Build the storage configured in the 'storage' config section.

    Returns:
        A storage instance, or None when persistence is disabled
    """
    storage_config = config.get('storage', {})
    if not storage_config.get('enabled', True):
        logger.info("Designer state persistence is disabled")
        return None
    name = storage_config.get('name', STORAGE_NAME)
    if storage_config.get('backend', 'file') == 'memory':
        return MemoryStorage(name)
    return JsonFileStorage(storage_config.get('directory', '.schemastudio'), name)
