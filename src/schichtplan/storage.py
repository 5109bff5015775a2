"""
Key-Value Storage for Schichtplan

The persistence port used by the DataManager: a tiny string key-value store
with an in-memory implementation (tests) and a JSON-file implementation that
keeps one file per key in the application's data directory.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

KEY_PREFIX = "schichtplan_"


class StorageError(Exception):
    """Raised when the backing store cannot be read or written"""
    pass


class KeyValueStore(ABC):
    """One serialized record per key"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def remove(self, key: str) -> None:
        self.values.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Stores each key as <data_dir>/schichtplan_<key>.json"""

    def __init__(self, data_dir):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.data_dir / f"{KEY_PREFIX}{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (IOError, OSError) as e:
            raise StorageError(f"Failed to read {path}: {e}")

    def set(self, key: str, value: str) -> None:
        """Write atomically, keeping the previous version as .bak"""
        path = self.path_for(key)
        temp_file = path.with_suffix('.tmp')
        backup_file = path.with_suffix('.bak')

        try:
            with open(temp_file, 'w', encoding='utf-8') as f:
                f.write(value)

            if path.exists():
                path.replace(backup_file)

            # Atomic rename: move temp file to final location
            temp_file.replace(path)

        except (IOError, OSError) as e:
            logger.error(f"I/O error while writing {path}: {e}", exc_info=True)
            raise StorageError(f"Failed to write {path}: {e}")

        finally:
            if temp_file.exists():
                try:
                    temp_file.unlink()
                except OSError as cleanup_e:
                    logger.error(f"Failed to clean up temporary file {temp_file}: {cleanup_e}", exc_info=True)

    def remove(self, key: str) -> None:
        path = self.path_for(key)
        try:
            if path.exists():
                path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to remove {path}: {e}")
