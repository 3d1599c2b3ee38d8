"""Key-value stores used for the region cache and package metadata."""
import copy
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict

from depwright.repositories.file_utils import atomic_write_json, load_json_file


class KeyValueStore(ABC):
    """Minimal persistent key-value interface."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> bool:
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        pass


class JsonFileStore(KeyValueStore):
    """
    Stores all keys in one JSON object on disk.

    Every write rewrites the whole file atomically. Concurrent writers on
    different instances are last-write-wins.
    """

    def __init__(self, file_path: str):
        self._file_path = file_path
        self._lock = threading.Lock()

    @property
    def file_path(self) -> str:
        return self._file_path

    def _load(self) -> Dict[str, Any]:
        data = load_json_file(self._file_path, default={})
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            value = self._load().get(key, default)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> bool:
        with self._lock:
            data = self._load()
            data[key] = value
            return atomic_write_json(self._file_path, data)

    def delete(self, key: str) -> bool:
        with self._lock:
            data = self._load()
            if key not in data:
                return True
            del data[key]
            return atomic_write_json(self._file_path, data)

    def all(self) -> Dict[str, Any]:
        with self._lock:
            return self._load()
