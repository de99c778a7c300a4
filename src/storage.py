"""
Key-Value Storage
=================
Persistent key-value stores for session state.

The session components only need three operations (get, set, remove) on
string values. Two implementations are provided:

Classes:
    KeyValueStore: Interface shared by all stores
    MemoryKeyValueStore: Process-local store for tests and embedding
    JsonFileKeyValueStore: Single JSON document on disk, survives restarts

Values are JSON strings produced by the callers; the stores never parse
them.

Usage:
    store = JsonFileKeyValueStore("/var/lib/kasina/session_store.json")
    store.set("timer-target-duration", "600")
    store.get("timer-target-duration")  # "600"
    store.remove("timer-target-duration")

Module: storage
Version: 1.0.0
"""

import json
import logging
import os

logger = logging.getLogger(__name__)


class KeyValueStore:
    """
    Interface for persistent string key-value stores.

    Implementations are synchronous. set() and remove() may raise OSError
    when the backing medium fails; callers decide whether that is fatal.
    """

    def get(self, key):
        """Return the stored string for key, or None."""
        raise NotImplementedError

    def set(self, key, value):
        """Store value (a string) under key, replacing any previous value."""
        raise NotImplementedError

    def remove(self, key):
        """Remove key. Removing a missing key is not an error."""
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Contents are lost when the process exits."""

    def __init__(self, initial=None):
        self._data = dict(initial or {})

    def get(self, key):
        return self._data.get(key)

    def set(self, key, value):
        if not isinstance(value, str):
            raise TypeError(f"Store values must be strings, got {type(value).__name__}")
        self._data[key] = value

    def remove(self, key):
        self._data.pop(key, None)

    def keys(self):
        """List stored keys."""
        return list(self._data.keys())


class JsonFileKeyValueStore(KeyValueStore):
    """
    Store persisted as one JSON object on disk.

    Every write rewrites the whole document through a temporary file and
    os.replace(), so a crash mid-write leaves either the old or the new
    document, never a truncated one.

    Usage:
        store = JsonFileKeyValueStore("session_store.json")
        store.set("active-session-record", json.dumps(record.to_dict()))
    """

    def __init__(self, path):
        """
        Initialize file-backed store.

        A missing file is treated as an empty store. A corrupted file is
        logged and treated as empty; it is overwritten on the next write.

        Args:
            path: Path to the JSON document
        """
        self.path = str(path)
        self._data = self._load()

    def _load(self):
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as e:
            logger.warning(f"[Storage] {self.path} is corrupted, starting empty: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"[Storage] {self.path} does not hold a JSON object, starting empty")
            return {}

        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self, data):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        tmp_path = self.path + ".tmp"
        try:
            with open(tmp_path, "w") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise OSError(f"Failed to write store {self.path}: {e}")

    def get(self, key):
        return self._data.get(key)

    def set(self, key, value):
        if not isinstance(value, str):
            raise TypeError(f"Store values must be strings, got {type(value).__name__}")
        updated = dict(self._data)
        updated[key] = value
        self._flush(updated)
        self._data = updated

    def remove(self, key):
        if key not in self._data:
            return
        updated = dict(self._data)
        del updated[key]
        self._flush(updated)
        self._data = updated
