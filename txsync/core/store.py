"""Durable key/value persistence and the configuration store built on it."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from ..models.config import FileMapping, FolderMapping, Settings, SyncConfig

logger = logging.getLogger(__name__)

CONFIG_KEY = "config"
SECTIONS = ("settings", "folders", "fileMappings")


class KeyValueBackend(Protocol):
    """String key/value storage shared by the config store and activity log."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryBackend:
    """In-process backend, used by tests and dry runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileBackend:
    """Backend persisting every key into one JSON file.

    The file is re-read on every access so that separate invocations
    (a timer tick and a webhook delivery) each see the latest write.
    """

    def __init__(self, path: Path) -> None:
        """Initialize backend.

        Args:
            path: Path to the store file (created on first write)
        """
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        """Read the store file. Undecodable content reads as empty, so the next write replaces it."""
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except ValueError as e:
            logger.error("Store file %s is not valid JSON, treating it as empty: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.error("Store file %s does not contain an object, treating it as empty", self.path)
            return {}
        return data

    def _dump(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".store-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


class ConfigStore:
    """Reads and writes the single configuration blob.

    There is no locking: concurrent writers overwrite each other and the
    last write wins.
    """

    def __init__(self, backend: KeyValueBackend) -> None:
        self.backend = backend

    def _read_raw(self) -> dict[str, Any]:
        try:
            raw = self.backend.get(CONFIG_KEY)
            if not raw:
                return {}
            data = json.loads(raw)
        except (OSError, ValueError) as e:
            logger.error("Stored configuration is unreadable, using empty config: %s", e)
            return {}
        if not isinstance(data, dict):
            logger.error("Stored configuration is not an object, using empty config")
            return {}
        return data

    def read(self) -> SyncConfig:
        """Load the configuration. Malformed data yields an empty config."""
        data = self._read_raw()
        try:
            return SyncConfig.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Stored configuration is malformed, using empty config: %s", e)
            return SyncConfig()

    def write(self, config: SyncConfig) -> None:
        """Persist the whole configuration blob."""
        self.backend.set(CONFIG_KEY, json.dumps(config.to_dict()))

    def update_section(self, name: str, value: Any) -> None:
        """Replace one top-level section of the blob.

        Args:
            name: One of ``settings``, ``folders`` or ``fileMappings``
            value: Model object, list of model objects, or plain JSON data

        Raises:
            ValueError: If the section name is unknown or the value does not
                load as that section's model
        """
        if name not in SECTIONS:
            raise ValueError(f"Unknown config section: {name}")
        section = _serialize(value)
        _validate_section(name, section)
        data = self._read_raw()
        data[name] = section
        self.backend.set(CONFIG_KEY, json.dumps(data))


def _validate_section(name: str, section: Any) -> None:
    try:
        if name == "settings":
            if not isinstance(section, dict):
                raise TypeError("settings must be an object")
            Settings.from_dict(section)
            return
        if not isinstance(section, list):
            raise TypeError(f"{name} must be a list")
        model = FolderMapping if name == "folders" else FileMapping
        for item in section:
            model.from_dict(item)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid {name} section: {e}") from e


def _serialize(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value
