from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from platformdirs import user_data_dir

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "storage.json"


def default_storage_path(app_name: str = "pelycan") -> Path:
    return Path(user_data_dir(app_name, "Pelycan")) / DEFAULT_FILENAME


@dataclass
class KeyValueStore:
    """Persistent string -> string store shared by every workflow in the process.

    Reads never raise: a missing or unreadable file behaves like an empty store
    and the error is logged. Writes are acknowledged even when they fail; the
    failure is logged and the store keeps its previous content.

    There is no transaction across keys. Each call reads and rewrites the whole
    file, so a crash between two calls can leave related keys inconsistent.
    """

    path: Path = field(default_factory=default_storage_path)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._read().get(key)
        if value is None:
            return None
        return str(value)

    def set(self, key: str, value: str) -> None:
        self.multi_set([(key, value)])

    def multi_set(self, pairs: Iterable[tuple[str, str]]) -> None:
        with self._lock:
            data = self._read()
            for key, value in pairs:
                if not isinstance(value, str):
                    raise TypeError(f"value for {key!r} must be a string, got {type(value).__name__}")
                data[key] = value
            self._write(data)

    def remove(self, key: str) -> None:
        self.remove_many([key])

    def remove_many(self, keys: Iterable[str]) -> None:
        with self._lock:
            data = self._read()
            changed = False
            for key in keys:
                if key in data:
                    del data[key]
                    changed = True
            if changed:
                self._write(data)

    def get_all_keys(self) -> list[str]:
        with self._lock:
            return list(self._read().keys())

    def get_json(self, key: str) -> Any | None:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.error("kv_store_decode_failure", extra={"key": key})
            return None

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value, ensure_ascii=False))

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (ValueError, OSError):
            logger.exception("kv_store_read_failure", extra={"path": str(self.path)})
            return {}
        if not isinstance(payload, dict):
            logger.error("kv_store_read_failure", extra={"path": str(self.path)})
            return {}
        return payload

    def _write(self, data: dict[str, str]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError:
            logger.exception("kv_store_write_failure", extra={"path": str(self.path)})
            return
        try:
            self.path.chmod(0o600)
        except OSError:
            pass
