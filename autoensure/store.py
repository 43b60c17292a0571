"""Key-value stores backing profiles and connection history."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import tomllib

LOG = logging.getLogger(__name__)

STATE_FILE = Path.home() / ".local" / "state" / "autoensure" / "state.toml"


@runtime_checkable
class ProfileStore(Protocol):
    """Minimal get/set contract for persisted lists of records."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...


class MemoryStore:
    """Dictionary-backed store used by tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value


class TomlStateStore:
    """Persists lists of flat records as ``[[key]]`` tables in a TOML file."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or STATE_FILE
        self._data: dict[str, list[dict[str, object]]] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> list[dict[str, object]] | None:
        data = self._load()
        records = data.get(key)
        if records is None:
            return None
        return [dict(record) for record in records]

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = [dict(record) for record in value]
        self._save(data)

    def _load(self) -> dict[str, list[dict[str, object]]]:
        if self._data is not None:
            return self._data
        data: dict[str, list[dict[str, object]]] = {}
        try:
            with self._path.open("rb") as handle:
                raw = tomllib.load(handle)
        except FileNotFoundError:
            raw = {}
        except (tomllib.TOMLDecodeError, OSError):
            LOG.warning("Ignoring unreadable state file", extra={"path": str(self._path)})
            raw = {}
        for key, records in raw.items():
            if isinstance(records, list):
                data[str(key)] = [dict(record) for record in records if isinstance(record, dict)]
        self._data = data
        return data

    def _save(self, data: dict[str, list[dict[str, object]]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        lines: list[str] = []
        for key in sorted(data):
            for record in data[key]:
                lines.append(f"[[{key}]]")
                for field, value in record.items():
                    rendered = _render_value(value)
                    if rendered is not None:
                        lines.append(f"{field} = {rendered}")
                lines.append("")
        self._path.write_text("\n".join(lines))


def _render_value(value: object) -> str | None:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return json.dumps(value)
    return None


__all__ = ["MemoryStore", "ProfileStore", "STATE_FILE", "TomlStateStore"]
