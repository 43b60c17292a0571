"""App configuration loading helpers."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import tomllib

from pydantic import BaseModel, Field, ValidationError, field_validator

from .ensure import EnsureMode
from .models import ConnectionProfile, InvalidAddressFormat

CONFIG_FILE = Path.home() / ".config" / "autoensure" / "config.toml"


class ConnectionConfig(BaseModel):
    """Server connection stored in config.toml."""

    address: str
    port: int = Field(ge=0, le=65535)
    credential: str = ""

    def to_profile(self) -> ConnectionProfile:
        return ConnectionProfile(address=self.address, port=self.port, credential=self.credential)


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    mode: EnsureMode = EnsureMode.WORKSPACE
    auto_refresh: bool = True
    reload_delay_ms: int = Field(default=0, ge=0)
    health_check_timeout_ms: int = Field(default=5000, gt=0)
    probe_command: str = "refresh"
    poll_interval_ms: int = Field(default=500, gt=0)
    log_level: str = "INFO"
    connections: list[ConnectionConfig] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {value!r}")
        return level

    @property
    def reload_delay(self) -> float:
        return self.reload_delay_ms / 1000

    @property
    def health_check_timeout(self) -> float:
        return self.health_check_timeout_ms / 1000

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000

    def profiles(self) -> tuple[ConnectionProfile, ...]:
        return tuple(entry.to_profile() for entry in self.connections)

    def with_reload_delay(self, delay_ms: int) -> AppConfig:
        """Return a copy with the reload delay updated."""

        if delay_ms < 0:
            raise ValueError(f"reload delay must be >= 0, got {delay_ms}")
        return self.model_copy(update={"reload_delay_ms": delay_ms})

    def with_mode(self, mode: EnsureMode | str) -> AppConfig:
        return self.model_copy(update={"mode": EnsureMode(mode)})

    def with_auto_refresh(self, enabled: bool) -> AppConfig:
        return self.model_copy(update={"auto_refresh": enabled})

    def with_connection(self, profile: ConnectionProfile) -> AppConfig:
        """Return a copy with the connection appended."""

        entry = ConnectionConfig(address=profile.address, port=profile.port, credential=profile.credential)
        return self.model_copy(update={"connections": [*self.connections, entry]})


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()
    try:
        return AppConfig(**data)
    except ValidationError:
        return AppConfig()


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [
        f'mode = "{config.mode.value}"',
        f"auto_refresh = {str(config.auto_refresh).lower()}",
        f"reload_delay_ms = {config.reload_delay_ms}",
        f"health_check_timeout_ms = {config.health_check_timeout_ms}",
        f"probe_command = {json.dumps(config.probe_command)}",
        f"poll_interval_ms = {config.poll_interval_ms}",
        f'log_level = "{config.log_level}"',
    ]
    if config.connections:
        lines.append("")
        for connection in config.connections:
            lines.append("[[connections]]")
            lines.append(f"address = {json.dumps(connection.address)}")
            lines.append(f"port = {connection.port}")
            if connection.credential:
                lines.append(f"credential = {json.dumps(connection.credential)}")
            lines.append("")
    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if not isinstance(raw, dict):
        return data
    mode = raw.get("mode")
    if isinstance(mode, str) and mode in {item.value for item in EnsureMode}:
        data["mode"] = mode
    auto_refresh = raw.get("auto_refresh")
    if isinstance(auto_refresh, bool):
        data["auto_refresh"] = auto_refresh
    for key in ("reload_delay_ms", "health_check_timeout_ms", "poll_interval_ms"):
        value = raw.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            data[key] = value
    probe_command = raw.get("probe_command")
    if isinstance(probe_command, str) and probe_command:
        data["probe_command"] = probe_command
    log_level = raw.get("log_level")
    if isinstance(log_level, str) and log_level.upper() in logging.getLevelNamesMapping():
        data["log_level"] = log_level
    connections = raw.get("connections")
    if isinstance(connections, list):
        parsed: list[dict[str, object]] = []
        for entry in connections:
            if not isinstance(entry, dict):
                continue
            parsed_entry = _parse_connection(entry)
            if parsed_entry is not None:
                parsed.append(parsed_entry)
        data["connections"] = parsed
    return data


def _parse_connection(entry: dict[str, object]) -> dict[str, object] | None:
    credential = entry.get("credential", entry.get("password", ""))
    try:
        if "address" in entry:
            profile = ConnectionProfile.from_record(entry)
        else:
            profile = ConnectionProfile.from_record({"ip": entry.get("ip"), "password": credential})
    except InvalidAddressFormat:
        return None
    return {"address": profile.address, "port": profile.port, "credential": str(credential)}


__all__ = ["AppConfig", "CONFIG_FILE", "ConnectionConfig", "load_config", "save_config"]
