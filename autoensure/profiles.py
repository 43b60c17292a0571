"""Connection profiles and the bounded recent-connection history."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from .models import ConnectionProfile, InvalidAddressFormat
from .store import ProfileStore

LOG = logging.getLogger(__name__)

CONNECTION_LIST_KEY = "connection_list"
HISTORY_KEY = "connection_history"
HISTORY_LIMIT = 5


@dataclass(frozen=True, slots=True)
class ProfileEntry:
    """Profile decorated for display in pickers."""

    profile: ConnectionProfile
    description: str

    @property
    def label(self) -> str:
        return self.profile.key


class ProfileBook:
    """Reads and writes profiles through a :class:`ProfileStore`."""

    def __init__(
        self,
        store: ProfileStore,
        *,
        config_profiles: Sequence[ConnectionProfile] = (),
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        if history_limit <= 0:
            raise ValueError(f"history_limit must be > 0, got {history_limit}")
        self._store = store
        self._config_profiles = tuple(config_profiles)
        self._history_limit = history_limit

    @property
    def store(self) -> ProfileStore:
        return self._store

    def configured(self) -> tuple[ConnectionProfile, ...]:
        """Profiles from the config file followed by user-added ones."""

        return self._config_profiles + tuple(self._read(CONNECTION_LIST_KEY))

    def add_profile(self, profile: ConnectionProfile) -> None:
        records = self._raw(CONNECTION_LIST_KEY)
        records.append(profile.to_record())
        self._store.set(CONNECTION_LIST_KEY, records)
        LOG.info("Added connection", extra={"peer": profile.key})

    def history(self) -> tuple[ConnectionProfile, ...]:
        """Stored history, oldest first, duplicates included."""

        return tuple(self._read(HISTORY_KEY))

    def add_history(self, profile: ConnectionProfile) -> tuple[ConnectionProfile, ...]:
        """Append a used profile, dropping the oldest entries past the limit."""

        records = self._raw(HISTORY_KEY)
        records.append(profile.to_record())
        records = records[-self._history_limit:]
        self._store.set(HISTORY_KEY, records)
        return self.history()

    def unique_history(self) -> tuple[ConnectionProfile, ...]:
        """One entry per ``address:port``.

        Entries keep the position of their first use, with the most recent
        record's credential.
        """

        unique: dict[str, ConnectionProfile] = {}
        for profile in self.history():
            unique[profile.key] = profile
        return tuple(unique.values())

    def entries(self) -> tuple[ProfileEntry, ...]:
        configured = (ProfileEntry(profile, "Config") for profile in self.configured())
        history = (ProfileEntry(profile, "History") for profile in self.unique_history())
        return (*configured, *history)

    def find(self, key: str) -> ConnectionProfile | None:
        """Look up a profile by ``address:port`` across config and history."""

        for entry in self.entries():
            if entry.profile.key == key:
                return entry.profile
        return None

    def _raw(self, key: str) -> list[dict[str, Any]]:
        value = self._store.get(key) or []
        return [dict(record) for record in value if isinstance(record, dict)]

    def _read(self, key: str) -> Iterable[ConnectionProfile]:
        for record in self._raw(key):
            try:
                yield ConnectionProfile.from_record(record)
            except InvalidAddressFormat:
                LOG.warning("Skipping malformed stored profile", extra={"store_key": key})


__all__ = [
    "CONNECTION_LIST_KEY",
    "HISTORY_KEY",
    "HISTORY_LIMIT",
    "ProfileBook",
    "ProfileEntry",
]
