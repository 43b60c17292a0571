"""Shared dataclasses used across session, dispatcher and profile modules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, Mapping


class RconError(RuntimeError):
    """Base class for every error surfaced by the RCON core."""


class InvalidAddressFormat(RconError, ValueError):
    """Raised when a connection string is not in ``address:port`` form."""


@dataclass(frozen=True, slots=True)
class ConnectionProfile:
    """Address + credential pair identifying a reachable server."""

    address: str
    port: int
    credential: str

    @property
    def key(self) -> str:
        """Dedup key shared by profiles pointing at the same server."""

        return f"{self.address}:{self.port}"

    def to_record(self) -> dict[str, object]:
        return {"address": self.address, "port": self.port, "credential": self.credential}

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> ConnectionProfile:
        """Build a profile from a stored record, accepting the legacy ``ip`` form."""

        if "ip" in record and "address" not in record:
            return parse_profile(str(record["ip"]), str(record.get("password", "")))
        address = record.get("address")
        port = record.get("port")
        if not isinstance(address, str) or not address:
            raise InvalidAddressFormat(f"Stored profile has no address: {dict(record)!r}")
        return cls(
            address=address,
            port=_coerce_port(port),
            credential=str(record.get("credential", "")),
        )

    def __str__(self) -> str:
        return self.key


def parse_profile(value: str, credential: str) -> ConnectionProfile:
    """Parse ``address:port`` user input into a profile."""

    parts = value.strip().split(":")
    if len(parts) != 2 or not parts[0]:
        raise InvalidAddressFormat(f"Invalid address '{value}', use 'IP:Port' format.")
    return ConnectionProfile(address=parts[0], port=_coerce_port(parts[1]), credential=credential)


def _coerce_port(value: object) -> int:
    try:
        port = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise InvalidAddressFormat(f"Invalid port {value!r}.") from exc
    if not 0 <= port <= 65535:
        raise InvalidAddressFormat(f"Port {port} is out of range.")
    return port


class ResponseKind(str, Enum):
    """Classification of a decoded server response."""

    INFORMATIONAL = "informational"
    AUTH_ERROR = "auth_error"
    RESOURCE_NOT_FOUND = "resource_not_found"
    HEALTH_ACK = "health_ack"


@dataclass(frozen=True, slots=True)
class CommandResponse:
    """Decoded protocol payload delivered to response listeners."""

    kind: ResponseKind
    text: str

    @property
    def is_error(self) -> bool:
        return self.kind in (ResponseKind.AUTH_ERROR, ResponseKind.RESOURCE_NOT_FOUND)


@dataclass(frozen=True, slots=True)
class EnsureRequest:
    """Targets to (re)load for one save event."""

    targets: tuple[str, ...]
    with_refresh: bool = False

    @classmethod
    def build(cls, targets: Iterable[str], *, with_refresh: bool) -> EnsureRequest:
        # dict keeps insertion order while dropping repeats
        return cls(targets=tuple(dict.fromkeys(targets)), with_refresh=with_refresh)

    def commands(self) -> Iterator[str]:
        prefix = "refresh;" if self.with_refresh else ""
        for target in self.targets:
            yield f"{prefix}ensure {target}"


__all__ = [
    "CommandResponse",
    "ConnectionProfile",
    "EnsureRequest",
    "InvalidAddressFormat",
    "RconError",
    "ResponseKind",
    "parse_profile",
]
