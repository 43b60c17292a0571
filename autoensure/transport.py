"""Datagram transports feeding typed events into the session."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Protocol, Union, runtime_checkable

from .codec import TransportError, decode_datagram, encode_command
from .models import ConnectionProfile

LOG = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResponseEvent:
    """Decoded text of one inbound datagram."""

    text: str


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """Transport-level failure (malformed packet, ICMP refusal, socket error)."""

    error: Exception


@dataclass(frozen=True, slots=True)
class EndEvent:
    """The transport was closed."""


TransportEvent = Union[ResponseEvent, ErrorEvent, EndEvent]
TransportListener = Callable[[TransportEvent], None]


@runtime_checkable
class RconTransport(Protocol):
    """Protocol implemented by RCON transports."""

    async def open(self, profile: ConnectionProfile, listener: TransportListener) -> None:
        """Bind the transport to the profile and start delivering events."""

    def send(self, command: str) -> None:
        """Transmit a command without waiting for delivery."""

    def close(self) -> None:
        """Close the transport; an ``EndEvent`` may follow."""


TransportFactory = Callable[[], RconTransport]


class _RconDatagramProtocol(asyncio.DatagramProtocol):
    def __init__(self, listener: TransportListener) -> None:
        self._listener = listener

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        try:
            text = decode_datagram(data)
        except TransportError as exc:
            LOG.warning("Dropping malformed datagram", extra={"peer": addr, "size": len(data)})
            self._listener(ErrorEvent(exc))
            return
        self._listener(ResponseEvent(text))

    def error_received(self, exc: Exception) -> None:
        self._listener(ErrorEvent(TransportError(str(exc))))

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            self._listener(ErrorEvent(TransportError(str(exc))))
            return
        self._listener(EndEvent())


class UdpRconTransport:
    """Connectionless UDP transport (no challenge, credential sent per command)."""

    def __init__(self) -> None:
        self._transport: asyncio.DatagramTransport | None = None
        self._profile: ConnectionProfile | None = None

    @property
    def is_open(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    async def open(self, profile: ConnectionProfile, listener: TransportListener) -> None:
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _RconDatagramProtocol(listener),
                remote_addr=(profile.address, profile.port),
            )
        except OSError as exc:
            raise TransportError(f"Failed to open socket to {profile.key}: {exc}") from exc
        self._transport = transport
        self._profile = profile
        LOG.debug("Datagram endpoint opened", extra={"peer": profile.key})

    def send(self, command: str) -> None:
        if not self.is_open or self._profile is None:
            raise TransportError("Transport is not open.")
        self._transport.sendto(encode_command(command, self._profile.credential))  # type: ignore[union-attr]

    def close(self) -> None:
        transport, self._transport = self._transport, None
        self._profile = None
        if transport is not None:
            transport.close()


__all__ = [
    "EndEvent",
    "ErrorEvent",
    "RconTransport",
    "ResponseEvent",
    "TransportEvent",
    "TransportFactory",
    "TransportListener",
    "UdpRconTransport",
]
