"""RCON session state machine: connect, health-check, send, disconnect."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from .codec import TransportError, classify, strip_print_header
from .models import CommandResponse, ConnectionProfile, RconError
from .transport import (
    EndEvent,
    ErrorEvent,
    RconTransport,
    ResponseEvent,
    TransportEvent,
    TransportFactory,
    TransportListener,
    UdpRconTransport,
)

LOG = logging.getLogger(__name__)

DEFAULT_HEALTH_CHECK_TIMEOUT = 5.0
DEFAULT_PROBE_COMMAND = "refresh"

StatusListener = Callable[[bool], None]
ResponseListener = Callable[[CommandResponse], None]
ErrorListener = Callable[[RconError], None]


class AlreadyConnected(RconError):
    """Raised when connecting while a session is not fully disconnected."""


class NotConnected(RconError):
    """Raised when sending without an established connection."""


class ConnectionFailed(RconError):
    """Raised when the health check does not get an answer in time."""


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Point-in-time view of the session for the UI."""

    state: ConnectionState
    profile: ConnectionProfile | None
    pending_health_check: bool
    last_response_at: datetime | None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED


class RconSession:
    """Owns the single logical connection to a game server console.

    All mutation happens on the event loop thread: transport callbacks,
    caller operations and timers are serialized by asyncio. The health check
    treats the first response after the probe as the acknowledgment, there is
    no correlation token in this protocol variant.
    """

    def __init__(
        self,
        *,
        transport_factory: TransportFactory | None = None,
        health_check_timeout: float = DEFAULT_HEALTH_CHECK_TIMEOUT,
        probe_command: str = DEFAULT_PROBE_COMMAND,
    ) -> None:
        self._transport_factory = transport_factory or UdpRconTransport
        self._health_check_timeout = health_check_timeout
        self._probe_command = probe_command
        self._transport: RconTransport | None = None
        self._state = ConnectionState.DISCONNECTED
        self._profile: ConnectionProfile | None = None
        self._pending_health_check = False
        self._health_waiter: asyncio.Future[bool] | None = None
        self._last_response_at: datetime | None = None
        self._status_listeners: set[StatusListener] = set()
        self._response_listeners: set[ResponseListener] = set()
        self._error_listeners: set[ErrorListener] = set()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def profile(self) -> ConnectionProfile | None:
        return self._profile

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def pending_health_check(self) -> bool:
        return self._pending_health_check

    @property
    def last_response_at(self) -> datetime | None:
        return self._last_response_at

    @property
    def health_check_timeout(self) -> float:
        return self._health_check_timeout

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            profile=self._profile,
            pending_health_check=self._pending_health_check,
            last_response_at=self._last_response_at,
        )

    async def connect(self, profile: ConnectionProfile) -> SessionSnapshot:
        """Open the transport and confirm liveness with a health check."""

        if self._state is not ConnectionState.DISCONNECTED:
            raise AlreadyConnected(f"Already connected to {self._profile}; disconnect first.")
        transport = self._transport_factory()
        self._transport = transport
        self._profile = profile
        self._set_state(ConnectionState.CONNECTING)
        try:
            await transport.open(profile, self._wrap_transport_listener(transport))
        except TransportError:
            if self._transport is transport:
                self._teardown()
            raise
        if self._transport is not transport:
            # disconnected while the socket was being opened
            transport.close()
            raise ConnectionFailed(f"Connection to {profile.key} was cancelled.")
        self._set_state(ConnectionState.AUTHENTICATING)
        if not await self._health_check():
            if self._transport is transport:
                self._teardown()
            raise ConnectionFailed(
                f"No response from {profile.key} within {self._health_check_timeout:g}s."
            )
        self._set_state(ConnectionState.CONNECTED)
        LOG.info("Connected to server", extra={"peer": profile.key})
        self._notify_status(True)
        return self.snapshot()

    def send(self, command: str) -> None:
        """Transmit one console command; delivery is not acknowledged."""

        if self._state is not ConnectionState.CONNECTED or self._transport is None:
            raise NotConnected("No connection established.")
        self._transport.send(command)
        LOG.debug("Sent command", extra={"command": command})

    def disconnect(self) -> None:
        """Close the connection; a no-op when already disconnected."""

        if self._state in (ConnectionState.DISCONNECTED, ConnectionState.DISCONNECTING):
            return
        LOG.info("Disconnecting", extra={"peer": str(self._profile)})
        self._teardown()

    async def check_connection(self) -> bool:
        """Run an on-demand health check; tears the session down on failure."""

        if self._state is not ConnectionState.CONNECTED:
            return False
        transport = self._transport
        alive = await self._health_check()
        if not alive and transport is not None and self._transport is transport:
            LOG.warning("Health check failed", extra={"peer": str(self._profile)})
            self._teardown()
        return alive

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Subscribe to connected/disconnected transitions."""

        self._status_listeners.add(listener)

        def _unsubscribe() -> None:
            self._status_listeners.discard(listener)

        return _unsubscribe

    def subscribe_responses(self, listener: ResponseListener) -> Callable[[], None]:
        """Subscribe to classified server responses (probe acks excluded)."""

        self._response_listeners.add(listener)

        def _unsubscribe() -> None:
            self._response_listeners.discard(listener)

        return _unsubscribe

    def subscribe_errors(self, listener: ErrorListener) -> Callable[[], None]:
        """Subscribe to unexpected transport failures."""

        self._error_listeners.add(listener)

        def _unsubscribe() -> None:
            self._error_listeners.discard(listener)

        return _unsubscribe

    async def _health_check(self) -> bool:
        transport = self._transport
        if transport is None:
            return False
        waiter = self._health_waiter
        if waiter is None or waiter.done():
            waiter = asyncio.get_running_loop().create_future()
            self._health_waiter = waiter
            self._pending_health_check = True
            transport.send(self._probe_command)
        try:
            acked = await asyncio.wait_for(asyncio.shield(waiter), self._health_check_timeout)
        except asyncio.TimeoutError:
            acked = False
        if self._health_waiter is waiter:
            self._health_waiter = None
            self._pending_health_check = False
        return acked and self._transport is transport

    def _resolve_health_check(self, acked: bool) -> None:
        waiter = self._health_waiter
        self._pending_health_check = False
        if waiter is not None and not waiter.done():
            waiter.set_result(acked)

    def _wrap_transport_listener(self, transport: RconTransport) -> TransportListener:
        def _callback(event: TransportEvent) -> None:
            self._handle_event(transport, event)

        return _callback

    def _handle_event(self, source: RconTransport, event: TransportEvent) -> None:
        if source is not self._transport:
            return
        if isinstance(event, ResponseEvent):
            self._last_response_at = datetime.now(tz=timezone.utc)
            if self._pending_health_check:
                LOG.debug(
                    "Health check acknowledged",
                    extra={"peer": str(self._profile), "response": strip_print_header(event.text)},
                )
                self._resolve_health_check(True)
                return
            response = classify(event.text)
            for listener in tuple(self._response_listeners):
                listener(response)
            return
        if self._state is ConnectionState.DISCONNECTING:
            return
        if isinstance(event, ErrorEvent):
            error = event.error
            if not isinstance(error, RconError):
                error = TransportError(str(error))
        elif isinstance(event, EndEvent):
            error = TransportError("Connection closed")
        else:  # pragma: no cover - exhaustive over TransportEvent
            return
        LOG.warning("Unexpected transport failure", extra={"peer": str(self._profile), "error": str(error)})
        self._resolve_health_check(False)
        self._teardown()
        for listener in tuple(self._error_listeners):
            listener(error)

    def _teardown(self) -> None:
        self._set_state(ConnectionState.DISCONNECTING)
        transport = self._transport
        if transport is not None:
            try:
                transport.close()
            except OSError:
                LOG.exception("Failed to close transport")
        self._transport = None
        self._profile = None
        # a waiter left behind would swallow the next connect's probe
        self._resolve_health_check(False)
        self._health_waiter = None
        self._set_state(ConnectionState.DISCONNECTED)
        self._notify_status(False)

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            LOG.debug("Session state change", extra={"from": self._state.value, "to": state.value})
        self._state = state

    def _notify_status(self, connected: bool) -> None:
        for listener in tuple(self._status_listeners):
            listener(connected)


__all__ = [
    "AlreadyConnected",
    "ConnectionFailed",
    "ConnectionState",
    "NotConnected",
    "RconSession",
    "SessionSnapshot",
]
