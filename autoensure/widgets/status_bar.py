"""Status bar widget mirroring the RCON connection state."""

from __future__ import annotations

from typing import Callable

from textual.widgets import Static

from autoensure.ensure import EnsureDispatcher
from autoensure.session import RconSession


class StatusBar(Static):
    """Compact status strip rendered above Textual's footer."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-3;
        color: $text;
    }

    StatusBar.connected {
        background: $success-darken-2;
    }
    """

    def __init__(self, session: RconSession, dispatcher: EnsureDispatcher) -> None:
        super().__init__("", id="status-bar")
        self._session = session
        self._dispatcher = dispatcher
        self._unsubscribe: Callable[[], None] | None = None

    async def on_mount(self) -> None:
        self._unsubscribe = self._session.subscribe(self.set_connected)
        self.set_connected(self._session.connected)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def set_connected(self, connected: bool) -> None:
        self.set_class(connected, "connected")
        self.update(self.render_status(connected))

    def render_status(self, connected: bool) -> str:
        snapshot = self._session.snapshot()
        delay_ms = int(self._dispatcher.reload_delay * 1000)
        parts = [
            "Auto Ensure Connected" if connected else "Disconnected",
            f"Mode: {self._dispatcher.mode.value}",
            f"Delay: {delay_ms} ms",
            f"Refresh: {'on' if self._dispatcher.auto_refresh else 'off'}",
        ]
        if connected and snapshot.profile is not None:
            parts.insert(1, f"Server: {snapshot.profile.key}")
        return " | ".join(parts)


__all__ = ["StatusBar"]
