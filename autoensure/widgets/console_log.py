"""Scrolling log of server responses."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from rich.text import Text
from textual.widgets import RichLog

from autoensure.models import CommandResponse, ResponseKind
from autoensure.session import RconSession

_STYLES = {
    ResponseKind.AUTH_ERROR: "bold red",
    ResponseKind.RESOURCE_NOT_FOUND: "yellow",
}


class ConsoleLog(RichLog):
    """Appends every classified response the session forwards."""

    DEFAULT_CSS = """
    ConsoleLog {
        height: 1fr;
        border: round $primary 40%;
        padding: 0 1;
    }
    """

    def __init__(self, session: RconSession) -> None:
        super().__init__(id="console-log", wrap=True, markup=False, highlight=False)
        self._session = session
        self._unsubscribe: Callable[[], None] | None = None

    async def on_mount(self) -> None:
        self._unsubscribe = self._session.subscribe_responses(self.append_response)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def append_response(self, response: CommandResponse) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        line = Text(f"[{stamp}] ")
        line.append(response.text.rstrip(), style=_STYLES.get(response.kind, ""))
        self.write(line)

    def append_command(self, command: str) -> None:
        self.write(f"> {command}")


__all__ = ["ConsoleLog"]
