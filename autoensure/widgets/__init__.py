"""Widget library for the Textual UI."""

from __future__ import annotations

from .add_connection import AddConnectionScreen
from .console_log import ConsoleLog
from .status_bar import StatusBar

__all__ = ["AddConnectionScreen", "ConsoleLog", "StatusBar"]
