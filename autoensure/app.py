"""Textual application entry point for autoensure."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Callable, Sequence

from textual.app import App, ComposeResult
from textual.logging import TextualHandler
from textual.widgets import Footer, Header, Input

from .config import AppConfig, load_config, save_config
from .ensure import EnsureDispatcher, EnsureMode
from .models import CommandResponse, ConnectionProfile, RconError, ResponseKind
from .profiles import ProfileBook
from .providers import ConnectionListProvider, FolderSelectionProvider, SessionActionsProvider
from .session import NotConnected, RconSession
from .store import ProfileStore, TomlStateStore
from .transport import TransportFactory
from .watcher import SaveWatcher
from .widgets import AddConnectionScreen, ConsoleLog, StatusBar

LOG = logging.getLogger(__name__)

MESSAGE_PREFIX = "[Auto Ensure] "


def _load_app_config() -> AppConfig:
    """Load configuration with a small wrapper for future overrides."""

    return load_config()


class AutoEnsureApp(App[None]):
    """Console that keeps an RCON session and ensures resources on save."""

    COMMANDS = App.COMMANDS | {ConnectionListProvider, FolderSelectionProvider, SessionActionsProvider}
    CSS = """
    Screen {
        layout: vertical;
    }
    #console-input {
        border: heavy $primary;
    }
    """

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
        ("ctrl+r", "refresh", "Send refresh"),
        ("ctrl+k", "check_connection", "Check connection"),
        ("ctrl+n", "add_connection", "Add connection"),
        ("ctrl+p", "command_palette", "Command Palette"),
    ]

    def __init__(
        self,
        workspace_root: Path | None = None,
        *,
        store: ProfileStore | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        super().__init__()
        self._config = _load_app_config()
        self._session = RconSession(
            transport_factory=transport_factory,
            health_check_timeout=self._config.health_check_timeout,
            probe_command=self._config.probe_command,
        )
        self._profile_book = ProfileBook(
            store if store is not None else TomlStateStore(),
            config_profiles=self._config.profiles(),
        )
        self._dispatcher = EnsureDispatcher(
            self._session,
            workspace_root=workspace_root,
            mode=self._config.mode,
            auto_refresh=self._config.auto_refresh,
            reload_delay=self._config.reload_delay,
        )
        self._watcher: SaveWatcher | None = None
        if workspace_root is not None:
            self._watcher = SaveWatcher(workspace_root, self.handle_save, interval=self._config.poll_interval)
        self._pending_notifications: list[tuple[str, str]] = []
        self._unsubscribers: list[Callable[[], None]] = [
            self._session.subscribe_errors(self._handle_session_error),
            self._session.subscribe_responses(self._handle_response),
        ]

    def compose(self) -> ComposeResult:
        """Compose the root layout."""

        yield Header(show_clock=True)
        yield ConsoleLog(self._session)
        yield Input(placeholder="Console command (e.g. restart myresource)", id="console-input")
        yield StatusBar(self._session, self._dispatcher)
        yield Footer()

    async def on_mount(self) -> None:
        self._flush_pending_notifications()
        if self._watcher is not None:
            self._watcher.start()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "console-input":
            return
        command = event.value.strip()
        event.input.value = ""
        if command:
            self.send_command(command)

    @property
    def app_config(self) -> AppConfig:
        return self._config

    @property
    def session(self) -> RconSession:
        """Expose the session for providers and tests."""

        return self._session

    @property
    def dispatcher(self) -> EnsureDispatcher:
        return self._dispatcher

    @property
    def profile_book(self) -> ProfileBook:
        return self._profile_book

    @property
    def watcher(self) -> SaveWatcher | None:
        return self._watcher

    async def connect_profile(self, profile: ConnectionProfile) -> bool:
        """Replace the current connection with ``profile``."""

        if self._session.connected:
            self.disconnect()
        self._safe_notify("Checking connection...")
        try:
            await self._session.connect(profile)
        except RconError as exc:
            LOG.warning("Connection failed", extra={"peer": profile.key, "error": str(exc)})
            self._safe_notify(f"Connection failed: {exc}", severity="error")
            return False
        self._profile_book.add_history(profile)
        self._safe_notify("Connected to server")
        return True

    def disconnect(self) -> None:
        if not self._session.connected:
            return
        self._session.disconnect()
        self._safe_notify("Disconnected", severity="warning")

    async def check_connection(self) -> bool:
        if not self._session.connected:
            self._safe_notify("No connection established.", severity="error")
            return False
        self._safe_notify("Checking connection...")
        alive = await self._session.check_connection()
        if alive:
            self._safe_notify("Connection is alive")
        else:
            self._safe_notify("Connection lost", severity="error")
        return alive

    def send_command(self, command: str) -> bool:
        try:
            self._session.send(command)
        except NotConnected as exc:
            self._safe_notify(str(exc), severity="error")
            return False
        if self.is_running:
            self.query_one(ConsoleLog).append_command(command)
        return True

    def action_refresh(self) -> None:
        self.send_command("refresh")

    async def action_check_connection(self) -> None:
        await self.check_connection()

    def action_add_connection(self) -> None:
        self.push_screen(AddConnectionScreen(), self.add_connection)

    def add_connection(self, profile: ConnectionProfile | None) -> None:
        if profile is None:
            return
        self._profile_book.add_profile(profile)
        self._safe_notify(f"Added connection: {profile.key}")

    def set_reload_delay(self, delay_ms: int) -> None:
        """Update and persist the delay between a save and its ensure commands."""

        self._config = self._config.with_reload_delay(delay_ms)
        self._dispatcher.reload_delay = self._config.reload_delay
        save_config(self._config)
        self._refresh_status_bar()
        self._safe_notify(f"Reload delay set to {delay_ms} ms")

    def set_mode(self, mode: EnsureMode) -> None:
        self._config = self._config.with_mode(mode)
        self._dispatcher.mode = self._config.mode
        save_config(self._config)
        self._refresh_status_bar()
        self._safe_notify(f"Ensure mode: {self._config.mode.value}")

    def set_auto_refresh(self, enabled: bool) -> None:
        self._config = self._config.with_auto_refresh(enabled)
        self._dispatcher.auto_refresh = enabled
        save_config(self._config)
        self._refresh_status_bar()

    def select_folder(self, name: str) -> None:
        self._dispatcher.select(name)
        self._safe_notify(f"Selected folder: {name}")

    def deselect_folder(self, name: str) -> None:
        self._dispatcher.deselect(name)
        self._safe_notify(f"Deselected folder: {name}")

    def clear_folder_selection(self) -> None:
        self._dispatcher.clear_selection()
        self._safe_notify("Folder selection cleared")

    async def handle_save(self, scheme: str, path: Path) -> None:
        try:
            await self._dispatcher.handle_save(scheme, path)
        except RconError as exc:
            self._safe_notify(str(exc), severity="error")

    async def _shutdown(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        if self._watcher is not None:
            await self._watcher.stop()
        self._session.disconnect()
        await super()._shutdown()

    def _handle_session_error(self, error: RconError) -> None:
        self._safe_notify(f"Error: {error}", severity="error")

    def _handle_response(self, response: CommandResponse) -> None:
        if response.kind is ResponseKind.AUTH_ERROR:
            self._safe_notify(response.text, severity="error")
        elif response.kind is ResponseKind.RESOURCE_NOT_FOUND:
            self._safe_notify(response.text, severity="warning")
        else:
            self._safe_notify(response.text)

    def _refresh_status_bar(self) -> None:
        if self.is_running:
            self.query_one(StatusBar).set_connected(self._session.connected)

    def _safe_notify(self, message: str, *, severity: str = "information") -> None:
        message = MESSAGE_PREFIX + message
        if self.is_running:
            try:
                self.notify(message, severity=severity)
            except Exception:
                LOG.exception("Failed to display notification", extra={"notification": message})
        else:
            self._pending_notifications.append((message, severity))

    def _flush_pending_notifications(self) -> None:
        if not self._pending_notifications:
            return
        pending = list(self._pending_notifications)
        self._pending_notifications.clear()
        for message, severity in pending:
            try:
                self.notify(message, severity=severity)
            except Exception:
                LOG.exception("Failed to display queued notification", extra={"notification": message})


def main(argv: Sequence[str] | None = None) -> None:
    """Invoke the Textual application."""

    parser = argparse.ArgumentParser(prog="autoensure", description=__doc__)
    parser.add_argument(
        "workspace",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Workspace folder to watch (defaults to the current directory).",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=load_config().log_level.upper(), handlers=[TextualHandler()])
    AutoEnsureApp(args.workspace.resolve()).run()


if __name__ == "__main__":
    main()
