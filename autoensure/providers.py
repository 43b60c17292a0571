"""Command palette providers for the manual operations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable, Iterator

from textual.command import DiscoveryHit, Hit, Hits, Provider
from textual.types import IgnoreReturnCallbackType

from .ensure import EnsureMode
from .models import ConnectionProfile

if TYPE_CHECKING:
    from .app import AutoEnsureApp

RELOAD_DELAY_PRESETS_MS = (0, 250, 500, 1000, 2000)


class ConnectionListProvider(Provider):
    """Expose configured and recent connections to the command palette."""

    async def search(self, query: str) -> Hits:
        app = self._app
        if app is None:
            return
        matcher = self.matcher(query)
        for display, command, help_text in self._items(app):
            match = matcher.match(display)
            if match > 0:
                yield Hit(
                    score=match,
                    match_display=matcher.highlight(display),
                    command=command,
                    help=help_text,
                )

    async def discover(self) -> Hits:
        app = self._app
        if app is None:
            return
        for display, command, help_text in self._items(app):
            yield DiscoveryHit(display=display, command=command, help=help_text)

    @property
    def _app(self) -> AutoEnsureApp | None:
        if hasattr(self.app, "profile_book") and hasattr(self.app, "connect_profile"):
            return self.app  # type: ignore[return-value]
        return None

    def _items(self, app: AutoEnsureApp) -> Iterator[tuple[str, IgnoreReturnCallbackType, str]]:
        for entry in app.profile_book.entries():
            yield (
                f"Connect: {entry.label} ({entry.description})",
                self._build_callback(entry.profile),
                "Connect to this server and start auto ensuring.",
            )
        yield ("Add Connection", _wrap(app.action_add_connection), "Add a new connection")

    def _build_callback(self, profile: ConnectionProfile) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            app = self._app
            if app is None:
                return
            await app.connect_profile(profile)

        return _run


class SessionActionsProvider(Provider):
    """Disconnect, health check, refresh, reload delay and mode commands."""

    async def search(self, query: str) -> Hits:
        app = self._app
        if app is None:
            return
        matcher = self.matcher(query)
        for label, command, help_text in self._items(app):
            score = matcher.match(label)
            if score > 0:
                yield Hit(
                    score=score,
                    match_display=matcher.highlight(label),
                    command=command,
                    help=help_text,
                )

    async def discover(self) -> Hits:
        app = self._app
        if app is None:
            return
        for label, command, help_text in self._items(app):
            yield DiscoveryHit(display=label, command=command, help=help_text)

    @property
    def _app(self) -> AutoEnsureApp | None:
        if hasattr(self.app, "session") and hasattr(self.app, "dispatcher"):
            return self.app  # type: ignore[return-value]
        return None

    def _items(self, app: AutoEnsureApp) -> Iterator[tuple[str, IgnoreReturnCallbackType, str]]:
        if app.session.connected:
            yield ("Disconnect", _wrap(app.disconnect), "Close the RCON connection.")
            yield ("Check connection", app.check_connection, "Send a probe and wait for an answer.")
            yield ("Send refresh", _wrap(app.action_refresh), "Rescan server resources.")
        for delay_ms in RELOAD_DELAY_PRESETS_MS:
            yield (
                f"Set reload delay: {delay_ms} ms",
                _wrap(lambda value=delay_ms: app.set_reload_delay(value)),
                "Wait this long after a save before ensuring.",
            )
        for mode in EnsureMode:
            if mode is not app.dispatcher.mode:
                yield (
                    f"Ensure mode: {mode.value}",
                    _wrap(lambda value=mode: app.set_mode(value)),
                    "Choose which resources are ensured on save.",
                )
        state = "off" if app.dispatcher.auto_refresh else "on"
        yield (
            f"Turn auto refresh {state}",
            _wrap(lambda: app.set_auto_refresh(not app.dispatcher.auto_refresh)),
            "Prefix ensure commands with 'refresh;'.",
        )


class FolderSelectionProvider(Provider):
    """Pick the resource folders ensured in ``selected`` mode."""

    async def search(self, query: str) -> Hits:
        app = self._app
        if app is None:
            return
        matcher = self.matcher(query)
        for label, command, help_text in await self._items(app):
            score = matcher.match(label)
            if score > 0:
                yield Hit(
                    score=score,
                    match_display=matcher.highlight(label),
                    command=command,
                    help=help_text,
                )

    async def discover(self) -> Hits:
        app = self._app
        if app is None:
            return
        for label, command, help_text in await self._items(app):
            yield DiscoveryHit(display=label, command=command, help=help_text)

    @property
    def _app(self) -> AutoEnsureApp | None:
        if hasattr(self.app, "dispatcher") and hasattr(self.app, "select_folder"):
            return self.app  # type: ignore[return-value]
        return None

    async def _items(self, app: AutoEnsureApp) -> list[tuple[str, IgnoreReturnCallbackType, str]]:
        selected = app.dispatcher.selected
        folders = list(dict.fromkeys([*await app.dispatcher.resource_folders(), *selected]))
        items: list[tuple[str, IgnoreReturnCallbackType, str]] = []
        for name in folders:
            if name in selected:
                items.append(
                    (
                        f"Deselect folder: {name}",
                        _wrap(lambda value=name: app.deselect_folder(value)),
                        "Stop ensuring this folder in selected mode.",
                    )
                )
            else:
                items.append(
                    (
                        f"Select folder: {name}",
                        _wrap(lambda value=name: app.select_folder(value)),
                        "Ensure this folder on save in selected mode.",
                    )
                )
        if selected:
            items.append(("Clear selection", _wrap(app.clear_folder_selection), "Deselect every folder."))
        return items


def _wrap(func: Callable[[], object]) -> Callable[[], Awaitable[None]]:
    async def _run() -> None:
        func()

    return _run


__all__ = [
    "ConnectionListProvider",
    "FolderSelectionProvider",
    "RELOAD_DELAY_PRESETS_MS",
    "SessionActionsProvider",
]
