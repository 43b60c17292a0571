"""Turns workspace save events into delayed ``ensure`` commands."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from .discovery import RESOURCE_MANIFESTS, ResourceFinder, find_resource_folders
from .models import EnsureRequest, RconError
from .session import NotConnected, RconSession
from .timers import DelayedRunner

LOG = logging.getLogger(__name__)


class NoSelection(RconError):
    """Raised by selected-ensure when no folders are selected."""


class NoWorkspace(RconError):
    """Raised when no workspace folder is open."""


class EnsureMode(str, Enum):
    WORKSPACE = "workspace"
    SELECTED = "selected"
    RECURSIVE = "recursive"


class EnsureDispatcher:
    """Schedules ``[refresh;]ensure <resource>`` commands after each save."""

    def __init__(
        self,
        session: RconSession,
        *,
        workspace_root: Path | None = None,
        mode: EnsureMode = EnsureMode.WORKSPACE,
        auto_refresh: bool = True,
        reload_delay: float = 0.0,
        finder: ResourceFinder = find_resource_folders,
        manifests: Iterable[str] = RESOURCE_MANIFESTS,
    ) -> None:
        self._session = session
        self._workspace_root = workspace_root
        self._mode = mode
        self._auto_refresh = auto_refresh
        self._finder = finder
        self._manifests = tuple(manifests)
        self._selected: dict[str, None] = {}
        self._runner = DelayedRunner()
        self.reload_delay = reload_delay

    @property
    def session(self) -> RconSession:
        return self._session

    @property
    def workspace_root(self) -> Path | None:
        return self._workspace_root

    @property
    def mode(self) -> EnsureMode:
        return self._mode

    @mode.setter
    def mode(self, value: EnsureMode) -> None:
        self._mode = EnsureMode(value)

    @property
    def auto_refresh(self) -> bool:
        return self._auto_refresh

    @auto_refresh.setter
    def auto_refresh(self, value: bool) -> None:
        self._auto_refresh = bool(value)

    @property
    def reload_delay(self) -> float:
        """Seconds to wait between a save and the ensure commands."""

        return self._runner.delay

    @reload_delay.setter
    def reload_delay(self, value: float) -> None:
        self._runner.delay = value

    @property
    def selected(self) -> tuple[str, ...]:
        return tuple(self._selected)

    def select(self, name: str) -> None:
        self._selected.setdefault(name, None)

    def deselect(self, name: str) -> None:
        self._selected.pop(name, None)

    def clear_selection(self) -> None:
        self._selected.clear()

    async def resource_folders(self) -> list[str]:
        """Folders under the workspace that can be selected; empty without a workspace."""

        if self._workspace_root is None:
            return []
        return list(await self._finder(self._workspace_root, self._manifests))

    async def handle_save(self, scheme: str, path: str | Path) -> EnsureRequest | None:
        """React to a saved document; returns the scheduled request, if any."""

        if scheme != "file" or not self._session.connected:
            return None
        request = await self.build_request()
        LOG.debug("Save event", extra={"path": str(path), "targets": request.targets})
        self.dispatch(request)
        return request

    async def build_request(self) -> EnsureRequest:
        """Resolve the targets for the active mode."""

        if self._mode is EnsureMode.SELECTED:
            if not self._selected:
                raise NoSelection("No folders selected.")
            targets: Iterable[str] = self._selected
        elif self._mode is EnsureMode.RECURSIVE:
            root = self._require_root()
            targets = await self._finder(root, self._manifests)
        else:
            targets = (self._require_root().name,)
        return EnsureRequest.build(targets, with_refresh=self._auto_refresh)

    def dispatch(self, request: EnsureRequest) -> asyncio.Task[Any] | None:
        """Arm an independent timer sending the request's commands."""

        if not request.targets:
            LOG.info("Nothing to ensure")
            return None
        return self._runner.submit(lambda: self._send_all(request))

    async def drain(self) -> None:
        """Wait for every armed dispatch timer to fire."""

        await self._runner.drain()

    async def _send_all(self, request: EnsureRequest) -> None:
        for command in request.commands():
            try:
                self._session.send(command)
            except NotConnected:
                LOG.warning("Session dropped before ensure fired", extra={"command": command})
                return

    def _require_root(self) -> Path:
        if self._workspace_root is None:
            raise NoWorkspace("No workspace folder is open.")
        return self._workspace_root


__all__ = ["EnsureDispatcher", "EnsureMode", "NoSelection", "NoWorkspace"]
