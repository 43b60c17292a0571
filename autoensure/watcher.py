"""Polling watcher that turns file modifications into save events."""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable

LOG = logging.getLogger(__name__)

SaveListener = Callable[[str, Path], "Awaitable[Any] | None"]
DEFAULT_IGNORED = (".git", ".hg", ".svn", "node_modules", "__pycache__")


class SaveWatcher:
    """Polls a workspace tree and reports modified files as ``("file", path)``."""

    def __init__(
        self,
        root: Path,
        on_save: SaveListener,
        *,
        interval: float = 0.5,
        ignored: Iterable[str] = DEFAULT_IGNORED,
    ) -> None:
        self._root = Path(root)
        self._on_save = on_save
        self._interval = interval
        self._ignored = frozenset(ignored)
        self._mtimes: dict[Path, int] | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def poll_once(self) -> list[Path]:
        """Scan once; the first scan only records a baseline."""

        current = await asyncio.to_thread(self._snapshot)
        previous, self._mtimes = self._mtimes, current
        if previous is None:
            return []
        changed = [path for path, mtime in current.items() if previous.get(path) != mtime]
        for path in changed:
            await self._emit(path)
        return changed

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except OSError:
                LOG.exception("Workspace scan failed", extra={"root": str(self._root)})
            await asyncio.sleep(self._interval)

    async def _emit(self, path: Path) -> None:
        try:
            result = self._on_save("file", path)
            if inspect.isawaitable(result):
                await result
        except Exception:
            LOG.exception("Save listener failed", extra={"path": str(path)})

    def _snapshot(self) -> dict[Path, int]:
        mtimes: dict[Path, int] = {}
        for dirpath, dirnames, filenames in os.walk(self._root):
            dirnames[:] = [name for name in dirnames if name not in self._ignored]
            for filename in filenames:
                path = Path(dirpath) / filename
                try:
                    mtimes[path] = path.stat().st_mtime_ns
                except FileNotFoundError:
                    continue
        return mtimes


__all__ = ["SaveWatcher"]
