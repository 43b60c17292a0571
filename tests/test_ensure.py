"""Tests for the ensure dispatcher."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Sequence

import pytest

from autoensure.ensure import EnsureDispatcher, EnsureMode, NoSelection, NoWorkspace
from autoensure.models import ConnectionProfile
from autoensure.session import RconSession
from autoensure.transport import ResponseEvent

PROFILE = ConnectionProfile(address="127.0.0.1", port=30120, credential="x")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _RecordingTransport:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self._listener = None

    async def open(self, profile, listener):  # type: ignore[no-untyped-def]
        self._listener = listener

    def send(self, command: str) -> None:
        self.sent.append(command)
        if len(self.sent) == 1:
            asyncio.get_running_loop().call_soon(self._listener, ResponseEvent("rintok"))

    def close(self) -> None:
        return None

    @property
    def commands(self) -> list[str]:
        """Everything sent after the connect probe."""

        return self.sent[1:]


async def _connected_session() -> tuple[RconSession, _RecordingTransport]:
    transport = _RecordingTransport()
    session = RconSession(transport_factory=lambda: transport, health_check_timeout=1.0)
    await session.connect(PROFILE)
    return session, transport


@pytest.mark.anyio
async def test_workspace_ensure_sends_refresh_and_ensure(tmp_path: Path) -> None:
    root = tmp_path / "myresource"
    root.mkdir()
    session, transport = await _connected_session()
    dispatcher = EnsureDispatcher(session, workspace_root=root, auto_refresh=True, reload_delay=0)

    request = await dispatcher.handle_save("file", root / "client.lua")
    await dispatcher.drain()

    assert request is not None and request.targets == ("myresource",)
    assert transport.commands == ["refresh;ensure myresource"]


@pytest.mark.anyio
async def test_auto_refresh_off_sends_plain_ensure(tmp_path: Path) -> None:
    session, transport = await _connected_session()
    dispatcher = EnsureDispatcher(session, workspace_root=tmp_path / "res", auto_refresh=False)

    await dispatcher.handle_save("file", tmp_path / "res" / "server.lua")
    await dispatcher.drain()

    assert transport.commands == ["ensure res"]


@pytest.mark.anyio
async def test_selected_ensure_without_selection_fails(tmp_path: Path) -> None:
    session, transport = await _connected_session()
    dispatcher = EnsureDispatcher(session, workspace_root=tmp_path, mode=EnsureMode.SELECTED)

    with pytest.raises(NoSelection):
        await dispatcher.handle_save("file", tmp_path / "a.lua")
    await dispatcher.drain()

    assert transport.commands == []


@pytest.mark.anyio
async def test_selected_ensure_uses_selection_order(tmp_path: Path) -> None:
    session, transport = await _connected_session()
    dispatcher = EnsureDispatcher(session, workspace_root=tmp_path, mode=EnsureMode.SELECTED)
    dispatcher.select("b")
    dispatcher.select("a")
    dispatcher.select("c")
    dispatcher.select("b")
    dispatcher.deselect("c")

    await dispatcher.handle_save("file", tmp_path / "a.lua")
    await dispatcher.drain()

    assert dispatcher.selected == ("b", "a")
    assert transport.commands == ["refresh;ensure b", "refresh;ensure a"]


@pytest.mark.anyio
async def test_recursive_ensure_deduplicates_discovered_folders(tmp_path: Path) -> None:
    calls: list[tuple[Path, tuple[str, ...]]] = []

    async def _finder(root: Path, patterns: Sequence[str]) -> list[str]:
        calls.append((root, tuple(patterns)))
        return ["core", "maps", "core"]

    session, transport = await _connected_session()
    dispatcher = EnsureDispatcher(
        session,
        workspace_root=tmp_path,
        mode=EnsureMode.RECURSIVE,
        auto_refresh=False,
        finder=_finder,
    )

    await dispatcher.handle_save("file", tmp_path / "x.lua")
    await dispatcher.drain()

    assert calls == [(tmp_path, ("fxmanifest.lua", "__resource.lua"))]
    assert transport.commands == ["ensure core", "ensure maps"]


@pytest.mark.anyio
async def test_recursive_ensure_scans_workspace(tmp_path: Path) -> None:
    for folder, manifest in (("alpha", "fxmanifest.lua"), ("nested/beta", "__resource.lua")):
        target = tmp_path / folder
        target.mkdir(parents=True)
        (target / manifest).write_text("fx_version 'cerulean'\n")
    session, transport = await _connected_session()
    dispatcher = EnsureDispatcher(session, workspace_root=tmp_path, mode=EnsureMode.RECURSIVE, auto_refresh=False)

    await dispatcher.handle_save("file", tmp_path / "alpha" / "client.lua")
    await dispatcher.drain()

    assert transport.commands == ["ensure alpha", "ensure beta"]


@pytest.mark.anyio
async def test_overlapping_saves_are_not_coalesced(tmp_path: Path) -> None:
    session, transport = await _connected_session()
    dispatcher = EnsureDispatcher(session, workspace_root=tmp_path / "res", reload_delay=0.05)

    await dispatcher.handle_save("file", tmp_path / "res" / "a.lua")
    await dispatcher.handle_save("file", tmp_path / "res" / "b.lua")
    assert transport.commands == []
    await dispatcher.drain()

    assert transport.commands == ["refresh;ensure res", "refresh;ensure res"]


@pytest.mark.anyio
async def test_non_file_schemes_and_disconnected_sessions_are_ignored(tmp_path: Path) -> None:
    session, transport = await _connected_session()
    dispatcher = EnsureDispatcher(session, workspace_root=tmp_path)

    assert await dispatcher.handle_save("untitled", "Untitled-1") is None
    session.disconnect()
    assert await dispatcher.handle_save("file", tmp_path / "a.lua") is None
    await dispatcher.drain()

    assert transport.commands == []


@pytest.mark.anyio
async def test_disconnect_before_timer_fires_drops_commands(tmp_path: Path) -> None:
    session, transport = await _connected_session()
    dispatcher = EnsureDispatcher(session, workspace_root=tmp_path / "res", reload_delay=0.05)

    await dispatcher.handle_save("file", tmp_path / "res" / "a.lua")
    session.disconnect()
    await dispatcher.drain()

    assert transport.commands == []


@pytest.mark.anyio
async def test_workspace_mode_requires_a_workspace() -> None:
    session, _ = await _connected_session()
    dispatcher = EnsureDispatcher(session)

    with pytest.raises(NoWorkspace):
        await dispatcher.handle_save("file", "/tmp/a.lua")


def test_reload_delay_rejects_negative_values() -> None:
    dispatcher = EnsureDispatcher(RconSession())

    with pytest.raises(ValueError):
        dispatcher.reload_delay = -1


@pytest.mark.anyio
async def test_resource_folders_lists_workspace_candidates(tmp_path: Path) -> None:
    (tmp_path / "core").mkdir()
    (tmp_path / "core" / "__resource.lua").write_text("")
    session = RconSession()

    assert await EnsureDispatcher(session, workspace_root=tmp_path).resource_folders() == ["core"]
    assert await EnsureDispatcher(session).resource_folders() == []
