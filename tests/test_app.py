"""App-level tests for the manual operations and palette providers."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from autoensure.app import AutoEnsureApp
from autoensure.config import AppConfig, ConnectionConfig
from autoensure.ensure import EnsureMode
from autoensure.models import ConnectionProfile
from autoensure.profiles import HISTORY_KEY
from autoensure.providers import ConnectionListProvider, FolderSelectionProvider, SessionActionsProvider
from autoensure.store import MemoryStore
from autoensure.transport import EndEvent, ResponseEvent

PROFILE = ConnectionProfile(address="127.0.0.1", port=30120, credential="x")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    config_path = tmp_path / "config.toml"
    monkeypatch.setattr("autoensure.config.CONFIG_FILE", config_path)
    return config_path


class _AnsweringTransport:
    def __init__(self, *, answer: bool = True) -> None:
        self.answer = answer
        self.sent: list[str] = []
        self.listener = None

    async def open(self, profile, listener):  # type: ignore[no-untyped-def]
        self.listener = listener

    def send(self, command: str) -> None:
        self.sent.append(command)
        if self.answer and len(self.sent) == 1:
            asyncio.get_running_loop().call_soon(self.listener, ResponseEvent("rintok"))

    def close(self) -> None:
        return None


class _DummyScreen:
    """Minimal stub so providers can reference an app without a running screen stack."""

    def __init__(self, app: AutoEnsureApp) -> None:
        self.app = app
        self.focused = None


def _make_app(
    monkeypatch: pytest.MonkeyPatch,
    transport: _AnsweringTransport,
    *,
    config: AppConfig | None = None,
    workspace: Path | None = None,
    store: MemoryStore | None = None,
) -> AutoEnsureApp:
    monkeypatch.setattr("autoensure.app._load_app_config", lambda: config or AppConfig())
    return AutoEnsureApp(workspace, store=store or MemoryStore(), transport_factory=lambda: transport)


def _messages(app: AutoEnsureApp) -> list[str]:
    return [message for message, _ in app._pending_notifications]  # type: ignore[attr-defined]


@pytest.mark.anyio
async def test_connect_profile_records_history(monkeypatch: pytest.MonkeyPatch) -> None:
    store = MemoryStore()
    app = _make_app(monkeypatch, _AnsweringTransport(), store=store)

    assert await app.connect_profile(PROFILE) is True

    assert app.session.connected is True
    assert store.get(HISTORY_KEY) == [PROFILE.to_record()]
    assert any("Connected to server" in message for message in _messages(app))


@pytest.mark.anyio
async def test_failed_connect_notifies_and_skips_history(monkeypatch: pytest.MonkeyPatch) -> None:
    store = MemoryStore()
    config = AppConfig(health_check_timeout_ms=50)
    app = _make_app(monkeypatch, _AnsweringTransport(answer=False), config=config, store=store)

    assert await app.connect_profile(PROFILE) is False

    assert app.session.connected is False
    assert store.get(HISTORY_KEY) is None
    assert app._pending_notifications[-1][1] == "error"  # type: ignore[attr-defined]


@pytest.mark.anyio
async def test_connect_profile_replaces_existing_connection(monkeypatch: pytest.MonkeyPatch) -> None:
    transports = [_AnsweringTransport(), _AnsweringTransport()]
    remaining = iter(transports)
    monkeypatch.setattr("autoensure.app._load_app_config", lambda: AppConfig())
    app = AutoEnsureApp(store=MemoryStore(), transport_factory=lambda: next(remaining))
    other = ConnectionProfile(address="10.0.0.2", port=30120, credential="y")

    await app.connect_profile(PROFILE)
    assert await app.connect_profile(other) is True

    assert app.session.profile == other
    assert any("Disconnected" in message for message in _messages(app))


@pytest.mark.anyio
async def test_send_command_without_connection_notifies(monkeypatch: pytest.MonkeyPatch) -> None:
    transport = _AnsweringTransport()
    app = _make_app(monkeypatch, transport)

    assert app.send_command("refresh") is False
    await app.connect_profile(PROFILE)
    app.action_refresh()

    assert transport.sent == ["refresh", "refresh"]
    assert any("No connection established." in message for message in _messages(app))


@pytest.mark.anyio
async def test_save_events_dispatch_ensure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    workspace = tmp_path / "myresource"
    workspace.mkdir()
    transport = _AnsweringTransport()
    app = _make_app(monkeypatch, transport, workspace=workspace)
    await app.connect_profile(PROFILE)

    await app.handle_save("file", workspace / "client.lua")
    await app.dispatcher.drain()

    assert app.watcher is not None
    assert transport.sent[1:] == ["refresh;ensure myresource"]


@pytest.mark.anyio
async def test_selected_mode_without_selection_notifies(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    transport = _AnsweringTransport()
    app = _make_app(monkeypatch, transport, config=AppConfig(mode=EnsureMode.SELECTED), workspace=tmp_path)
    await app.connect_profile(PROFILE)

    await app.handle_save("file", tmp_path / "a.lua")
    await app.dispatcher.drain()

    assert transport.sent == ["refresh"]
    assert any("No folders selected." in message for message in _messages(app))


@pytest.mark.anyio
async def test_server_responses_and_drops_become_notifications(monkeypatch: pytest.MonkeyPatch) -> None:
    transport = _AnsweringTransport()
    app = _make_app(monkeypatch, transport)
    await app.connect_profile(PROFILE)

    transport.listener(ResponseEvent("rintInvalid password."))
    transport.listener(EndEvent())

    severities = [severity for _, severity in app._pending_notifications]  # type: ignore[attr-defined]
    assert severities[-2:] == ["error", "error"]
    assert app.session.connected is False


@pytest.mark.anyio
async def test_set_reload_delay_persists(isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    app = _make_app(monkeypatch, _AnsweringTransport())

    app.set_reload_delay(500)

    assert app.dispatcher.reload_delay == 0.5
    assert app.app_config.reload_delay_ms == 500
    assert "reload_delay_ms = 500" in isolated_config.read_text()


@pytest.mark.anyio
async def test_connection_list_provider_connects(monkeypatch: pytest.MonkeyPatch) -> None:
    config = AppConfig(connections=[ConnectionConfig(address="127.0.0.1", port=30120, credential="x")])
    app = _make_app(monkeypatch, _AnsweringTransport(), config=config)

    provider = ConnectionListProvider(_DummyScreen(app))  # type: ignore[arg-type]
    hits = [hit async for hit in provider.discover()]
    target = next(hit for hit in hits if "127.0.0.1:30120 (Config)" in str(hit.display))
    await target.command()

    assert app.session.connected is True
    assert any("Add Connection" in str(hit.display) for hit in hits)


@pytest.mark.anyio
async def test_session_actions_provider_updates_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    app = _make_app(monkeypatch, _AnsweringTransport())
    provider = SessionActionsProvider(_DummyScreen(app))  # type: ignore[arg-type]

    hits = [hit async for hit in provider.discover()]
    labels = [str(hit.display) for hit in hits]
    assert "Disconnect" not in labels
    await next(hit for hit in hits if str(hit.display) == "Set reload delay: 1000 ms").command()
    await next(hit for hit in hits if str(hit.display) == "Ensure mode: recursive").command()
    await next(hit for hit in hits if str(hit.display) == "Turn auto refresh off").command()

    assert app.dispatcher.reload_delay == 1.0
    assert app.dispatcher.mode is EnsureMode.RECURSIVE
    assert app.dispatcher.auto_refresh is False


@pytest.mark.anyio
async def test_session_actions_provider_disconnects(monkeypatch: pytest.MonkeyPatch) -> None:
    app = _make_app(monkeypatch, _AnsweringTransport())
    await app.connect_profile(PROFILE)
    provider = SessionActionsProvider(_DummyScreen(app))  # type: ignore[arg-type]

    hits = [hit async for hit in provider.discover()]
    await next(hit for hit in hits if str(hit.display) == "Disconnect").command()

    assert app.session.connected is False


@pytest.mark.anyio
async def test_add_connection_persists_profile(monkeypatch: pytest.MonkeyPatch) -> None:
    store = MemoryStore()
    app = _make_app(monkeypatch, _AnsweringTransport(), store=store)

    app.add_connection(PROFILE)
    app.add_connection(None)

    assert app.profile_book.configured() == (PROFILE,)


@pytest.mark.anyio
async def test_folder_selection_provider_drives_selected_mode(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("alpha", "beta"):
        (tmp_path / name).mkdir()
        (tmp_path / name / "fxmanifest.lua").write_text("")
    transport = _AnsweringTransport()
    app = _make_app(monkeypatch, transport, config=AppConfig(mode=EnsureMode.SELECTED), workspace=tmp_path)
    await app.connect_profile(PROFILE)
    provider = FolderSelectionProvider(_DummyScreen(app))  # type: ignore[arg-type]

    hits = [hit async for hit in provider.discover()]
    assert [str(hit.display) for hit in hits] == ["Select folder: alpha", "Select folder: beta"]
    await hits[1].command()
    await app.handle_save("file", tmp_path / "beta" / "client.lua")
    await app.dispatcher.drain()

    assert app.dispatcher.selected == ("beta",)
    assert transport.sent[1:] == ["refresh;ensure beta"]

    hits = [hit async for hit in provider.discover()]
    labels = [str(hit.display) for hit in hits]
    assert labels == ["Select folder: alpha", "Deselect folder: beta", "Clear selection"]
    await hits[-1].command()

    assert app.dispatcher.selected == ()
