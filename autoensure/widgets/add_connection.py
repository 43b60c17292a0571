"""Modal dialog collecting ``address:port`` and the RCON password."""

from __future__ import annotations

from textual import on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Static

from autoensure.models import ConnectionProfile, InvalidAddressFormat, parse_profile


class AddConnectionScreen(ModalScreen["ConnectionProfile | None"]):
    """Prompt for a new connection; dismisses with the parsed profile or ``None``."""

    DEFAULT_CSS = """
    AddConnectionScreen {
        align: center middle;
    }

    AddConnectionScreen > Vertical {
        width: 60;
        height: auto;
        border: thick $primary;
        background: $surface;
        padding: 1 2;
    }

    AddConnectionScreen #add-connection-error {
        color: $error;
        height: auto;
    }

    AddConnectionScreen .dialog-actions {
        height: auto;
        margin-top: 1;
        align-horizontal: right;
    }
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label("Enter server IP and Port")
            yield Input(placeholder="IP:Port", id="address-input")
            yield Label("Enter your server RCON password")
            yield Input(placeholder="Password", password=True, id="password-input")
            yield Static("", id="add-connection-error")
            with Horizontal(classes="dialog-actions"):
                yield Button("Add", variant="primary", id="add-connection-submit")
                yield Button("Cancel", id="add-connection-cancel")

    def build_profile(self, address: str, password: str) -> ConnectionProfile:
        if not address.strip():
            raise InvalidAddressFormat("No connection details provided!")
        profile = parse_profile(address, password)
        if not password:
            raise InvalidAddressFormat("Incomplete connection details provided!")
        return profile

    @on(Button.Pressed, "#add-connection-submit")
    @on(Input.Submitted)
    def submit(self) -> None:
        address = self.query_one("#address-input", Input).value
        password = self.query_one("#password-input", Input).value
        try:
            profile = self.build_profile(address, password)
        except InvalidAddressFormat as exc:
            self.query_one("#add-connection-error", Static).update(str(exc))
            return
        self.dismiss(profile)

    @on(Button.Pressed, "#add-connection-cancel")
    def action_cancel(self) -> None:
        self.dismiss(None)


__all__ = ["AddConnectionScreen"]
