"""Tests for widget helpers that do not need a running app."""

from __future__ import annotations

import pytest

from autoensure.models import ConnectionProfile, InvalidAddressFormat
from autoensure.widgets import AddConnectionScreen


def test_add_connection_builds_profile() -> None:
    screen = AddConnectionScreen()

    profile = screen.build_profile("127.0.0.1:30120", "secret")

    assert profile == ConnectionProfile(address="127.0.0.1", port=30120, credential="secret")


@pytest.mark.parametrize(
    ("address", "password", "message"),
    [
        ("", "secret", "No connection details provided!"),
        ("127.0.0.1:30120", "", "Incomplete connection details provided!"),
        ("127.0.0.1", "secret", None),
    ],
)
def test_add_connection_rejects_bad_input(address: str, password: str, message: str | None) -> None:
    screen = AddConnectionScreen()

    with pytest.raises(InvalidAddressFormat) as excinfo:
        screen.build_profile(address, password)

    if message is not None:
        assert str(excinfo.value) == message
