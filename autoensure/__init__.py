"""Keep a game server console connected and ensure resources on save."""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
