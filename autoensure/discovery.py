"""Filesystem lookup of resource folders for recursive ensure."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Sequence

RESOURCE_MANIFESTS: tuple[str, ...] = ("fxmanifest.lua", "__resource.lua")

ResourceFinder = Callable[[Path, Sequence[str]], Awaitable[Sequence[str]]]


async def find_resource_folders(root: Path, patterns: Sequence[str] = RESOURCE_MANIFESTS) -> list[str]:
    """Names of folders under ``root`` that directly contain a manifest file."""

    return await asyncio.to_thread(_scan, Path(root), tuple(patterns))


def _scan(root: Path, patterns: tuple[str, ...]) -> list[str]:
    names: dict[str, None] = {}
    if not root.is_dir():
        return []
    for pattern in patterns:
        for manifest in sorted(root.rglob(pattern)):
            if manifest.is_file():
                names.setdefault(manifest.parent.name, None)
    return list(names)


__all__ = ["RESOURCE_MANIFESTS", "ResourceFinder", "find_resource_folders"]
