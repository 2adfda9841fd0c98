"""Shared fixtures: an in-memory fetcher and a registry wired to it."""

from __future__ import annotations

import asyncio

import pytest

from dotpack.errors import LocationNotFound
from dotpack.registry import Registry


class FakeFetcher:
    """Serves sources from a dict and records every fetch.

    A location listed in ``gates`` is held until its event is set.
    """

    def __init__(self) -> None:
        self.sources: dict[str, str] = {}
        self.directories: dict[str, tuple[list[str], list[str]]] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []

    async def fetch(self, location: str) -> str:
        self.calls.append(location)
        gate = self.gates.get(location)
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)
        try:
            return self.sources[location]
        except KeyError:
            raise LocationNotFound(location) from None

    async def list_directory(self, location: str) -> tuple[list[str], list[str]]:
        try:
            return self.directories[location]
        except KeyError:
            raise LocationNotFound(location) from None


@pytest.fixture()
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture()
def registry(fetcher: FakeFetcher) -> Registry:
    return Registry(fetcher)
