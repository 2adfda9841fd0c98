"""Unit-specific fixtures (no I/O beyond in-memory SQLite)."""

from __future__ import annotations

import aiosqlite
import pytest

from dotpack.cache import SourceCache


@pytest.fixture()
async def cache():
    """In-memory SQLite source cache for unit tests."""
    async with aiosqlite.connect(":memory:") as db:
        c = SourceCache(db)
        await c.init_db()
        yield c
