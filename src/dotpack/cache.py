"""SQLite cache for package source fetched over the network.

All cache operations catch ``aiosqlite.Error`` internally and degrade
gracefully: read failures return ``None`` (treated as cache miss by callers),
write failures are logged and ignored (fetched source is still returned).
Errors are logged with ``exc_info=True`` so they remain observable via stderr.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import aiosqlite
import structlog

if TYPE_CHECKING:
    from dotpack.models.cache import SourceCacheEntry

log = structlog.get_logger()

_CREATE_SOURCE_TABLE = """
CREATE TABLE IF NOT EXISTS source_cache (
    location    TEXT PRIMARY KEY,
    content     TEXT NOT NULL,
    fetched_at  TEXT NOT NULL,
    expires_at  TEXT NOT NULL
)
"""

_CREATE_SOURCE_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_source_expires ON source_cache(expires_at)"
)


class SourceCache:
    """SQLite-backed cache of fetched package source."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_SOURCE_TABLE)
        await self._db.execute(_CREATE_SOURCE_INDEX)
        await self._db.commit()

    async def get(self, location: str) -> SourceCacheEntry | None:
        """Read an entry. Returns ``None`` on cache miss or read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT location, content, fetched_at, expires_at "
                "FROM source_cache WHERE location = ?",
                (location,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            from dotpack.models.cache import SourceCacheEntry

            fetched_at = datetime.fromisoformat(row[2])
            expires_at = datetime.fromisoformat(row[3])
            stale = datetime.now(UTC) > expires_at

            return SourceCacheEntry(
                location=row[0],
                content=row[1],
                fetched_at=fetched_at,
                expires_at=expires_at,
                stale=stale,
            )
        except aiosqlite.Error:
            log.warning("cache_read_error", key=location, exc_info=True)
            return None

    async def set(self, location: str, content: str, ttl_hours: int) -> None:
        """Write an entry. Non-fatal on failure."""
        try:
            now = datetime.now(UTC)
            expires_at = now + timedelta(hours=ttl_hours)
            await self._db.execute(
                "INSERT OR REPLACE INTO source_cache "
                "(location, content, fetched_at, expires_at) "
                "VALUES (?, ?, ?, ?)",
                (location, content, now.isoformat(), expires_at.isoformat()),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_write_error", key=location, exc_info=True)

    async def cleanup_expired(self) -> None:
        """Delete entries expired more than 7 days ago. Non-fatal on failure."""
        try:
            cutoff = (datetime.now(UTC) - timedelta(days=7)).isoformat()
            cursor = await self._db.execute(
                "DELETE FROM source_cache WHERE expires_at < ?", (cutoff,)
            )
            deleted = cursor.rowcount
            await self._db.commit()
            log.info("cache_cleanup_complete", deleted=deleted)
        except aiosqlite.Error:
            log.warning("cache_cleanup_error", exc_info=True)
