"""Wiring of a ready-to-use registry from ``Settings``."""

from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import httpx
import structlog

from dotpack.cache import SourceCache
from dotpack.config import Settings
from dotpack.configstore import seeded_store
from dotpack.fetcher import SourceFetcher, build_http_client
from dotpack.registry import Registry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from dotpack.sink import Sink

log = structlog.get_logger()


@dataclass
class AppState:
    settings: Settings
    registry: Registry
    fetcher: SourceFetcher
    http_client: httpx.AsyncClient | None = None
    cache: SourceCache | None = None


@asynccontextmanager
async def open_registry(
    settings: Settings | None = None, *, sink: Sink | None = None
) -> AsyncIterator[AppState]:
    """Build the HTTP client, the source cache and a seeded registry.

    Everything is closed again when the context exits.
    """
    settings = settings or Settings()
    async with AsyncExitStack() as stack:
        client = await stack.enter_async_context(build_http_client(settings.fetcher))

        cache: SourceCache | None = None
        if settings.cache.enabled:
            db_path = Path(settings.cache.db_path).expanduser()
            db_path.parent.mkdir(parents=True, exist_ok=True)
            db = await stack.enter_async_context(aiosqlite.connect(db_path))
            cache = SourceCache(db)
            await cache.init_db()

        fetcher = SourceFetcher(client, settings.fetcher, cache, settings.cache.ttl_hours)
        registry = Registry(
            fetcher,
            sink,
            config=seeded_store(known_packages=settings.registry.seed_known_packages),
            settings=settings.registry,
        )
        log.debug("registry_ready", root_dir=settings.registry.root_dir, cache=cache is not None)
        yield AppState(
            settings=settings,
            registry=registry,
            fetcher=fetcher,
            http_client=client,
            cache=cache,
        )
