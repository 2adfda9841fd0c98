"""Source acquisition from local paths and http(s) URLs.

The registry only depends on the ``Fetcher`` protocol. ``SourceFetcher`` is
the default implementation: local files are read off the event loop with
``asyncio.to_thread``, network locations go through a shared
``httpx.AsyncClient`` with redirects followed manually so every hop is
checked against the allowed schemes.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urljoin, urlparse

import httpx
import structlog

from dotpack.config import FetcherSettings
from dotpack.errors import ErrorCode, FetchFailed, LocationNotFound, RegistryError

if TYPE_CHECKING:
    from dotpack.cache import SourceCache

log = structlog.get_logger()


class Fetcher(Protocol):
    async def fetch(self, location: str) -> str:
        """Return the source text at ``location`` or raise ``LocationNotFound``."""
        ...

    async def list_directory(self, location: str) -> tuple[list[str], list[str]]:
        """Return ``(files, directories)`` directly under a local directory."""
        ...


def is_url(location: str) -> bool:
    return urlparse(location).scheme in ("http", "https")


def build_http_client(settings: FetcherSettings | None = None) -> httpx.AsyncClient:
    settings = settings or FetcherSettings()
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.timeout_seconds),
        follow_redirects=False,
        headers={"User-Agent": "dotpack", "Accept-Encoding": "identity"},
    )


class SourceFetcher:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        settings: FetcherSettings | None = None,
        cache: SourceCache | None = None,
        cache_ttl_hours: int = 24,
    ) -> None:
        self._client = client
        self._settings = settings or FetcherSettings()
        self._cache = cache
        self._cache_ttl_hours = cache_ttl_hours

    async def fetch(self, location: str) -> str:
        if is_url(location):
            return await self._fetch_url(location)
        return await self._read_file(location)

    async def list_directory(self, location: str) -> tuple[list[str], list[str]]:
        if is_url(location):
            raise LocationNotFound(location, f"Cannot list remote location [{location}]")
        directory = Path(location or ".")

        def _scan() -> tuple[list[str], list[str]]:
            entries = sorted(os.listdir(directory))
            files = [e for e in entries if (directory / e).is_file()]
            dirs = [e for e in entries if (directory / e).is_dir()]
            return files, dirs

        try:
            return await asyncio.to_thread(_scan)
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise LocationNotFound(location) from exc
        except OSError as exc:
            raise FetchFailed(f"Cannot list [{location}]: {exc}") from exc

    async def _read_file(self, location: str) -> str:
        try:
            return await asyncio.to_thread(Path(location).read_text, "utf-8")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise LocationNotFound(location) from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise FetchFailed(f"Cannot read [{location}]: {exc}") from exc

    async def _fetch_url(self, url: str) -> str:
        cached = await self._cache.get(url) if self._cache is not None else None
        if cached is not None and not cached.stale:
            log.debug("source_cache_hit", location=url)
            return cached.content

        try:
            content = await self._download(url)
        except FetchFailed:
            if cached is None:
                raise
            log.warning("source_fetch_failed_serving_stale", location=url, exc_info=True)
            return cached.content

        if self._cache is not None:
            await self._cache.set(url, content, self._cache_ttl_hours)
        return content

    async def _download(self, url: str) -> str:
        if self._client is None:
            raise FetchFailed(f"No HTTP client configured to fetch [{url}]")

        current = url
        for _ in range(self._settings.max_redirects + 1):
            scheme = urlparse(current).scheme
            if scheme not in self._settings.allowed_schemes:
                raise RegistryError(
                    f"URL scheme not allowed: {current}",
                    code=ErrorCode.URL_NOT_ALLOWED,
                    recoverable=False,
                )
            try:
                response = await self._client.get(current)
            except httpx.HTTPError as exc:
                raise FetchFailed(f"Request to [{current}] failed: {exc}") from exc

            if response.is_redirect:
                target = response.headers.get("location")
                if not target:
                    raise FetchFailed(f"Redirect from [{current}] has no location")
                current = urljoin(current, target)
                continue
            if response.status_code == 404:
                raise LocationNotFound(url)
            if response.status_code != 200:
                raise FetchFailed(f"HTTP {response.status_code} fetching [{current}]")

            log.debug("source_fetched", location=url, final=current)
            return response.text

        raise RegistryError(
            f"Too many redirects fetching [{url}]",
            code=ErrorCode.TOO_MANY_REDIRECTS,
            recoverable=False,
        )
