from __future__ import annotations

from dotpack.models.cache import SourceCacheEntry
from dotpack.models.config import ExternalSpec, LocationSpec
from dotpack.models.state import LoadState

__all__ = [
    # config
    "LocationSpec",
    "ExternalSpec",
    # state
    "LoadState",
    # cache
    "SourceCacheEntry",
]
