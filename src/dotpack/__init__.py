"""Runtime registry of dotted-name packages with on-demand async loading."""

from __future__ import annotations

from dotpack.configstore import ConfigStore
from dotpack.errors import (
    ConfigConflict,
    ErrorCode,
    InvalidExternalSpec,
    InvalidName,
    LocationNotFound,
    PackageNotLoaded,
    RegistryError,
)
from dotpack.fetcher import Fetcher, SourceFetcher
from dotpack.models import LoadState, LocationSpec
from dotpack.patterns import PatternView
from dotpack.registry import BoundRegistry, Registry
from dotpack.sink import ExecSink, Sink

__all__ = [
    "BoundRegistry",
    "ConfigConflict",
    "ConfigStore",
    "ErrorCode",
    "ExecSink",
    "Fetcher",
    "InvalidExternalSpec",
    "InvalidName",
    "LoadState",
    "LocationNotFound",
    "LocationSpec",
    "PackageNotLoaded",
    "PatternView",
    "Registry",
    "RegistryError",
    "Sink",
    "SourceFetcher",
]
