"""Error types raised by the registry, the fetchers and the offline tools.

Every error carries an ``ErrorCode`` and a ``recoverable`` flag. Errors that
describe a caller mistake (an invalid name, a malformed external spec) are
raised synchronously; errors that happen while a package is being acquired are
logged and routed to the waiters of that package.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    INVALID_NAME = "INVALID_NAME"
    LOCATION_NOT_FOUND = "LOCATION_NOT_FOUND"
    FETCH_FAILED = "FETCH_FAILED"
    URL_NOT_ALLOWED = "URL_NOT_ALLOWED"
    TOO_MANY_REDIRECTS = "TOO_MANY_REDIRECTS"
    CONFIG_CONFLICT = "CONFIG_CONFLICT"
    INVALID_EXTERNAL_SPEC = "INVALID_EXTERNAL_SPEC"
    PACKAGE_NOT_LOADED = "PACKAGE_NOT_LOADED"
    DEFINITION_FAILED = "DEFINITION_FAILED"


class RegistryError(Exception):
    """Base class for every error raised by dotpack."""

    code: ErrorCode = ErrorCode.DEFINITION_FAILED
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        recoverable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": str(self.code),
                "message": self.message,
                "recoverable": self.recoverable,
            }
        }


class InvalidName(RegistryError):
    code = ErrorCode.INVALID_NAME


class LocationNotFound(RegistryError):
    code = ErrorCode.LOCATION_NOT_FOUND

    def __init__(self, location: str, message: str | None = None) -> None:
        super().__init__(message or f"Package location [{location}] not found.")
        self.location = location


class FetchFailed(RegistryError):
    code = ErrorCode.FETCH_FAILED
    recoverable = True


class InvalidExternalSpec(RegistryError):
    code = ErrorCode.INVALID_EXTERNAL_SPEC


class PackageNotLoaded(RegistryError):
    code = ErrorCode.PACKAGE_NOT_LOADED
    recoverable = True


class DefinitionFailed(RegistryError):
    code = ErrorCode.DEFINITION_FAILED


class ConfigConflict(RegistryError):
    """Two sources declared different locations for the same package."""

    code = ErrorCode.CONFIG_CONFLICT

    def __init__(self, name: str, previous: Any, new: Any) -> None:
        super().__init__(
            f"Package [{name}] has conflicting configuration!\n"
            f"\tPrevious: {previous!r}\n"
            f"\tNew: {new!r}"
        )
        self.name = name
        self.previous = previous
        self.new = new
