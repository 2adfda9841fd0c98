from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, model_validator

from dotpack.errors import InvalidExternalSpec

_ABSOLUTE_URL = re.compile(r"^https?://")


class ExternalSpec(BaseModel):
    """A foreign script that does not call the registry itself.

    ``url`` lists one or more locations fetched in order; every location but
    the last is run as a prelude in the same namespace. ``depends_on`` names
    registry packages injected into the script as ``dep_names``.
    """

    model_config = ConfigDict(extra="forbid")

    url: str | list[str]
    name: str | None = None  # Exported symbol; the whole module when absent
    depends_on: list[str] = []
    dep_names: list[str] | None = None

    @model_validator(mode="after")
    def default_dep_names(self) -> ExternalSpec:
        if self.dep_names is None:
            self.dep_names = list(self.depends_on)
        return self

    def locations(self) -> list[str]:
        urls = [self.url] if isinstance(self.url, str) else list(self.url)
        if not urls or not all(isinstance(u, str) and u for u in urls):
            raise InvalidExternalSpec(f"Invalid urls specification: {self.url!r}")
        return urls

    def injections(self) -> list[tuple[str, str]]:
        """(registry name, local symbol) pairs to bind in the script."""
        names = self.dep_names if self.dep_names is not None else self.depends_on
        if len(names) != len(self.depends_on):
            raise InvalidExternalSpec(
                f"depends_on and dep_names differ in length for [{self.name}]"
            )
        return list(zip(self.depends_on, names))


class LocationSpec(BaseModel):
    """Where a package's source lives."""

    model_config = ConfigDict(extra="forbid")

    path: str | None = None
    url: str | None = None  # Takes precedence over path when absolute
    alias: str | None = None
    external: ExternalSpec | None = None

    @property
    def absolute_url(self) -> str | None:
        if self.url and _ABSOLUTE_URL.match(self.url):
            return self.url
        return None

    def dump(self) -> dict:
        return self.model_dump(exclude_none=True)
