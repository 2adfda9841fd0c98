"""Per-name location configuration.

Entries are keyed by exact names (``com.acme.widgets``) or wildcard names
(``com.acme.*``). A wildcard entry may be a function of the name components it
does not cover; it returns a location for them or ``None`` to decline.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from importlib import resources
from typing import Any, TypeAlias

import structlog
import yaml
from pydantic import ValidationError

from dotpack.errors import InvalidExternalSpec
from dotpack.models.config import LocationSpec
from dotpack.names import SEPARATOR, WILDCARD, components, join

log = structlog.get_logger()

LocationFunction: TypeAlias = Callable[[list[str]], "LocationSpec | Mapping[str, Any] | None"]
ConfigEntry: TypeAlias = "LocationSpec | LocationFunction"


def as_location(value: LocationSpec | Mapping[str, Any]) -> LocationSpec:
    """Validate a configuration entry.

    A malformed ``external`` section raises ``InvalidExternalSpec``; other
    problems surface as the pydantic ``ValidationError``.
    """
    if isinstance(value, LocationSpec):
        return value
    try:
        return LocationSpec.model_validate(dict(value))
    except ValidationError as exc:
        if any(error["loc"][:1] == ("external",) for error in exc.errors()):
            raise InvalidExternalSpec(f"Invalid external specification: {exc}") from exc
        raise


class ConfigStore:
    """Location configuration with hierarchical wildcard lookup."""

    def __init__(self, entries: Mapping[str, Any] | None = None) -> None:
        self._entries: dict[str, ConfigEntry] = {}
        if entries:
            self.merge(entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> dict[str, ConfigEntry]:
        return dict(self._entries)

    def set(self, name: str, entry: Any) -> ConfigEntry:
        stored: ConfigEntry = entry if callable(entry) else as_location(entry)
        self._entries[name] = stored
        return stored

    def merge(self, mapping: Mapping[str, Any]) -> dict[str, ConfigEntry]:
        return {name: self.set(name, entry) for name, entry in mapping.items()}

    def find(self, name: str) -> LocationSpec | None:
        """Return the most specific location for ``name``.

        Tries ``a.b.c``, then ``a.b.*``, ``a.*`` and ``*``. A plain entry only
        matches at the exact level; function entries are called with the
        uncovered components and a falsy result continues the search. Whatever
        is found is cached under ``name``.
        """
        parts = components(name)
        found: LocationSpec | None = None
        for uncovered in range(len(parts) + 1):
            covered = parts[: len(parts) - uncovered]
            if uncovered == 0:
                key = name
            else:
                key = join(SEPARATOR.join(covered), WILDCARD)
            entry = self._entries.get(key)
            if entry is None:
                continue
            if callable(entry):
                result = entry(parts[len(parts) - uncovered :])
                if result:
                    found = as_location(result)
                    break
            elif uncovered == 0:
                found = entry
                break

        if found is not None and self._entries.get(name) is not found:
            self._entries[name] = found
            log.debug("config_cached", name=name, location=found.dump())
        return found


# ---------------------------------------------------------------------------
# Seed configuration
# ---------------------------------------------------------------------------


def github_location(parts: list[str]) -> LocationSpec | None:
    """``github.USER.PROJECT.x.y`` lives at ``USER/PROJECT/master/x/y.py``.

    ``github.USER.PROJECT`` itself maps to ``PROJECT.py`` in the repository
    root.
    """
    if len(parts) < 2:
        return None
    username, project = parts[0], parts[1]
    path = (project if len(parts) == 2 else "/".join(parts[2:])) + ".py"
    return LocationSpec(
        url=f"https://raw.githubusercontent.com/{username}/{project}/master/{path}"
    )


def load_known_packages() -> dict[str, LocationSpec]:
    """Well-known external modules shipped with dotpack."""
    text = resources.files("dotpack").joinpath("known_packages.yaml").read_text("utf-8")
    data = yaml.safe_load(text) or {}
    return {name: as_location(entry) for name, entry in data.items()}


def seeded_store(*, known_packages: bool = True) -> ConfigStore:
    store = ConfigStore()
    store.set("github.*", github_location)
    if known_packages:
        store.merge(load_known_packages())
    return store
