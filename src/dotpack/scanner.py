"""Offline scan of package sources into one location map.

Each file is run against a ``RecordingRegistry`` that notes which names the
file defines (``name -> {"path": file}``) and which configuration it merges.
The result can be rendered as a ``package.config({...})`` source and placed
first in a bundle, so the order of the scanned files does not matter.
"""

from __future__ import annotations

import json
import pprint
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from dotpack.configstore import as_location
from dotpack.errors import ConfigConflict
from dotpack.names import resolve_name
from dotpack.sink import ExecSink

if TYPE_CHECKING:
    from dotpack.fetcher import Fetcher
    from dotpack.sink import Sink

log = structlog.get_logger()


def _has_path(entry: Any) -> bool:
    return isinstance(entry, dict) and bool(entry.get("path"))


class RecordingRegistry:
    """Stand-in ``package`` handle used while scanning."""

    def __init__(self) -> None:
        self.configurations: dict[str, Any] = {}
        self.path: str | None = None

    def define_value(self, name: str, definition: Any) -> None:
        self._record(name)

    def define_with_dependencies(
        self, name: str, dependencies: Sequence[str], definition: Any
    ) -> None:
        self._record(name)

    def _record(self, name: str) -> None:
        name = resolve_name(name)
        self.configurations[name] = {"path": self.path}
        log.debug("scan_package_found", name=name, path=self.path)

    def config(self, entries: Mapping[str, Any]) -> None:
        """Merge entries, rejecting a different spec for an already known name.

        A path entry may replace an entry without a path, so local files win
        over network and external locations.
        """
        for raw, entry in entries.items():
            name = resolve_name(raw)
            new = entry if callable(entry) else as_location(entry).dump()
            if name in self.configurations:
                previous = self.configurations[name]
                path_override = _has_path(new) and not _has_path(previous)
                if not path_override and previous != new:
                    raise ConfigConflict(name, previous, new)
            self.configurations[name] = new

    def external(
        self,
        name: str,
        url: str | list[str],
        exported_name: str | None = None,
        depends_on: Sequence[str] = (),
        dep_names: Sequence[str] | None = None,
    ) -> None:
        external: dict[str, Any] = {"url": url, "depends_on": list(depends_on)}
        if exported_name is not None:
            external["name"] = exported_name
        if dep_names is not None:
            external["dep_names"] = list(dep_names)
        self.config({name: {"external": external}})

    def aliases(self, short_to_full: Mapping[str, str]) -> None:
        pass

    def declare(self, names: Iterable[str]) -> None:
        pass

    def lookup(self, name: str) -> None:
        return None

    def request(self, name: str, callback: Any = None) -> None:
        return None


def scan(
    paths: Iterable[str | Path],
    *,
    known: Mapping[str, Any] | None = None,
    sink: Sink | None = None,
) -> dict[str, Any]:
    """Return the consolidated configuration for the given sources.

    Raises ``ConfigConflict`` on the first conflicting entry.
    """
    sink = sink or ExecSink()
    recorder = RecordingRegistry()
    if known:
        recorder.config(known)
    for path in paths:
        location = str(path)
        recorder.path = location
        source = Path(location).read_text("utf-8")
        sink.execute(source, location, recorder, Path(location).stem)
    return recorder.configurations


async def fetch_known_packages(fetcher: Fetcher, url: str) -> dict[str, Any]:
    """Fetch the published JSON map of well-known package locations."""
    data = json.loads(await fetcher.fetch(url))
    known = {name: as_location(entry).dump() for name, entry in data.items()}
    log.info("known_packages_fetched", url=url, count=len(known))
    return known


def render_config(configurations: Mapping[str, Any]) -> str:
    """Render a ``package.config({...})`` call; function entries are skipped."""
    plain = {}
    for name, entry in configurations.items():
        if callable(entry):
            log.warning("scan_function_config_skipped", name=name)
            continue
        plain[name] = entry
    body = pprint.pformat(plain, indent=4, sort_dicts=False)
    return f"# Generated by dotpack scan\npackage.config({body})\n"
