"""Concatenate package sources into one stand-alone Python file.

The output starts with the ``dotpack._prelude`` registry, binds it as
``package`` (also on ``builtins``), then carries every input file verbatim in
the given order and ends with ``package.finish()``. ``from __future__``
imports are hoisted to the top, the only place Python accepts them.
"""

from __future__ import annotations

import inspect
import re
from collections.abc import Iterable
from pathlib import Path

import structlog

from dotpack import _prelude

log = structlog.get_logger()

_FUTURE_IMPORT = re.compile(r"^from __future__ import .*$", re.MULTILINE)

_BRIDGE = """
package = BundledPackages()
builtins.package = package
"""


def bundle_sources(sources: Iterable[tuple[str, str]]) -> str:
    """Bundle ``(location, source)`` pairs."""
    futures: list[str] = []
    parts: list[str] = []
    for location, source in sources:
        for line in _FUTURE_IMPORT.findall(source):
            if line not in futures:
                futures.append(line)
        body = _FUTURE_IMPORT.sub("", source)
        parts.append(f"\n# --- {location} ---\n{body.rstrip()}\n")

    out = [*futures, inspect.getsource(_prelude), _BRIDGE, *parts, "\npackage.finish()\n"]
    return "\n".join(out)


def bundle(paths: Iterable[str | Path]) -> str:
    sources = []
    for path in paths:
        sources.append((str(path), Path(path).read_text("utf-8")))
    log.info("bundle_built", files=len(sources))
    return bundle_sources(sources)
