"""Package name grammar and resolution.

A package name is a dotted sequence of identifier components, e.g.
``com.acme.widgets``. Special forms:

* relative  ``.sibling``   expanded against an explicit parent name
* wildcard  ``com.acme.*`` or the bare root ``*``
* pseudo    ``#global``    supplied by the host, never fetched
"""

from __future__ import annotations

import posixpath
import re
from typing import TYPE_CHECKING

from dotpack.errors import InvalidName

if TYPE_CHECKING:
    from collections.abc import Mapping

SEPARATOR = "."
WILDCARD = "*"
PSEUDO_PREFIX = "#"
DEFAULT_LISTING = "__listing__"

_COMPONENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def components(name: str) -> list[str]:
    return name.split(SEPARATOR)


def validate_name(name: str) -> str:
    """Return ``name`` unchanged, or raise ``InvalidName``."""
    parts = components(name)
    last = len(parts) - 1
    for i, part in enumerate(parts):
        if part == WILDCARD and i == last:
            continue
        if i == 0 and part.startswith(PSEUDO_PREFIX):
            part = part[len(PSEUDO_PREFIX) :]
        if not _COMPONENT.fullmatch(part):
            raise InvalidName(f"Invalid package component name [{part}] in [{name}]")
    return name


def is_component(part: str) -> bool:
    return _COMPONENT.fullmatch(part) is not None


def is_relative(name: str) -> bool:
    return name.startswith(SEPARATOR)


def is_wildcard(name: str) -> bool:
    return name == WILDCARD or name.endswith(SEPARATOR + WILDCARD)


def is_pseudo(name: str) -> bool:
    return name.startswith(PSEUDO_PREFIX)


def parent_of(name: str) -> str:
    """``a.b.c`` -> ``a.b``; a single component has the empty parent."""
    return name.rpartition(SEPARATOR)[0]


def leaf_of(name: str) -> str:
    return name.rpartition(SEPARATOR)[2]


def join(prefix: str, leaf: str) -> str:
    return f"{prefix}{SEPARATOR}{leaf}" if prefix else leaf


def resolve_name(
    raw: str,
    parent: str | None = None,
    aliases: Mapping[str, str] | None = None,
    substitute: str | None = "-",
) -> str:
    """Normalize ``raw`` into a full package name.

    Substitute characters become ``_``, a relative name is expanded against
    ``parent``, and a single alias hop is applied last.
    """
    name = raw.replace(substitute, "_") if substitute else raw
    if is_relative(name):
        if not parent:
            raise InvalidName(f"Relative package name [{raw}] used without a parent package")
        name = parent + name
    validate_name(name)
    if aliases and name in aliases:
        name = aliases[name]
    return name


# ---------------------------------------------------------------------------
# Wildcards and listings
# ---------------------------------------------------------------------------


def wildcard_prefix(name: str) -> str:
    """``a.b.*`` -> ``a.b``; ``*`` -> ``""``."""
    return "" if name == WILDCARD else name[: -len(SEPARATOR + WILDCARD)]


def listing_for(wildcard: str, listing_name: str = DEFAULT_LISTING) -> str:
    return join(wildcard_prefix(wildcard), listing_name)


def is_listing(name: str, listing_name: str = DEFAULT_LISTING) -> bool:
    return leaf_of(name) == listing_name


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


def derive_path(name: str, root: str = ".", suffix: str = ".py") -> str:
    """``a.b.c`` -> ``<root>/a/b/c.py``."""
    relative = "/".join(components(name)) + suffix
    if root in ("", "."):
        return relative
    return posixpath.join(root, relative)


def sibling_location(location: str, name: str, suffix: str = ".py") -> str:
    """Replace the file part of ``location`` with the leaf of ``name``.

    ``dir/target.py`` and ``canine.dog.bowow`` give ``dir/bowow.py``.
    """
    head, sep, _ = location.rpartition("/")
    return f"{head}{sep}{leaf_of(name)}{suffix}"


def listing_directory(location: str, listing_name: str = DEFAULT_LISTING, suffix: str = ".py") -> str:
    """``lib/a/b/__listing__.py`` -> ``lib/a/b/``.

    Any other file name is dropped the same way: ``lib/index.py`` -> ``lib/``.
    """
    filename = listing_name + suffix
    if location.endswith(filename):
        return location[: -len(filename)]
    head = posixpath.dirname(location)
    return f"{head}/" if head else ""
