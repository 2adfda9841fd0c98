"""Hierarchical wildcard views over loaded packages.

Defining ``blah.bling.meow`` makes the value reachable as::

    registry.lookup("blah.bling.meow")
    registry.lookup("blah.bling.*")["meow"]
    registry.lookup("blah.*")["bling"]["meow"]
    registry.lookup("*").blah.bling.meow

Views are backed by a tree of nodes keyed by name component, so a view
obtained early keeps reflecting packages defined later under its prefix.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from dotpack.names import SEPARATOR, WILDCARD, join


class _Node:
    __slots__ = ("children", "defined", "value")

    def __init__(self) -> None:
        self.children: dict[str, _Node] = {}
        self.defined = False
        self.value: Any = None


class PatternView(Mapping[str, Any]):
    """Read-only live mapping of the packages directly under a prefix.

    An entry is the package value when that name has been defined, otherwise
    the nested view of its own sub-packages. Entries are also reachable as
    attributes, except where a ``Mapping`` method shadows them.
    """

    __slots__ = ("_node", "_prefix")

    def __init__(self, node: _Node, prefix: str = "") -> None:
        self._node = node
        self._prefix = prefix

    @property
    def pattern(self) -> str:
        return join(self._prefix, WILDCARD)

    def __getitem__(self, key: str) -> Any:
        child = self._node.children[key]
        if child.defined:
            return child.value
        return PatternView(child, join(self._prefix, key))

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._node.children))

    def __len__(self) -> int:
        return len(self._node.children)

    def __getattr__(self, key: str) -> Any:
        if key.startswith("__"):
            raise AttributeError(key)
        try:
            return self[key]
        except KeyError:
            raise AttributeError(f"{self.pattern} has no package [{key}]") from None

    def __repr__(self) -> str:
        return f"<PatternView {self.pattern} {sorted(self._node.children)}>"


class PatternTree:
    def __init__(self) -> None:
        self._root = _Node()

    def publish(self, parts: list[str], value: Any) -> None:
        node = self._root
        for part in parts:
            node = node.children.setdefault(part, _Node())
        node.defined = True
        node.value = value

    def _find(self, parts: list[str]) -> _Node | None:
        node = self._root
        for part in parts:
            child = node.children.get(part)
            if child is None:
                return None
            node = child
        return node

    def view(self, prefix: str) -> PatternView | None:
        """The view for ``prefix.*`` (``""`` for ``*``), or None if nothing is under it."""
        parts = prefix.split(SEPARATOR) if prefix else []
        node = self._find(parts)
        if node is None or not node.children:
            return None
        return PatternView(node, prefix)
