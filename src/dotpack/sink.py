"""Materializing fetched source text.

A ``Sink`` turns source text into effects on the registry: package sources
run with a ``package`` handle in scope and define themselves through it,
external scripts run inside their own module namespace with their
dependencies injected as plain symbols.
"""

from __future__ import annotations

import builtins
import types
from typing import Any, Protocol


class Sink(Protocol):
    @property
    def global_object(self) -> Any: ...

    def execute(self, source: str, location: str, package: Any, name: str) -> None:
        """Run a package source with ``package`` bound to a registry handle."""
        ...

    def external_namespace(self, name: str, injected: dict[str, Any]) -> types.ModuleType: ...

    def execute_in(self, namespace: types.ModuleType, source: str, location: str) -> None: ...


class ExecSink:
    """Runs Python source with ``exec`` in a fresh namespace per execution."""

    def __init__(self, global_object: Any = builtins) -> None:
        self._global_object = global_object

    @property
    def global_object(self) -> Any:
        return self._global_object

    def execute(self, source: str, location: str, package: Any, name: str) -> None:
        code = compile(source, location, "exec")
        namespace: dict[str, Any] = {
            "__name__": name,
            "__file__": location,
            "__package_name__": name,
            "package": package,
        }
        exec(code, namespace)

    def external_namespace(self, name: str, injected: dict[str, Any]) -> types.ModuleType:
        module = types.ModuleType(name)
        module.__dict__["__global__"] = self._global_object
        module.__dict__.update(injected)
        return module

    def execute_in(self, namespace: types.ModuleType, source: str, location: str) -> None:
        namespace.__dict__["__file__"] = location
        exec(compile(source, location, "exec"), namespace.__dict__)
