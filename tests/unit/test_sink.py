"""Unit tests for dotpack.sink."""

from __future__ import annotations

import builtins

import pytest

from dotpack.sink import ExecSink


class TestExecSink:
    def test_execute_binds_package_and_names(self) -> None:
        seen: dict[str, object] = {}

        class Handle:
            def define_value(self, name, value):
                seen[name] = value

        source = "package.define_value(__package_name__, (__name__, __file__))"
        ExecSink().execute(source, "lib/a.py", Handle(), "lib.a")
        assert seen == {"lib.a": ("lib.a", "lib/a.py")}

    def test_syntax_error_propagates(self) -> None:
        with pytest.raises(SyntaxError):
            ExecSink().execute("def (", "broken.py", None, "broken")

    def test_external_namespace(self) -> None:
        sink = ExecSink()
        module = sink.external_namespace("lib.ext", {"base": 1})
        sink.execute_in(module, "value = base + 1\n", "ext.py")
        assert module.value == 2
        assert module.__global__ is builtins
        assert module.__file__ == "ext.py"

    def test_custom_global_object(self) -> None:
        host = object()
        assert ExecSink(host).global_object is host
