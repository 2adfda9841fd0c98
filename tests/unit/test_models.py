"""Unit tests for dotpack.models and error serialization."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from dotpack.errors import ErrorCode, FetchFailed, InvalidExternalSpec, LocationNotFound
from dotpack.models.config import ExternalSpec, LocationSpec


class TestLocationSpec:
    def test_absolute_url(self) -> None:
        assert LocationSpec(url="https://example.com/a.py").absolute_url == "https://example.com/a.py"
        assert LocationSpec(url="lib/a.py").absolute_url is None
        assert LocationSpec(path="lib/a.py").absolute_url is None

    def test_dump_omits_unset(self) -> None:
        assert LocationSpec(path="lib/a.py").dump() == {"path": "lib/a.py"}

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LocationSpec.model_validate({"paht": "lib/a.py"})


class TestExternalSpec:
    def test_dep_names_default_to_depends_on(self) -> None:
        spec = ExternalSpec(url="ext.py", depends_on=["lib.base"])
        assert spec.injections() == [("lib.base", "lib.base")]

    def test_explicit_dep_names(self) -> None:
        spec = ExternalSpec(url="ext.py", depends_on=["lib.base"], dep_names=["base"])
        assert spec.injections() == [("lib.base", "base")]

    def test_single_url_becomes_list(self) -> None:
        assert ExternalSpec(url="ext.py").locations() == ["ext.py"]

    def test_empty_url_rejected(self) -> None:
        with pytest.raises(InvalidExternalSpec):
            ExternalSpec(url="").locations()

    def test_length_mismatch_rejected(self) -> None:
        spec = ExternalSpec(url="ext.py", depends_on=["a", "b"], dep_names=["x"])
        with pytest.raises(InvalidExternalSpec):
            spec.injections()


class TestErrors:
    def test_to_dict(self) -> None:
        error = LocationNotFound("lib/a.py")
        assert error.to_dict() == {
            "error": {
                "code": ErrorCode.LOCATION_NOT_FOUND,
                "message": "Package location [lib/a.py] not found.",
                "recoverable": False,
            }
        }

    def test_fetch_failed_is_recoverable(self) -> None:
        assert FetchFailed("down").recoverable is True
