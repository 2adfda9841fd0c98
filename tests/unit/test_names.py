"""Unit tests for dotpack.names."""

from __future__ import annotations

import pytest

from dotpack.errors import InvalidName
from dotpack.names import (
    derive_path,
    is_listing,
    is_pseudo,
    is_wildcard,
    leaf_of,
    listing_directory,
    listing_for,
    parent_of,
    resolve_name,
    sibling_location,
    validate_name,
    wildcard_prefix,
)

# ---------------------------------------------------------------------------
# validate_name
# ---------------------------------------------------------------------------


class TestValidateName:
    @pytest.mark.parametrize(
        "name",
        ["a", "com.acme.widgets", "_private.x1", "com.acme.*", "*", "#global", "#host.child"],
    )
    def test_valid(self, name: str) -> None:
        assert validate_name(name) == name

    @pytest.mark.parametrize(
        "name",
        ["", "a..b", "a.", "1abc", "a.b-c", "a.*.b", "a.#b", "a b", "a/b"],
    )
    def test_invalid(self, name: str) -> None:
        with pytest.raises(InvalidName):
            validate_name(name)

    def test_error_names_the_component(self) -> None:
        with pytest.raises(InvalidName, match=r"\[9lives\] in \[cat\.9lives\]"):
            validate_name("cat.9lives")


# ---------------------------------------------------------------------------
# resolve_name
# ---------------------------------------------------------------------------


class TestResolveName:
    def test_substitute_becomes_underscore(self) -> None:
        assert resolve_name("com.acme.sample-manager") == "com.acme.sample_manager"

    def test_relative_uses_parent(self) -> None:
        assert resolve_name(".bowow", parent="canine.dog") == "canine.dog.bowow"

    def test_relative_without_parent_raises(self) -> None:
        with pytest.raises(InvalidName):
            resolve_name(".bowow")

    def test_single_alias_hop(self) -> None:
        aliases = {"short": "com.acme.long", "com.acme.long": "other"}
        assert resolve_name("short", aliases=aliases) == "com.acme.long"

    def test_substitute_disabled(self) -> None:
        with pytest.raises(InvalidName):
            resolve_name("sample-manager", substitute=None)


# ---------------------------------------------------------------------------
# Name helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_parent_and_leaf(self) -> None:
        assert parent_of("a.b.c") == "a.b"
        assert parent_of("a") == ""
        assert leaf_of("a.b.c") == "c"

    def test_wildcards(self) -> None:
        assert is_wildcard("a.b.*")
        assert is_wildcard("*")
        assert not is_wildcard("a.b")
        assert wildcard_prefix("a.b.*") == "a.b"
        assert wildcard_prefix("*") == ""

    def test_listing_names(self) -> None:
        assert listing_for("a.b.*") == "a.b.__listing__"
        assert listing_for("*") == "__listing__"
        assert listing_for("a.*", "index") == "a.index"
        assert is_listing("a.b.__listing__")
        assert not is_listing("a.b")

    def test_pseudo(self) -> None:
        assert is_pseudo("#global")
        assert not is_pseudo("global")


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


class TestLocations:
    def test_derive_path(self) -> None:
        assert derive_path("a.b.c") == "a/b/c.py"
        assert derive_path("a.b.c", root="lib") == "lib/a/b/c.py"
        assert derive_path("a", root="/srv/pkgs/", suffix=".pkg") == "/srv/pkgs/a.pkg"

    def test_sibling_location(self) -> None:
        assert sibling_location("dir/target.py", "canine.dog.bowow") == "dir/bowow.py"
        assert sibling_location("target.py", "canine.dog.bowow") == "bowow.py"
        assert (
            sibling_location("https://example.com/lib/a.py", "x.helper")
            == "https://example.com/lib/helper.py"
        )

    def test_listing_directory(self) -> None:
        assert listing_directory("lib/a/b/__listing__.py") == "lib/a/b/"
        assert listing_directory("__listing__.py") == ""

    def test_listing_directory_of_other_file_name(self) -> None:
        assert listing_directory("lib/shop/index.py") == "lib/shop/"
        assert listing_directory("index.py") == ""
