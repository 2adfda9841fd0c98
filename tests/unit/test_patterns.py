"""Unit tests for dotpack.patterns."""

from __future__ import annotations

import pytest

from dotpack.patterns import PatternTree, PatternView


class TestPatternTree:
    def test_view_of_missing_prefix_is_none(self) -> None:
        assert PatternTree().view("a") is None

    def test_view_of_leaf_is_none(self) -> None:
        tree = PatternTree()
        tree.publish(["a", "b"], 1)
        assert tree.view("a.b") is None

    def test_nested_views(self) -> None:
        tree = PatternTree()
        tree.publish(["a", "b", "c"], 1)
        root = tree.view("")
        assert isinstance(root, PatternView)
        assert root.pattern == "*"
        inner = root["a"]["b"]
        assert inner.pattern == "a.b.*"
        assert dict(inner) == {"c": 1}


class TestPatternView:
    def test_attribute_access(self) -> None:
        tree = PatternTree()
        tree.publish(["a", "b"], 2)
        assert tree.view("a").b == 2

    def test_missing_attribute_raises(self) -> None:
        tree = PatternTree()
        tree.publish(["a", "b"], 2)
        view = tree.view("a")
        with pytest.raises(AttributeError, match=r"a\.\* has no package \[zzz\]"):
            view.zzz

    def test_missing_key_raises(self) -> None:
        tree = PatternTree()
        tree.publish(["a", "b"], 2)
        with pytest.raises(KeyError):
            tree.view("a")["zzz"]

    def test_len_and_iter(self) -> None:
        tree = PatternTree()
        tree.publish(["a", "x"], 1)
        tree.publish(["a", "y"], 2)
        view = tree.view("a")
        assert len(view) == 2
        assert sorted(view) == ["x", "y"]
        assert repr(view) == "<PatternView a.* ['x', 'y']>"
