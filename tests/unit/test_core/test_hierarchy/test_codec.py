"""Tests for materialized path encoding."""

from __future__ import annotations

import uuid

import pytest

from treepath.core.database.filters import parse_filters
from treepath.core.enums import IdType
from treepath.core.exceptions import InvalidArgumentsError
from treepath.core.hierarchy.codec import PathCodec


@pytest.fixture
def codec() -> PathCodec:
    return PathCodec(".")


@pytest.mark.unit
class TestPathComposition:
    def test_root_path_is_the_id(self, codec):
        assert codec.root_path("eu") == "eu"

    def test_root_path_uses_string_form(self):
        assert PathCodec(".", IdType.INT).root_path(42) == "42"

    def test_child_path_appends_separator_and_id(self, codec):
        assert codec.child_path("eu.se", "sthlm") == "eu.se.sthlm"

    def test_child_path_with_multi_character_separator(self):
        assert PathCodec("::").child_path("a::b", "c") == "a::b::c"

    def test_child_path_requires_parent_path(self, codec):
        with pytest.raises(ValueError, match="Parent path"):
            codec.child_path("", "se")

    @pytest.mark.parametrize("bad_id", [None, "", "e.u"])
    def test_check_id_rejects_unusable_ids(self, codec, bad_id):
        with pytest.raises(InvalidArgumentsError):
            codec.check_id(bad_id)

    def test_empty_separator_is_rejected(self):
        with pytest.raises(ValueError):
            PathCodec("")


@pytest.mark.unit
class TestLevels:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            (None, 1),
            ("", 1),
            ("eu", 1),
            ("eu.se", 2),
            ("eu.se.sthlm", 3),
        ],
    )
    def test_level_counts_separators(self, codec, path, expected):
        assert codec.level(path) == expected

    def test_level_matches_number_of_ancestors_plus_one(self, codec):
        path = "eu.se.sthlm.globe"
        assert codec.level(path) == len(codec.ancestor_ids(path)) + 1


@pytest.mark.unit
class TestDecomposition:
    def test_ancestor_ids_are_root_first_without_self(self, codec):
        assert codec.ancestor_ids("eu.se.sthlm") == ["eu", "se"]

    def test_root_and_empty_paths_have_no_ancestors(self, codec):
        assert codec.ancestor_ids("eu") == []
        assert codec.ancestor_ids("") == []
        assert codec.ancestor_ids(None) == []

    def test_ancestor_ids_are_parsed_by_id_type(self):
        assert PathCodec("#", IdType.INT).ancestor_ids("1#20#300") == [1, 20]

    def test_uuid_ancestor_ids(self):
        first, second = uuid.uuid4(), uuid.uuid4()
        codec = PathCodec("#", IdType.UUID)
        path = codec.child_path(codec.root_path(first), second)
        assert codec.ancestor_ids(path) == [first]

    def test_sort_key_keeps_subtrees_contiguous(self):
        codec = PathCodec("#")
        paths = ["a#b", "a!x", "a"]
        # "!" sorts below "#", so plain string order splits a from a#b
        assert sorted(paths) == ["a", "a!x", "a#b"]
        assert sorted(paths, key=codec.sort_key) == ["a", "a#b", "a!x"]


@pytest.mark.unit
class TestSubtreeMatching:
    def test_subtree_filter_is_anchored_on_separator(self, codec):
        assert codec.subtree_filter("eu.se") == {"path": {"$startswith": "eu.se."}}

    def test_subtree_filter_does_not_match_shared_string_prefix(self, codec):
        condition = parse_filters(codec.subtree_filter("a"))
        assert condition.matches({"path": "a.b"})
        assert not condition.matches({"path": "ab"})
        assert not condition.matches({"path": "a"})

    def test_is_descendant_path(self, codec):
        assert codec.is_descendant_path("eu.se.sthlm", "eu")
        assert not codec.is_descendant_path("eu", "eu")
        assert not codec.is_descendant_path("eux.se", "eu")
        assert not codec.is_descendant_path(None, "eu")

    def test_subtree_prefix_requires_path(self, codec):
        with pytest.raises(ValueError):
            codec.subtree_prefix("")


@pytest.mark.unit
class TestRewrite:
    def test_rewritten_path_swaps_prefix(self, codec):
        assert codec.rewritten_path("eu.se.sthlm", "af.se", "eu.se") == "af.se.sthlm"

    def test_rewrite_of_the_prefix_itself(self, codec):
        assert codec.rewritten_path("eu.se", "af.se", "eu.se") == "af.se"

    def test_rewrite_keeps_depth_below_prefix(self, codec):
        old = "eu.se.sthlm.globe"
        new = codec.rewritten_path(old, "se", "eu.se")
        assert new == "se.sthlm.globe"
        assert codec.level(old) - codec.level("eu.se") == codec.level(new) - codec.level("se")

    def test_rewrite_rejects_unrelated_path(self, codec):
        with pytest.raises(ValueError):
            codec.rewritten_path("eux.se", "af", "eu")

    def test_repr(self, codec):
        assert repr(codec) == "PathCodec('.', id_type='str')"
