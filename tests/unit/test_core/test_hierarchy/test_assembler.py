"""Tests for flat-list to nested-tree assembly."""

from __future__ import annotations

import copy

import pytest

from treepath.core.database.filters import normalize_sort
from treepath.core.hierarchy.assembler import TreeAssembler, flatten_tree
from treepath.core.hierarchy.codec import PathCodec


def node(path: str, name: str | None = None, **extra) -> dict:
    node_id = path.rsplit(".", 1)[-1]
    parent = path.rsplit(".", 1)[0] if "." in path else None
    return {
        "id": node_id,
        "parent": parent.rsplit(".", 1)[-1] if parent else None,
        "path": path,
        "name": name or node_id,
        **extra,
    }


@pytest.fixture
def assembler() -> TreeAssembler:
    return TreeAssembler(PathCodec("."))


@pytest.fixture
def forest() -> list[dict]:
    """Sample forest in path order."""
    return [
        node("af", "Africa"),
        node("eu", "Europe"),
        node("eu.no", "Norway"),
        node("eu.se", "Sweden"),
        node("eu.se.sthlm", "Stockholm"),
        node("eu.se.sthlm.globe", "Globe"),
    ]


def shape(roots: list[dict]) -> list:
    """Nested (id, children) tuples for structural comparisons."""
    return [(item["id"], shape(item.get("children", []))) for item in roots]


@pytest.mark.unit
class TestStructure:
    def test_forest_has_two_roots(self, assembler, forest):
        roots = assembler.assemble(forest)

        assert [item["id"] for item in roots] == ["af", "eu"]
        europe = roots[1]
        assert len(europe["children"]) == 2
        assert europe["children"][1]["children"][0]["children"][0]["name"] == "Globe"

    def test_sibling_order_is_input_order_without_sort(self, assembler, forest):
        assert shape(assembler.assemble(forest)) == [
            ("af", []),
            ("eu", [("no", []), ("se", [("sthlm", [("globe", [])])])]),
        ]

    def test_every_node_gets_children_list(self, assembler, forest):
        roots = assembler.assemble(forest)
        assert roots[0]["children"] == []

    def test_empty_input(self, assembler):
        assert assembler.assemble([]) == []

    def test_node_with_missing_parent_is_discarded(self, assembler):
        nodes = [node("eu"), node("eu.se.sthlm")]
        assert shape(assembler.assemble(nodes)) == [("eu", [])]

    def test_node_is_not_attached_to_unrelated_previous_sibling(self, assembler):
        # eu.se is absent: sthlm must not end up under eu.no
        nodes = [node("eu"), node("eu.no"), node("eu.se.sthlm")]
        assert shape(assembler.assemble(nodes)) == [("eu", [("no", [])])]


@pytest.mark.unit
class TestLevelBounds:
    def test_min_level_promotes_deeper_nodes_to_top_level(self, assembler, forest):
        roots = assembler.assemble(forest, min_level=3)
        assert shape(roots) == [("sthlm", [("globe", [])])]

    def test_max_level_cuts_deeper_nodes(self, assembler, forest):
        roots = assembler.assemble(forest, max_level=2)
        assert shape(roots) == [("af", []), ("eu", [("no", []), ("se", [])])]

    def test_min_and_max_level(self, assembler, forest):
        roots = assembler.assemble(forest, min_level=2, max_level=3)
        assert shape(roots) == [("no", []), ("se", [("sthlm", [])])]

    def test_root_path_shifts_placement_level(self, assembler, forest):
        subtree = [item for item in forest if item["path"].startswith("eu.")]
        roots = assembler.assemble(subtree, root_path="eu")
        assert shape(roots) == [("no", []), ("se", [("sthlm", [("globe", [])])])]

    def test_min_level_is_clamped_to_root_level(self, assembler, forest):
        subtree = [item for item in forest if item["path"].startswith("eu.se.")]
        assert assembler.placement_level(1, "eu.se") == 3
        roots = assembler.assemble(subtree, min_level=1, root_path="eu.se")
        assert shape(roots) == [("sthlm", [("globe", [])])]

    def test_min_level_above_root_level_wins(self, assembler):
        assert assembler.placement_level(4, "eu") == 4


@pytest.mark.unit
class TestSorting:
    def test_every_sibling_group_is_sorted(self, assembler):
        nodes = [
            node("b", rank=2),
            node("b.y", rank=1),
            node("b.x", rank=2),
            node("a", rank=1),
        ]
        roots = assembler.assemble(nodes, sort=normalize_sort({"rank": 1}))
        assert shape(roots) == [("a", []), ("b", [("y", []), ("x", [])])]

    def test_descending_multi_key_sort(self, assembler):
        nodes = [
            node("a", group=1, name="a"),
            node("b", group=2, name="b"),
            node("c", group=2, name="c"),
        ]
        roots = assembler.assemble(nodes, sort=normalize_sort("-group name"))
        assert [item["id"] for item in roots] == ["b", "c", "a"]


@pytest.mark.unit
class TestEmptyChildren:
    def test_empty_children_are_dropped_on_request(self, assembler, forest):
        roots = assembler.assemble(forest, allow_empty_children=False)

        assert "children" not in roots[0]
        globe = roots[1]["children"][1]["children"][0]["children"][0]
        assert "children" not in globe
        assert roots[1]["children"]


@pytest.mark.unit
class TestRoundTrip:
    def test_flatten_then_assemble_rebuilds_the_tree(self, assembler, forest):
        tree = assembler.assemble(copy.deepcopy(forest))
        flat = list(flatten_tree(tree))

        assert [item["path"] for item in flat] == [item["path"] for item in forest]
        assert shape(assembler.assemble(flat)) == shape(tree)
