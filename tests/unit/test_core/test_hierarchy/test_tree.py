"""End-to-end tests of MaterializedPathTree over the in-memory store.

Covers the example scenarios (separator ".") and the tree properties:
path composition, levels, cascade completeness, no-op saves, DELETE and
REPARENT deletion, assembly round trip and prefix anchoring.
"""

from __future__ import annotations

import uuid

import pytest

from treepath.core.database.exceptions import NotFoundError
from treepath.core.enums import IdType, OnDelete
from treepath.core.exceptions import (
    CascadeRewriteError,
    CycleDetectedError,
    InvalidArgumentsError,
    ParentNotFoundError,
)
from treepath.core.hierarchy import MaterializedPathTree, TreeNode, flatten_tree
from treepath.core.settings import TreeSettings


def assert_paths_consistent(store) -> None:
    """Every stored path equals the parent's path plus the node id."""
    snapshot = store.snapshot()
    for node_id, document in snapshot.items():
        parent = document.get("parent")
        if parent is None:
            assert document["path"] == str(node_id)
        else:
            assert document["path"] == f"{snapshot[parent]['path']}.{node_id}"


def names(nodes) -> list[str]:
    return [node["name"] for node in nodes]


# ============================================================================
# Scenarios
# ============================================================================


@pytest.mark.unit
class TestScenarios:
    async def test_create_chain(self, tree):
        europe = await tree.insert({"id": "eu", "name": "Europe"})
        sweden = await tree.insert({"id": "se", "name": "Sweden", "parent": europe})
        stockholm = await tree.insert({"id": "sthlm", "name": "Stockholm", "parent": "se"})

        assert (europe["path"], tree.level(europe)) == ("eu", 1)
        assert (sweden["path"], tree.level(sweden)) == ("eu.se", 2)
        assert (stockholm["path"], tree.level(stockholm)) == ("eu.se.sthlm", 3)

    async def test_reparent_cascades(self, tree, world, stored_paths):
        moved = await tree.move("se", "af")

        assert moved["path"] == "af.se"
        assert stored_paths(world)["sthlm"] == "af.se.sthlm"
        assert stored_paths(world)["globe"] == "af.se.sthlm.globe"
        assert_paths_consistent(world)

    async def test_delete_reparents_children_by_default(self, tree, world):
        await tree.delete("se")

        snapshot = world.snapshot()
        assert "se" not in snapshot
        assert snapshot["sthlm"]["parent"] == "eu"
        assert snapshot["sthlm"]["path"] == "eu.sthlm"
        assert_paths_consistent(world)

    async def test_delete_mode_removes_subtree(self, make_tree, world):
        tree = make_tree(on_delete=OnDelete.DELETE)

        removed = await tree.delete("se")

        assert removed == 3
        assert set(world.snapshot()) == {"af", "eu", "no"}

    async def test_children_tree_of_forest(self, tree, world):
        roots = await tree.get_children_tree()

        assert names(roots) == ["Africa", "Europe"]
        europe = roots[1]
        assert len(europe["children"]) == 2
        sweden = europe["children"][1]
        assert sweden["children"][0]["children"][0]["name"] == "Globe"

    async def test_children_tree_with_min_level(self, tree, world):
        roots = await tree.get_children_tree(min_level=3)

        assert names(roots) == ["Stockholm"]
        assert names(roots[0]["children"]) == ["Globe"]


# ============================================================================
# Writes
# ============================================================================


@pytest.mark.unit
class TestWrites:
    async def test_paths_follow_parents(self, world):
        assert_paths_consistent(world)

    async def test_insert_generates_string_id(self, tree):
        stored = await tree.insert({"name": "Anywhere"})
        assert len(stored["id"]) == 32
        assert stored["path"] == stored["id"]

    async def test_insert_generates_uuid_id(self, make_tree):
        tree = make_tree(id_type=IdType.UUID)
        stored = await tree.insert({"name": "Anywhere"})
        assert isinstance(stored["id"], uuid.UUID)
        assert stored["path"] == str(stored["id"])

    async def test_integer_ids_must_be_supplied(self, make_tree):
        tree = make_tree(id_type=IdType.INT)
        with pytest.raises(InvalidArgumentsError):
            await tree.insert({"name": "Anywhere"})

    async def test_integer_ids(self, make_tree, store):
        tree = make_tree(id_type=IdType.INT)
        await tree.insert({"id": 1})
        await tree.insert({"id": 20, "parent": 1})
        child = await tree.insert({"id": 300, "parent": 20})

        assert child["path"] == "1.20.300"
        ancestors = await tree.get_ancestors(300, sort="path")
        assert [node["id"] for node in ancestors] == [1, 20]

    async def test_insert_ignores_caller_path_and_children(self, tree):
        stored = await tree.insert({"id": "eu", "path": "x.y", "children": [{"id": "z"}]})
        assert stored["path"] == "eu"
        assert "children" not in stored

    async def test_insert_with_unknown_parent_writes_nothing(self, tree, store):
        with pytest.raises(ParentNotFoundError):
            await tree.insert({"id": "se", "parent": "nowhere"})
        assert len(store) == 0

    async def test_id_with_separator_is_rejected(self, tree, store):
        with pytest.raises(InvalidArgumentsError):
            await tree.insert({"id": "e.u"})
        assert len(store) == 0

    async def test_parent_may_be_given_as_tree_node(self, tree, world):
        africa = await tree.get_node("af", lean=False)
        moved = await tree.move("se", africa)
        assert moved["path"] == "af.se"

    async def test_save_without_parent_change_is_a_noop_for_paths(self, tree, world):
        sweden = await world.find_one({"id": "se"})
        world.calls.clear()

        saved = await tree.save({**sweden, "name": "Sverige"})

        assert saved["path"] == "eu.se"
        assert world.snapshot()["se"]["name"] == "Sverige"
        # one lookup of the node itself, never of the parent
        assert world.called("find_one") == [{"id": "se"}, {"id": "se"}]
        assert world.called("update_one") == ["se"]
        assert world.called("find") == []

    async def test_save_inserts_unknown_document(self, tree, store):
        saved = await tree.save({"id": "eu"})
        assert saved["path"] == "eu"
        assert len(store) == 1

    async def test_update_of_missing_node(self, tree, store):
        with pytest.raises(NotFoundError):
            await tree.update("nowhere", {"name": "x"})

    async def test_ids_cannot_change(self, tree, world):
        with pytest.raises(InvalidArgumentsError):
            await tree.update("se", {"id": "sv"})

    async def test_move_to_root(self, tree, world):
        moved = await tree.move("se", None)
        assert moved["path"] == "se"
        assert world.snapshot()["globe"]["path"] == "se.sthlm.globe"

    async def test_move_under_unknown_parent_changes_nothing(self, tree, world, stored_paths):
        before = stored_paths(world)
        with pytest.raises(ParentNotFoundError):
            await tree.move("se", "nowhere")
        assert stored_paths(world) == before

    @pytest.mark.parametrize("target", ["se", "sthlm", "globe"])
    async def test_move_into_own_subtree_is_rejected(self, tree, world, stored_paths, target):
        before = stored_paths(world)
        with pytest.raises(CycleDetectedError):
            await tree.move("se", target)
        assert stored_paths(world) == before

    async def test_cascade_keeps_relative_depth(self, tree, world):
        before = {node_id: tree.level(doc) for node_id, doc in world.snapshot().items()}

        await tree.move("se", "no")

        after = {node_id: tree.level(doc) for node_id, doc in world.snapshot().items()}
        for node_id in ("se", "sthlm", "globe"):
            assert after[node_id] - after["se"] == before[node_id] - before["se"]
        assert after["se"] == 3

    async def test_rebuild_paths_finishes_failed_move(self, tree, world):
        world.fail_updates.add("sthlm")
        with pytest.raises(CascadeRewriteError):
            await tree.move("se", "af")

        world.fail_updates.clear()
        await tree.rebuild_paths("se")

        assert_paths_consistent(world)


# ============================================================================
# Deletes
# ============================================================================


@pytest.mark.unit
class TestDeletes:
    async def test_delete_mode_leaves_lookalike_ids(self, make_tree, store):
        tree = make_tree(on_delete="DELETE")
        await tree.insert({"id": "a"})
        await tree.insert({"id": "b", "parent": "a"})
        await tree.insert({"id": "ab"})

        await tree.delete("a")

        assert set(store.snapshot()) == {"ab"}

    async def test_reparent_mode_keeps_every_descendant(self, tree, world):
        await tree.delete("eu")

        snapshot = world.snapshot()
        assert set(snapshot) == {"af", "no", "se", "sthlm", "globe"}
        assert snapshot["no"]["parent"] is None
        assert_paths_consistent(world)

    async def test_delete_missing_node(self, tree, store):
        with pytest.raises(NotFoundError):
            await tree.delete("nowhere")

    async def test_delete_of_pathless_node_has_no_side_effects(self, tree, world):
        await world.update_one("se", {"path": ""})

        await tree.delete({"id": "se", "path": "eu.se"})

        assert world.snapshot()["sthlm"]["parent"] == "se"

    async def test_delete_mode_uses_stored_path_not_snapshot(self, make_tree, world):
        tree = make_tree(on_delete=OnDelete.DELETE)
        stockholm = await tree.get_node("sthlm")
        await tree.move("se", "af")

        removed = await tree.delete(stockholm)

        assert removed == 2
        assert set(world.snapshot()) == {"af", "eu", "no", "se"}

    async def test_reparent_mode_uses_stored_parent_not_snapshot(self, tree, world):
        sweden = await tree.get_node("se", lean=False)
        await tree.move("se", "af")

        await tree.delete(sweden)

        stockholm = world.snapshot()["sthlm"]
        assert (stockholm["parent"], stockholm["path"]) == ("af", "af.sthlm")
        assert_paths_consistent(world)


# ============================================================================
# Reads
# ============================================================================


@pytest.mark.unit
class TestReads:
    async def test_get_node(self, tree, world):
        assert (await tree.get_node("se"))["name"] == "Sweden"
        assert await tree.get_node("nowhere") is None

    async def test_get_node_as_model(self, tree, world):
        node = await tree.get_node("se", lean=False)
        assert isinstance(node, TreeNode)
        assert node.name == "Sweden"

    async def test_get_parent(self, tree, world):
        assert (await tree.get_parent("sthlm"))["id"] == "se"
        assert await tree.get_parent("eu") is None

    async def test_immediate_children(self, tree, world):
        children = await tree.get_immediate_children("eu", sort="-name")
        assert names(children) == ["Sweden", "Norway"]

    async def test_all_children(self, tree, world):
        children = await tree.get_all_children("eu", sort="path")
        assert names(children) == ["Norway", "Sweden", "Stockholm", "Globe"]

    async def test_get_children_recursive_flag(self, tree, world):
        assert len(await tree.get_children("eu")) == 2
        assert len(await tree.get_children("eu", recursive=True)) == 4

    async def test_children_with_caller_filters(self, tree, world):
        children = await tree.get_all_children("eu", filters={"name": "Globe"})
        assert names(children) == ["Globe"]

    async def test_children_with_query_wrapper(self, tree, world):
        children = await tree.get_children("eu", {"filters": {"$query": {"name": "Norway"}}})
        assert names(children) == ["Norway"]

    async def test_caller_parent_filter_is_overridden(self, tree, world):
        children = await tree.get_children("eu", filters={"parent": "af"})
        assert len(children) == 2

    async def test_projection(self, tree, world):
        children = await tree.get_children("eu", fields="name")
        assert children[0] == {"id": "no", "name": "Norway"}

    async def test_ancestors(self, tree, world):
        ancestors = await tree.get_ancestors("globe", sort="path")
        assert names(ancestors) == ["Europe", "Sweden", "Stockholm"]
        assert await tree.get_ancestors("eu") == []

    async def test_reads_follow_the_stored_node(self, tree, world):
        globe = await tree.get_node("globe")
        sweden = await tree.get_node("se")
        await tree.move("se", "af")

        ancestors = await tree.get_ancestors(globe, sort="path")
        roots = await tree.get_children_tree(sweden)

        assert names(ancestors) == ["Africa", "Sweden", "Stockholm"]
        assert names(roots) == ["Stockholm"]
        assert (await tree.get_parent(sweden))["id"] == "af"

    async def test_populate_parent(self, tree, world):
        children = await tree.get_children("se", populate="parent")
        assert children[0]["parent"]["name"] == "Sweden"

    async def test_prefix_anchoring(self, tree, store):
        await tree.insert({"id": "a"})
        await tree.insert({"id": "b", "parent": "a"})
        await tree.insert({"id": "ab"})

        descendants = await tree.get_all_children("a")

        assert [node["id"] for node in descendants] == ["b"]

    async def test_invalid_arguments_are_rejected_before_store_calls(self, tree, world):
        with pytest.raises(InvalidArgumentsError):
            await tree.get_children_tree("eu", min_level=0)
        with pytest.raises(InvalidArgumentsError):
            await tree.get_children("eu", limit=3)
        assert world.calls == []


@pytest.mark.unit
class TestChildrenTree:
    async def test_rooted_tree(self, tree, world):
        roots = await tree.get_children_tree("eu")
        assert names(roots) == ["Norway", "Sweden"]
        assert names(roots[1]["children"]) == ["Stockholm"]

    async def test_non_recursive(self, tree, world):
        roots = await tree.get_children_tree("eu", recursive=False)
        assert names(roots) == ["Norway", "Sweden"]
        assert all(node["children"] == [] for node in roots)

    async def test_non_recursive_forest(self, tree, world):
        roots = await tree.get_children_tree(recursive=False)
        assert names(roots) == ["Africa", "Europe"]

    async def test_recursive_ignores_null_parent_filter(self, tree, world):
        roots = await tree.get_children_tree(filters={"parent": None})
        assert len(list(flatten_tree(roots))) == 6

    async def test_sort_applies_to_every_level(self, tree, world):
        roots = await tree.get_children_tree(sort={"name": -1})
        assert names(roots) == ["Europe", "Africa"]
        assert names(roots[0]["children"]) == ["Sweden", "Norway"]

    async def test_max_level(self, tree, world):
        roots = await tree.get_children_tree(max_level=1)
        assert [node["children"] for node in roots] == [[], []]

    async def test_restricted_fields_still_assemble(self, tree, world):
        roots = await tree.get_children_tree("eu", fields=["name"])
        assert set(roots[1]) == {"id", "name", "path", "parent", "children"}
        assert names(roots[1]["children"]) == ["Stockholm"]

    async def test_without_empty_children(self, tree, world):
        roots = await tree.get_children_tree(allow_empty_children=False)
        assert "children" not in roots[0]
        assert "children" in roots[1]

    async def test_models_when_not_lean(self, tree, world):
        roots = await tree.get_children_tree(lean=False)
        assert isinstance(roots[1], TreeNode)
        assert roots[1].children[1].children[0].name == "Stockholm"

    async def test_wrap_children_tree_setting(self, make_tree, world):
        tree = make_tree(wrap_children_tree=True)
        roots = await tree.get_children_tree()
        assert all(isinstance(node, TreeNode) for node in roots)

    async def test_round_trip(self, tree, world):
        roots = await tree.get_children_tree()
        flat = list(flatten_tree(roots))

        rebuilt = tree.assembler.assemble(flat)

        assert [node["id"] for node in flatten_tree(rebuilt)] == [node["id"] for node in flat]
        assert len(flat) == len(world)

    async def test_ids_sorting_below_separator(self, store):
        tree = MaterializedPathTree(store, TreeSettings())
        await tree.insert({"id": "a"})
        await tree.insert({"id": "a!x"})
        await tree.insert({"id": "b", "parent": "a"})

        roots = await tree.get_children_tree()

        assert [node["id"] for node in roots] == ["a", "a!x"]
        assert roots[0]["children"][0]["id"] == "b"
