"""Tests for NavigationManager: paths, switching, transcripts."""

import pytest

from convtree.errors import BrokenPathError, NodeNotFoundError
from convtree.trees.navigation import NavigationManager
from tests.fixtures import build_linear


class TestPaths:
    def test_path_root_first(self, branching):
        """Paths run from the root down to the node."""
        manager, ids = branching
        assert manager.get_path_to_node(ids["B"]) == [ids["root"], ids["A"], ids["B"]]
        assert manager.get_path_to_node(ids["root"]) == [ids["root"]]

    def test_unknown_node_raises(self, manager):
        build_linear(manager, 2)
        with pytest.raises(NodeNotFoundError, match="get_path_to_node: node not found: ghost"):
            manager.get_path_to_node("ghost")

    def test_cycle_detected(self, manager):
        """A parent cycle fails instead of looping forever."""
        ids = build_linear(manager, 3)
        tree = manager.get_tree()
        tree.nodes[ids[0]].parent_id = ids[2]
        with pytest.raises(BrokenPathError, match="cycle"):
            manager.get_path_to_node(ids[1])

    def test_missing_ancestor(self, manager):
        ids = build_linear(manager, 3)
        manager.get_tree().nodes[ids[1]].parent_id = "ghost"
        with pytest.raises(BrokenPathError, match="ghost"):
            manager.get_path_to_node(ids[2])


class TestCurrentPosition:
    def test_append_updates_current(self, manager):
        """Each append becomes current and extends the current path."""
        ids = build_linear(manager, 3)
        tree = manager.get_tree()
        assert tree.current_node_id == ids[-1]
        assert tree.current_path == ids
        assert manager.get_current_node().id == ids[-1]

    def test_switch_to_node(self, branching):
        """Switching recomputes the path for the new position."""
        manager, ids = branching
        manager.switch_to_node(ids["B"])
        tree = manager.get_tree()
        assert tree.current_node_id == ids["B"]
        assert tree.current_path == [ids["root"], ids["A"], ids["B"]]

    def test_switch_to_unknown_leaves_state(self, branching):
        """A failed switch changes nothing."""
        manager, ids = branching
        with pytest.raises(NodeNotFoundError):
            manager.switch_to_node("ghost")
        assert manager.get_tree().current_node_id == ids["C"]

    def test_empty_tree(self, manager):
        """An empty tree has no current node and an empty transcript."""
        assert manager.get_current_node() is None
        assert manager.get_messages() == []
        assert manager.get_all_nodes() == []


class TestTranscript:
    def test_get_messages_default_path(self, branching):
        """Without a path, the current path is rendered."""
        manager, ids = branching
        assert [n.id for n in manager.get_messages()] == [ids["root"], ids["A"], ids["C"]]

    def test_get_messages_explicit_path_skips_unknown(self, branching):
        manager, ids = branching
        nodes = manager.get_messages([ids["root"], "ghost", ids["B"]])
        assert [n.id for n in nodes] == [ids["root"], ids["B"]]

    def test_all_nodes_ignores_path(self, branching):
        manager, ids = branching
        assert {n.id for n in manager.get_all_nodes()} == set(ids.values())

    def test_has_children(self, branching):
        manager, ids = branching
        assert manager.has_children(ids["A"]) is True
        assert manager.has_children(ids["B"]) is False
        assert manager.has_children("ghost") is False


class TestStandalone:
    def test_shares_tree(self, manager):
        """A NavigationManager sees the same tree the manager mutates."""
        ids = build_linear(manager, 2)
        nav = NavigationManager(manager.get_tree())
        assert nav.get_current_node().id == ids[1]
        assert nav.depth_of(ids[1]) == 2
        manager.add_message({"role": "user", "content": "later"})
        assert nav.depth_of(manager.get_tree().current_node_id) == 3
