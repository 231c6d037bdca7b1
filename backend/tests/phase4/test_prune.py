"""Tests for prune_old_nodes."""

import logging

from convtree.trees.utils import prune_old_nodes
from tests.fixtures import assistant_message, set_times, user_message


def _fan(manager, n_side: int) -> tuple[str, list[str]]:
    """Root with ``n_side`` leaf replies; current position ends back on the root."""
    root = manager.add_message(user_message("root"))
    side = []
    for i in range(n_side):
        manager.switch_to_node(root)
        side.append(manager.add_message(assistant_message(f"side {i}")))
    manager.switch_to_node(root)
    return root, side


class TestPruneOldNodes:
    def test_under_budget_noop(self, manager):
        _fan(manager, 3)
        assert manager.prune_old_nodes(10) == []
        assert len(manager.get_tree().nodes) == 4

    def test_bound_respected(self, manager):
        """After pruning the tree holds at most N nodes."""
        _fan(manager, 8)
        manager.prune_old_nodes(4)
        assert len(manager.get_tree().nodes) <= 4

    def test_keeps_newest(self, manager):
        """Least recently updated nodes go first."""
        root, side = _fan(manager, 4)
        for i, node_id in enumerate(side):
            set_times(manager, node_id, updated=1000 + i)
        removed = manager.prune_old_nodes(3)
        assert set(removed) == {side[0], side[1]}
        assert set(manager.get_tree().nodes) == {root, side[2], side[3]}

    def test_current_path_survives(self, manager):
        """Every node on the current path stays, however old."""
        root, side = _fan(manager, 3)
        manager.switch_to_node(side[0])
        deep = manager.add_message(user_message("deep"))
        for node_id in (root, side[0], deep):
            set_times(manager, node_id, updated=1)
        manager.prune_old_nodes(3)
        tree = manager.get_tree()
        assert set(tree.current_path) <= set(tree.nodes)
        assert set(tree.nodes) == {root, side[0], deep}

    def test_branch_endpoints_survive(self, manager):
        """Branch roots, leaves, and their ancestors are never pruned."""
        root, side = _fan(manager, 4)
        manager.switch_to_node(side[0])
        child = manager.add_message(user_message("child"))
        branch_id = manager.create_branch(child)
        for node_id in (side[0], child):
            set_times(manager, node_id, updated=1)
        manager.switch_to_node(root)

        manager.prune_old_nodes(3)
        tree = manager.get_tree()
        assert {root, side[0], child} <= set(tree.nodes)
        assert manager.validate_tree() is True
        assert manager.compare_branches(branch_id, branch_id).differences == []

    def test_children_lists_cleaned(self, manager):
        root, side = _fan(manager, 4)
        removed = manager.prune_old_nodes(2)
        children = manager.get_node(root).children
        assert not set(children) & set(removed)
        assert len(children) == 1
        assert manager.validate_tree() is True

    def test_required_set_over_budget(self, manager, caplog):
        """When the protected nodes alone exceed N they are all kept, with a warning."""
        root, side = _fan(manager, 3)
        for node_id in side:
            manager.create_branch(node_id)
        with caplog.at_level(logging.WARNING, logger="convtree.trees.utils"):
            removed = manager.prune_old_nodes(2)
        assert removed == []
        assert len(manager.get_tree().nodes) == 4
        assert any("must be retained" in r.getMessage() for r in caplog.records)

    def test_candidate_brings_ancestors(self, manager):
        """A kept node drags in any ancestors it needs, so no orphans remain."""
        root, side = _fan(manager, 2)
        manager.switch_to_node(side[0])
        grandchild = manager.add_message(user_message("grandchild"))
        manager.switch_to_node(root)
        set_times(manager, side[0], updated=1)
        set_times(manager, side[1], updated=2)
        set_times(manager, grandchild, updated=10)

        manager.prune_old_nodes(3)
        tree = manager.get_tree()
        assert set(tree.nodes) == {root, side[0], grandchild}
        assert manager.validate_tree() is True

    def test_metadata_refreshed(self, manager):
        _fan(manager, 5)
        manager.prune_old_nodes(2)
        assert manager.get_tree_metadata().total_messages == 2

    def test_default_budget(self, manager):
        """Without an argument the configured max_nodes (1000) applies."""
        _fan(manager, 3)
        assert prune_old_nodes(manager.get_tree()) == []
        assert manager.prune_old_nodes() == []

    def test_zero_budget_is_honoured(self, manager):
        """An explicit budget of zero is not replaced by the default; only required nodes stay."""
        root, _ = _fan(manager, 3)
        removed = manager.prune_old_nodes(0)
        assert len(removed) == 3
        assert list(manager.get_tree().nodes) == [root]
