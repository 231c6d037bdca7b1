"""Conversation tree core: utilities, navigation, branching, and the manager."""

from convtree.export.service import export_tree, import_tree
from convtree.trees.branches import MERGE_STRATEGIES, BranchOperations
from convtree.trees.manager import ConversationTreeManager
from convtree.trees.navigation import NavigationManager
from convtree.trees.utils import (
    diagnose_tree,
    find_node_by_message,
    generate_id,
    get_message_content,
    prune_old_nodes,
    update_metadata,
    validate_tree,
    with_text,
)

__all__ = [
    "MERGE_STRATEGIES",
    "BranchOperations",
    "ConversationTreeManager",
    "NavigationManager",
    "diagnose_tree",
    "export_tree",
    "find_node_by_message",
    "generate_id",
    "get_message_content",
    "import_tree",
    "prune_old_nodes",
    "update_metadata",
    "validate_tree",
    "with_text",
]
