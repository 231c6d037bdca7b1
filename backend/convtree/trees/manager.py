"""ConversationTreeManager: owns a tree and exposes its public contract.

Composes NavigationManager and BranchOperations over one shared tree and
publishes exactly one TreeStateChange per mutating call.
"""

import logging
from collections.abc import Callable
from typing import Any

from convtree.config import TreeOptions
from convtree.errors import (
    InvalidParentError,
    NodeHasChildrenError,
    NodeNotFoundError,
    NotAUserMessageError,
    RootDeletionError,
    TreeDepthLimitError,
)
from convtree.events.dispatcher import EventDispatcher, Listener
from convtree.export.service import export_tree, import_tree
from convtree.models import (
    BranchComparison,
    BranchMetadata,
    BranchName,
    BranchPoint,
    Breadcrumb,
    ConversationNode,
    ConversationTree,
    Message,
    TreeMetadata,
    TreeNavigationState,
    TreeStateChange,
    TreeStatistics,
)
from convtree.search.service import search_nodes
from convtree.trees.branches import BranchOperations, MergeStrategy
from convtree.trees.navigation import NavigationManager
from convtree.trees.utils import (
    diagnose_tree,
    find_node_by_message,
    generate_id,
    get_message_content,
    now_ms,
    prune_old_nodes,
    update_metadata,
    validate_tree,
    with_text,
)

logger = logging.getLogger(__name__)


class ConversationTreeManager:
    """Single-owner, synchronous manager of a branching conversation."""

    def __init__(
        self,
        initial_tree: ConversationTree | None = None,
        options: TreeOptions | None = None,
    ) -> None:
        self._options = options or TreeOptions()
        if initial_tree is None:
            now = now_ms()
            initial_tree = ConversationTree(
                id=generate_id("tree"),
                metadata=TreeMetadata(created_at=now, updated_at=now),
            )
        self._tree = initial_tree
        self._events = EventDispatcher()
        self._navigation = NavigationManager(self._tree)
        self._branch_ops = BranchOperations(
            self._tree, self._navigation, self._emit, self._options,
        )

    # -- Internals --

    def _emit(self, change: TreeStateChange) -> None:
        self._events.emit(change)

    def _update_metadata(self) -> None:
        update_metadata(self._tree, title_max_length=self._options.title_max_length)

    def _require_node(self, node_id: str, operation: str) -> ConversationNode:
        node = self._tree.nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id, operation)
        return node

    # -- Core mutations --

    def add_message(
        self,
        message: Message | dict[str, Any],
        attachments: list[dict[str, Any]] | None = None,
        parent_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Insert a message and make it current. Returns the new node id.

        The first message becomes the root. Later messages without an explicit
        parent are appended under the current node.
        """
        if not isinstance(message, Message):
            message = Message.model_validate(message)

        if parent_id is None and self._tree.nodes:
            parent_id = self._tree.current_node_id or self._tree.root_id
        if parent_id is not None:
            if parent_id not in self._tree.nodes:
                raise InvalidParentError(parent_id, "add_message")
            limit = self._options.max_depth
            if limit is not None and self._navigation.depth_of(parent_id) >= limit:
                raise TreeDepthLimitError(parent_id, limit)

        now = now_ms()
        node_id = generate_id(self._options.id_prefix)
        node = ConversationNode(
            id=node_id,
            message=message,
            attachments=attachments,
            parent_id=parent_id,
            children=[],
            created_at=now,
            updated_at=now,
            metadata=BranchMetadata.model_validate({
                "created_by": "user" if message.role == "user" else "ai",
                **(metadata or {}),
            }),
        )

        if parent_id is not None:
            parent = self._tree.nodes[parent_id]
            parent.children.append(node_id)
            parent.updated_at = now
        else:
            self._tree.root_id = node_id

        self._tree.nodes[node_id] = node
        self._tree.current_node_id = node_id
        self._navigation.update_current_path()

        if self._options.auto_prune:
            prune_old_nodes(self._tree, self._options.max_nodes)
        self._update_metadata()

        self._emit(TreeStateChange(type="node_added", node_id=node_id, timestamp=now))
        return node_id

    def edit_message(self, node_id: str, new_content: str, create_branch: bool = True) -> str:
        """Change a message's text.

        A node with children is not rewritten when ``create_branch`` is set:
        an edited sibling is created on a new branch and its id returned.
        Otherwise the node is edited in place and its own id returned.
        """
        node = self._require_node(node_id, "edit_message")

        if create_branch and node.children:
            return self._branch_ops.create_branch_from_edit(node_id, new_content)

        if not node.is_edited:
            node.original_content = get_message_content(node.message)
            node.is_edited = True
        node.message = with_text(node.message, new_content)
        node.updated_at = now_ms()

        self._update_metadata()
        self._emit(TreeStateChange(
            type="node_edited", node_id=node_id, timestamp=node.updated_at,
        ))
        return node_id

    def delete_node(self, node_id: str) -> None:
        """Remove a leaf. The root and nodes with children cannot be deleted."""
        node = self._require_node(node_id, "delete_node")
        if node_id == self._tree.root_id or node.parent_id is None:
            raise RootDeletionError(node_id)
        if node.children:
            raise NodeHasChildrenError(node_id, len(node.children))

        parent = self._tree.nodes.get(node.parent_id)
        if parent is not None:
            parent.children = [c for c in parent.children if c != node_id]

        del self._tree.nodes[node_id]

        # Branches must keep pointing at live nodes.
        kept = []
        for branch in self._tree.branches:
            if branch.root_node_id == node_id:
                logger.debug("Dropping branch %s rooted at deleted node %s", branch.id, node_id)
                continue
            if branch.leaf_node_id == node_id:
                branch.leaf_node_id = node.parent_id
                branch.message_count = max(branch.message_count - 1, 1)
                branch.updated_at = now_ms()
            kept.append(branch)
        self._tree.branches[:] = kept

        if self._tree.current_node_id == node_id:
            self._tree.current_node_id = node.parent_id
        self._navigation.update_current_path()

        self._update_metadata()
        self._emit(TreeStateChange(type="node_deleted", node_id=node_id, timestamp=now_ms()))

    def regenerate_response(
        self, user_node_id: str, existing_response_id: str | None = None,
    ) -> str | None:
        """Open a branch at a user message so a new response can sit beside the old one.

        Returns the new branch id, or None when there is no prior response
        to preserve (nothing changes in that case).
        """
        user_node = self._require_node(user_node_id, "regenerate_response")
        if user_node.message.role != "user":
            raise NotAUserMessageError(user_node_id, user_node.message.role)
        if existing_response_id is None:
            return None
        self._require_node(existing_response_id, "regenerate_response")

        previous = sum(
            1 for b in self._tree.branches
            if b.leaf_node_id == user_node_id and b.metadata.reason == "regenerate_response"
        )
        branch = self._branch_ops.open_branch(user_node_id, {
            "name": f"Regeneration {previous + 1}",
            "reason": "regenerate_response",
            "created_by": "ai",
            "regenerated_from_message_id": existing_response_id,
        })

        self._emit(TreeStateChange(
            type="branch_created",
            node_id=user_node_id,
            branch_id=branch.id,
            timestamp=branch.created_at,
            data={"existing_response_id": existing_response_id},
        ))
        return branch.id

    def prune_old_nodes(self, max_nodes: int | None = None) -> list[str]:
        budget = self._options.max_nodes if max_nodes is None else max_nodes
        removed = prune_old_nodes(self._tree, budget)
        if removed:
            self._emit(TreeStateChange(
                type="tree_pruned",
                node_id=self._tree.current_node_id,
                timestamp=self._tree.metadata.updated_at,
                data={"removed_node_ids": removed},
            ))
        return removed

    # -- Navigation --

    def get_node(self, node_id: str) -> ConversationNode | None:
        return self._navigation.get_node(node_id)

    def get_current_node(self) -> ConversationNode | None:
        return self._navigation.get_current_node()

    def switch_to_node(self, node_id: str) -> None:
        self._navigation.switch_to_node(node_id)
        self._emit(TreeStateChange(type="branch_switched", node_id=node_id, timestamp=now_ms()))

    def get_messages(self, path: list[str] | None = None) -> list[ConversationNode]:
        return self._navigation.get_messages(path)

    def get_all_nodes(self) -> list[ConversationNode]:
        return self._navigation.get_all_nodes()

    def has_children(self, node_id: str) -> bool:
        return self._navigation.has_children(node_id)

    def get_path_to_node(self, node_id: str) -> list[str]:
        return self._navigation.get_path_to_node(node_id)

    # -- Branches --

    def create_branch(self, node_id: str, metadata: dict[str, Any] | None = None) -> str:
        return self._branch_ops.create_branch(node_id, metadata)

    def rename_branch(self, branch_id: str, new_name: str) -> None:
        self._branch_ops.rename_branch(branch_id, new_name)

    def toggle_branch_favorite(self, branch_id: str) -> bool:
        return self._branch_ops.toggle_branch_favorite(branch_id)

    def set_branch_color(self, branch_id: str, color: str) -> None:
        self._branch_ops.set_branch_color(branch_id, color)

    def switch_to_branch(self, branch_id: str) -> None:
        """Move the current position to the branch's leaf."""
        branch = self._branch_ops.get_branch(branch_id, "switch_to_branch")
        self._navigation.switch_to_node(branch.leaf_node_id)
        self._emit(TreeStateChange(
            type="branch_switched",
            node_id=branch.leaf_node_id,
            branch_id=branch_id,
            timestamp=now_ms(),
        ))

    def delete_branch(self, branch_id: str) -> list[str]:
        return self._branch_ops.delete_branch(branch_id)

    def compare_branches(self, branch_a_id: str, branch_b_id: str) -> BranchComparison:
        return self._branch_ops.compare_branches(branch_a_id, branch_b_id)

    def merge_branches(
        self,
        source_branch_id: str,
        target_branch_id: str,
        strategy: MergeStrategy = "append",
    ) -> str:
        return self._branch_ops.merge_branches(source_branch_id, target_branch_id, strategy)

    def get_branch_names(self) -> list[BranchName]:
        return self._branch_ops.get_branch_names()

    def get_branch_points(self) -> list[BranchPoint]:
        return self._branch_ops.get_branch_points()

    # -- Tree state --

    def get_tree(self) -> ConversationTree:
        return self._tree

    def get_tree_id(self) -> str:
        return self._tree.id

    def get_tree_metadata(self) -> TreeMetadata:
        return self._tree.metadata.model_copy()

    def get_current_branch_id(self) -> str | None:
        """First branch whose root-to-leaf path passes through the current node."""
        current_id = self._tree.current_node_id
        if not current_id or current_id not in self._tree.nodes:
            return None
        for branch in self._tree.branches:
            if current_id in self.get_path_to_node(branch.leaf_node_id):
                return branch.id
        return None

    def get_navigation_state(self) -> TreeNavigationState:
        current_branch = self.get_current_branch_id()
        breadcrumbs = [
            Breadcrumb(
                node_id=node.id,
                branch_name=current_branch,
                message_preview=get_message_content(node.message)[:50],
            )
            for node in self.get_messages()
        ]
        return TreeNavigationState(
            current_branch=current_branch or "main",
            available_branches=[b.name for b in self.get_branch_names()],
            can_go_back=len(self._tree.current_path) > 1,
            can_go_forward=self.has_children(self._tree.current_node_id),
            breadcrumbs=breadcrumbs,
        )

    # -- Snapshots and validation --

    def export_tree(self) -> str:
        return export_tree(self._tree)

    @classmethod
    def import_tree(
        cls, json_data: str | bytes, options: TreeOptions | None = None,
    ) -> "ConversationTreeManager":
        tree = import_tree(json_data)
        violations = diagnose_tree(tree)
        if violations:
            logger.warning(
                "Imported tree %s has %d structural problem(s): %s",
                tree.id, len(violations), [v.kind for v in violations],
            )
        return cls(tree, options)

    def validate_tree(self) -> bool:
        return validate_tree(self._tree)

    # -- Events --

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._events.subscribe(listener)

    # -- Search and analysis --

    def find_node_by_message(self, message_id: str) -> ConversationNode | None:
        return find_node_by_message(self._tree, message_id)

    def search_nodes(
        self, query: str, *, roles: list[str] | None = None, limit: int | None = None,
    ) -> list[ConversationNode]:
        return search_nodes(self.get_all_nodes(), query, roles=roles, limit=limit)

    def get_statistics(self) -> TreeStatistics:
        nodes = self.get_all_nodes()
        max_depth = max((len(self.get_path_to_node(n.id)) for n in nodes), default=0)
        branches = self._tree.branches
        avg_branch_length = (
            sum(len(self.get_path_to_node(b.leaf_node_id)) for b in branches) / len(branches)
            if branches
            else 0.0
        )
        return TreeStatistics(
            total_nodes=len(nodes),
            total_branches=len(branches),
            user_messages=sum(1 for n in nodes if n.message.role == "user"),
            assistant_messages=sum(1 for n in nodes if n.message.role == "assistant"),
            edited_messages=sum(1 for n in nodes if n.is_edited),
            max_depth=max_depth,
            avg_branch_length=avg_branch_length,
        )
