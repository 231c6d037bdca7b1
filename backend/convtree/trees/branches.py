"""Branch bookkeeping: creation (plain, from edits), tagging, comparison,
merging, deletion."""

import logging
from collections.abc import Callable
from copy import deepcopy
from typing import Any, Literal

from convtree.config import TreeOptions
from convtree.errors import (
    BranchLimitError,
    BranchNotFoundError,
    BrokenPathError,
    EmptyBranchNameError,
    InvalidMergeStrategyError,
    MergePreconditionError,
    NodeNotFoundError,
)
from convtree.models import (
    Branch,
    BranchComparison,
    BranchDifference,
    BranchMetadata,
    BranchName,
    BranchPoint,
    ComparisonMetrics,
    ConversationNode,
    ConversationTree,
    TreeStateChange,
)
from convtree.trees.navigation import NavigationManager
from convtree.trees.utils import (
    generate_id,
    get_message_content,
    now_ms,
    truncate,
    update_metadata,
    with_text,
)

logger = logging.getLogger(__name__)

MergeStrategy = Literal["append", "replace", "interleave"]
MERGE_STRATEGIES: tuple[str, ...] = ("append", "replace", "interleave")


class BranchOperations:
    """Creates and maintains Branch records on a shared tree."""

    def __init__(
        self,
        tree: ConversationTree,
        navigation: NavigationManager,
        emit: Callable[[TreeStateChange], None],
        options: TreeOptions | None = None,
    ) -> None:
        self._tree = tree
        self._nav = navigation
        self._emit = emit
        self._options = options or TreeOptions()

    # -- Lookups --

    def _node(self, node_id: str, operation: str) -> ConversationNode:
        node = self._tree.nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id, operation)
        return node

    def get_branch(self, branch_id: str, operation: str = "get_branch") -> Branch:
        branch = next((b for b in self._tree.branches if b.id == branch_id), None)
        if branch is None:
            raise BranchNotFoundError(branch_id, operation)
        return branch

    def branch_root_for(self, node_id: str) -> str:
        """Nearest strict ancestor where history diverges (or the root).

        A node without a parent is its own branch root.
        """
        node = self._node(node_id, "branch_root_for")
        current_id = node.parent_id
        if current_id is None:
            return node_id
        for _ in range(len(self._tree.nodes)):
            current = self._tree.nodes.get(current_id)
            if current is None:
                raise BrokenPathError(node_id, f"ancestor {current_id} not found")
            if (
                current.is_branch_point
                or len(current.children) > 1
                or current.parent_id is None
            ):
                return current_id
            current_id = current.parent_id
        raise BrokenPathError(node_id, f"cycle detected at {current_id}")

    def _span(self, root_id: str, leaf_id: str) -> int:
        """Nodes from ``root_id`` down to ``leaf_id``, both included."""
        path = self._nav.get_path_to_node(leaf_id)
        if root_id in path:
            return len(path) - path.index(root_id)
        return len(path)

    def _check_branch_limit(self) -> None:
        limit = self._options.max_branches
        if limit is not None and len(self._tree.branches) >= limit:
            raise BranchLimitError(limit)

    def _touch(self) -> None:
        update_metadata(self._tree, title_max_length=self._options.title_max_length)

    def _new_branch(
        self,
        root_id: str,
        leaf_id: str,
        name: str,
        metadata: BranchMetadata,
        *,
        color: str | None = None,
        description: str | None = None,
    ) -> Branch:
        now = now_ms()
        branch = Branch(
            id=generate_id("branch"),
            name=name,
            description=description,
            root_node_id=root_id,
            leaf_node_id=leaf_id,
            message_count=self._span(root_id, leaf_id),
            created_at=now,
            updated_at=now,
            color=color,
            metadata=metadata,
        )
        self._tree.branches.append(branch)
        return branch

    # -- Creation --

    def open_branch(self, node_id: str, metadata: dict[str, Any] | None = None) -> Branch:
        """Record a branch ending at ``node_id`` and mark the node as a branch point.

        Does not emit; callers decide which single event describes the change.
        """
        node = self._node(node_id, "create_branch")
        self._check_branch_limit()

        meta = BranchMetadata.model_validate({"created_by": "user", **(metadata or {})})
        name = meta.name or f"Branch {len(self._tree.branches) + 1}"
        branch = self._new_branch(
            self.branch_root_for(node_id),
            node_id,
            name,
            meta,
            color=meta.color,
            description=meta.description,
        )
        node.is_branch_point = True
        node.branch_name = branch.name
        self._touch()
        return branch

    def create_branch(self, node_id: str, metadata: dict[str, Any] | None = None) -> str:
        branch = self.open_branch(node_id, metadata)
        self._emit(TreeStateChange(
            type="branch_created",
            node_id=node_id,
            branch_id=branch.id,
            timestamp=branch.created_at,
        ))
        return branch.id

    def create_branch_from_edit(self, node_id: str, new_content: str) -> str:
        """Put an edited copy of a node beside it and return the copy's id.

        The original node and everything below it stay untouched. The copy
        hangs off the same parent; a parentless node (the root) gets the copy
        as a child instead, since a tree has only one root.
        """
        original = self._node(node_id, "create_branch_from_edit")
        self._check_branch_limit()

        anchor_id = original.parent_id or node_id
        anchor = self._tree.nodes.get(anchor_id)
        if anchor is None:
            raise BrokenPathError(node_id, f"parent {anchor_id} not found")
        now = now_ms()
        new_node_id = generate_id(self._options.id_prefix)

        new_node = ConversationNode(
            id=new_node_id,
            message=with_text(original.message, new_content),
            attachments=deepcopy(original.attachments),
            parent_id=anchor_id,
            children=[],
            created_at=now,
            updated_at=now,
            is_edited=True,
            original_content=get_message_content(original.message),
            metadata=BranchMetadata(created_by="user_edit", edited_from=node_id),
        )
        self._tree.nodes[new_node_id] = new_node
        anchor.children.append(new_node_id)
        anchor.updated_at = now
        anchor.is_branch_point = True

        branch = self._new_branch(
            anchor_id,
            new_node_id,
            "Edited Branch",
            BranchMetadata(created_by="user_edit", edited_from=node_id, reason="edit"),
        )
        new_node.metadata.branch_id = branch.id

        self._tree.current_node_id = new_node_id
        self._nav.update_current_path()
        self._touch()
        logger.debug("Edit of %s branched to %s (branch %s)", node_id, new_node_id, branch.id)

        self._emit(TreeStateChange(
            type="node_edited",
            node_id=new_node_id,
            branch_id=branch.id,
            timestamp=now,
            data={"source_node_id": node_id},
        ))
        return new_node_id

    # -- Tagging --

    def _branch_edited(self, branch: Branch, data: dict[str, Any]) -> None:
        branch.updated_at = now_ms()
        self._touch()
        self._emit(TreeStateChange(
            type="branch_edited",
            node_id=branch.leaf_node_id,
            branch_id=branch.id,
            timestamp=branch.updated_at,
            data=data,
        ))

    def rename_branch(self, branch_id: str, new_name: str) -> None:
        branch = self.get_branch(branch_id, "rename_branch")
        if not new_name.strip():
            raise EmptyBranchNameError(branch_id)
        old_name = branch.name
        branch.name = new_name.strip()
        branch.metadata.name = branch.name
        self._branch_edited(branch, {"old_name": old_name, "new_name": branch.name})

    def toggle_branch_favorite(self, branch_id: str) -> bool:
        branch = self.get_branch(branch_id, "toggle_branch_favorite")
        branch.is_favorite = not branch.is_favorite
        self._branch_edited(branch, {"favorited": branch.is_favorite})
        return branch.is_favorite

    def set_branch_color(self, branch_id: str, color: str) -> None:
        branch = self.get_branch(branch_id, "set_branch_color")
        branch.color = color
        branch.metadata.color = color
        self._branch_edited(branch, {"color": color})

    # -- Comparison --

    def _diverge(self, leaf_a: str, leaf_b: str) -> tuple[list[str], list[str], int]:
        path_a = self._nav.get_path_to_node(leaf_a)
        path_b = self._nav.get_path_to_node(leaf_b)
        shared = 0
        while (
            shared < min(len(path_a), len(path_b))
            and path_a[shared] == path_b[shared]
        ):
            shared += 1
        return path_a, path_b, shared

    def compare_branches(self, branch_a_id: str, branch_b_id: str) -> BranchComparison:
        branch_a = self.get_branch(branch_a_id, "compare_branches")
        branch_b = self.get_branch(branch_b_id, "compare_branches")

        path_a, path_b, shared = self._diverge(branch_a.leaf_node_id, branch_b.leaf_node_id)
        only_a = path_a[shared:]
        only_b = path_b[shared:]

        differences = [
            BranchDifference(
                node_id=nid,
                type="added",
                content=get_message_content(self._tree.nodes[nid].message),
                branch=side,
            )
            for side, ids in (("A", only_a), ("B", only_b))
            for nid in ids
        ]

        return BranchComparison(
            branch_a=branch_a,
            branch_b=branch_b,
            differences=differences,
            common_ancestor=path_a[shared - 1] if shared > 0 else None,
            nodes_only_in_a=only_a,
            nodes_only_in_b=only_b,
            metrics=ComparisonMetrics(
                total_differences=len(differences),
                messages_in_a=len(only_a),
                messages_in_b=len(only_b),
                divergence_point=shared,
            ),
        )

    # -- Merging --

    def _copy_chain(self, source_ids: list[str], parent_id: str) -> str:
        """Copy nodes as a single chain under ``parent_id``; return the last copy."""
        now = now_ms()
        current_id = parent_id
        for source_id in source_ids:
            source = self._tree.nodes[source_id]
            copy_id = generate_id(self._options.id_prefix)
            duplicate = source.model_copy(
                deep=True,
                update={
                    "id": copy_id,
                    "parent_id": current_id,
                    "children": [],
                    "created_at": now,
                    "updated_at": now,
                    "is_branch_point": False,
                    "branch_name": None,
                },
            )
            duplicate.metadata.merged_from = source_id
            self._tree.nodes[copy_id] = duplicate
            parent = self._tree.nodes[current_id]
            parent.children.append(copy_id)
            parent.updated_at = now
            current_id = copy_id
        return current_id

    def _check_replaceable(self, target: Branch, removed: list[str]) -> None:
        removed_set = set(removed)
        for node_id in removed:
            outside = [c for c in self._tree.nodes[node_id].children if c not in removed_set]
            if outside:
                raise MergePreconditionError(
                    "replace",
                    f"node {node_id} has children outside the replaced chain",
                    [node_id, *outside],
                )
        for branch in self._tree.branches:
            if branch.id == target.id:
                continue
            hit = {branch.root_node_id, branch.leaf_node_id} & removed_set
            if hit:
                raise MergePreconditionError(
                    "replace",
                    f"branch {branch.id} still references replaced nodes",
                    sorted(hit),
                )

    def _remove_chain(self, divergence_id: str, removed: list[str]) -> None:
        if not removed:
            return
        divergence = self._tree.nodes[divergence_id]
        divergence.children = [c for c in divergence.children if c != removed[0]]
        for node_id in removed:
            del self._tree.nodes[node_id]

    def merge_branches(
        self,
        source_branch_id: str,
        target_branch_id: str,
        strategy: MergeStrategy = "append",
    ) -> str:
        """Merge ``source`` into ``target``; return the merged leaf node id.

        All preconditions are checked before the tree is modified.
        """
        source = self.get_branch(source_branch_id, "merge_branches")
        target = self.get_branch(target_branch_id, "merge_branches")
        if strategy not in MERGE_STRATEGIES:
            raise InvalidMergeStrategyError(strategy)
        self._check_branch_limit()

        source_path, target_path, shared = self._diverge(
            source.leaf_node_id, target.leaf_node_id,
        )
        if shared == 0:
            raise MergePreconditionError(strategy, "branches share no common ancestor")
        divergence_id = source_path[shared - 1]
        source_tail = source_path[shared:]
        target_tail = target_path[shared:]
        removed: list[str] = []

        if strategy == "append":
            leaf_id = self._copy_chain(source_tail, target.leaf_node_id)

        elif strategy == "interleave":
            ordered = sorted(
                [(self._tree.nodes[nid].created_at, 0, i, nid) for i, nid in enumerate(source_tail)]
                + [(self._tree.nodes[nid].created_at, 1, i, nid) for i, nid in enumerate(target_tail)]
            )
            leaf_id = self._copy_chain([entry[3] for entry in ordered], divergence_id)

        else:
            self._check_replaceable(target, target_tail)
            removed = list(target_tail)
            self._remove_chain(divergence_id, removed)
            leaf_id = source.leaf_node_id
            if target.root_node_id in removed:
                target.root_node_id = divergence_id
            target.leaf_node_id = leaf_id
            target.message_count = self._span(target.root_node_id, leaf_id)
            target.updated_at = now_ms()
            if self._tree.current_node_id in removed:
                self._tree.current_node_id = leaf_id

        merge_branch = self._new_branch(
            divergence_id,
            leaf_id,
            f"Merge: {source.name} → {target.name}",
            BranchMetadata(
                created_by="system",
                merged_from=[source_branch_id, target_branch_id],
                merge_strategy=strategy,
            ),
        )

        self._nav.update_current_path()
        self._touch()
        logger.debug(
            "Merged branch %s into %s (%s): leaf %s, removed %d nodes",
            source_branch_id, target_branch_id, strategy, leaf_id, len(removed),
        )

        self._emit(TreeStateChange(
            type="branch_merged",
            node_id=leaf_id,
            branch_id=merge_branch.id,
            timestamp=merge_branch.created_at,
            data={
                "source_branch_id": source_branch_id,
                "target_branch_id": target_branch_id,
                "strategy": strategy,
                "removed_node_ids": removed,
            },
        ))
        return leaf_id

    # -- Deletion --

    def _unique_tail(self, branch: Branch) -> list[str]:
        """Nodes only this branch needs, leaf first.

        Walks up from the leaf and stops at the root, at any node on another
        branch's path, or at a node that still has other children.
        """
        shared = {self._tree.root_id}
        for other in self._tree.branches:
            if other.id != branch.id:
                shared.update(self._nav.get_path_to_node(other.leaf_node_id))
                shared.add(other.root_node_id)

        tail: list[str] = []
        current_id: str | None = branch.leaf_node_id
        while current_id is not None and current_id not in shared:
            node = self._node(current_id, "delete_branch")
            if any(c not in tail for c in node.children):
                break
            tail.append(current_id)
            current_id = node.parent_id
        return tail

    def delete_branch(self, branch_id: str) -> list[str]:
        """Drop a branch record and the nodes unique to it; return the removed ids."""
        branch = self.get_branch(branch_id, "delete_branch")
        removed = self._unique_tail(branch)
        survivor_id = self._tree.nodes[removed[-1]].parent_id if removed else None

        for node_id in removed:
            node = self._tree.nodes.pop(node_id)
            parent = self._tree.nodes.get(node.parent_id) if node.parent_id else None
            if parent is not None:
                parent.children = [c for c in parent.children if c != node_id]

        self._tree.branches[:] = [b for b in self._tree.branches if b.id != branch_id]

        if self._tree.current_node_id in removed:
            self._tree.current_node_id = survivor_id or self._tree.root_id
        self._nav.update_current_path()
        self._touch()
        logger.debug("Deleted branch %s and %d unique nodes", branch_id, len(removed))

        self._emit(TreeStateChange(
            type="branch_deleted",
            node_id=branch.leaf_node_id,
            branch_id=branch_id,
            timestamp=now_ms(),
            data={"removed_node_ids": removed},
        ))
        return removed

    # -- Listings --

    def get_branch_names(self) -> list[BranchName]:
        return [
            BranchName(id=b.id, name=b.name, is_favorite=b.is_favorite)
            for b in self._tree.branches
        ]

    def get_branch_points(self) -> list[BranchPoint]:
        return [
            BranchPoint(
                node_id=node.id,
                branch_name=node.branch_name,
                message_preview=truncate(get_message_content(node.message)),
            )
            for node in self._tree.nodes.values()
            if node.is_branch_point
        ]
