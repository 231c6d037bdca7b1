"""Pure helpers over a ConversationTree: ids, message text, metadata,
pruning and structural diagnosis. Nothing here emits events."""

import logging
import time
from collections.abc import Iterable
from typing import Any
from uuid import uuid4

from convtree.models import (
    ConversationNode,
    ConversationTree,
    Message,
    MessagePart,
    TreeViolation,
)

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50
DEFAULT_MAX_NODES = 1000


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def generate_id(prefix: str = "node") -> str:
    return f"{prefix}_{uuid4()}"


def truncate(text: str, limit: int = TITLE_MAX_LENGTH) -> str:
    return text[:limit] + "..." if len(text) > limit else text


# ---------------------------------------------------------------------------
# Message text
# ---------------------------------------------------------------------------


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _segments_text(segments: Iterable[Any]) -> str:
    return "\n".join(
        _field(part, "text") or ""
        for part in segments
        if _field(part, "type") == "text"
    )


def get_message_content(message: Message | dict[str, Any]) -> str:
    """Display text of a message.

    Flat string content is returned as is. Segmented content (in ``content``
    or ``parts``) contributes only its text segments, joined by newlines.
    Anything else reads as an empty string.
    """
    content = _field(message, "content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return _segments_text(content)

    parts = _field(message, "parts")
    if isinstance(parts, list):
        return _segments_text(parts)

    return ""


def _replace_text_segments(segments: list[MessagePart], text: str) -> list[MessagePart]:
    """Swap text segments for a single one holding ``text``; keep the rest."""
    replaced: list[MessagePart] = []
    inserted = False
    for part in segments:
        if part.type != "text":
            replaced.append(part)
        elif not inserted:
            replaced.append(MessagePart(type="text", text=text))
            inserted = True
    if not inserted:
        replaced.append(MessagePart(type="text", text=text))
    return replaced


def with_text(message: Message, text: str) -> Message:
    """Copy of ``message`` whose display text is ``text``, same shape."""
    edited = message.model_copy(deep=True)
    if isinstance(edited.content, list):
        edited.content = _replace_text_segments(edited.content, text)
    elif isinstance(edited.content, str) or edited.parts is None:
        edited.content = text
    if edited.parts is not None:
        edited.parts = _replace_text_segments(edited.parts, text)
    return edited


# ---------------------------------------------------------------------------
# Metadata and lookups
# ---------------------------------------------------------------------------


def update_metadata(
    tree: ConversationTree,
    *,
    touch: bool = True,
    title_max_length: int = TITLE_MAX_LENGTH,
) -> None:
    """Recompute derived counters; default the title to the first user message."""
    if touch:
        tree.metadata.updated_at = now_ms()
    tree.metadata.total_messages = len(tree.nodes)
    tree.metadata.total_branches = len(tree.branches)

    if not tree.metadata.title and tree.nodes:
        first_user = next(
            (n for n in tree.nodes.values() if n.message.role == "user"), None,
        )
        if first_user is not None:
            content = get_message_content(first_user.message)
            tree.metadata.title = truncate(content, title_max_length)


def find_node_by_message(
    tree: ConversationTree, message_id: str,
) -> ConversationNode | None:
    return next(
        (n for n in tree.nodes.values() if n.message.id == message_id), None,
    )


def _lineage(tree: ConversationTree, node_id: str) -> list[str]:
    """Ids from ``node_id`` up to the top of its chain (stops on gaps/cycles)."""
    chain: list[str] = []
    seen: set[str] = set()
    current: str | None = node_id
    while current is not None and current not in seen and current in tree.nodes:
        seen.add(current)
        chain.append(current)
        current = tree.nodes[current].parent_id
    return chain


# ---------------------------------------------------------------------------
# Pruning
# ---------------------------------------------------------------------------


def prune_old_nodes(
    tree: ConversationTree, max_nodes: int = DEFAULT_MAX_NODES,
) -> list[str]:
    """Drop the least recently updated nodes until at most ``max_nodes`` remain.

    Always kept: the current path, every branch root and leaf, and all of
    their ancestors. Other nodes are kept newest-first, each together with
    whatever ancestors it still needs, while the budget allows. Returns the
    removed ids.
    """
    if len(tree.nodes) <= max_nodes:
        return []

    anchors = list(tree.current_path)
    if tree.root_id:
        anchors.append(tree.root_id)
    for branch in tree.branches:
        anchors.extend((branch.root_node_id, branch.leaf_node_id))

    keep: set[str] = set()
    for node_id in anchors:
        keep.update(_lineage(tree, node_id))

    if len(keep) > max_nodes:
        logger.warning(
            "prune_old_nodes: %d nodes must be retained, above max_nodes=%d",
            len(keep), max_nodes,
        )

    candidates = sorted(
        (n for n in tree.nodes.values() if n.id not in keep),
        key=lambda n: n.updated_at,
        reverse=True,
    )
    for node in candidates:
        if len(keep) >= max_nodes:
            break
        if node.id in keep:
            continue
        missing = [nid for nid in _lineage(tree, node.id) if nid not in keep]
        if len(keep) + len(missing) <= max_nodes:
            keep.update(missing)

    removed = [nid for nid in tree.nodes if nid not in keep]
    for node_id in removed:
        del tree.nodes[node_id]
    for node in tree.nodes.values():
        node.children = [c for c in node.children if c in keep]

    update_metadata(tree)
    logger.debug("prune_old_nodes: removed %d nodes from tree %s", len(removed), tree.id)
    return removed


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _check_current_path(tree: ConversationTree) -> TreeViolation | None:
    path = tree.current_path
    if not tree.current_node_id:
        if path:
            return TreeViolation(
                kind="current_path_broken",
                message="Current path is set but there is no current node",
                node_ids=list(path),
            )
        return None

    def broken(reason: str) -> TreeViolation:
        return TreeViolation(
            kind="current_path_broken",
            message=f"Current path is not a root-to-current chain: {reason}",
            node_ids=list(path),
        )

    if not path or path[-1] != tree.current_node_id:
        return broken("path does not end at the current node")
    if path[0] != tree.root_id:
        return broken("path does not start at the root")
    missing = [nid for nid in path if nid not in tree.nodes]
    if missing:
        return broken(f"unknown nodes {missing}")
    for parent_id, child_id in zip(path, path[1:]):
        if tree.nodes[child_id].parent_id != parent_id:
            return broken(f"{child_id} is not a child of {parent_id}")
    return None


def diagnose_tree(tree: ConversationTree) -> list[TreeViolation]:
    """Collect every structural violation in the tree. Never raises."""
    violations: list[TreeViolation] = []
    nodes = tree.nodes

    roots = [n.id for n in nodes.values() if n.parent_id is None]
    if len(roots) > 1:
        violations.append(TreeViolation(
            kind="multiple_roots",
            message=f"Tree has {len(roots)} parentless nodes",
            node_ids=roots,
        ))

    if tree.root_id and tree.root_id not in nodes:
        violations.append(TreeViolation(
            kind="missing_root",
            message=f"Root node not found: {tree.root_id}",
            node_ids=[tree.root_id],
        ))
    elif nodes and not tree.root_id:
        violations.append(TreeViolation(
            kind="missing_root", message="Tree has nodes but no root id",
        ))
    elif tree.root_id and nodes[tree.root_id].parent_id is not None:
        violations.append(TreeViolation(
            kind="root_has_parent",
            message=f"Root node {tree.root_id} has a parent",
            node_ids=[tree.root_id, nodes[tree.root_id].parent_id],
        ))

    if tree.current_node_id and tree.current_node_id not in nodes:
        violations.append(TreeViolation(
            kind="missing_current_node",
            message=f"Current node not found: {tree.current_node_id}",
            node_ids=[tree.current_node_id],
        ))

    for node_id, node in nodes.items():
        if node.parent_id is not None:
            parent = nodes.get(node.parent_id)
            if parent is None:
                violations.append(TreeViolation(
                    kind="missing_parent",
                    message=f"Parent {node.parent_id} not found for node {node_id}",
                    node_ids=[node_id, node.parent_id],
                ))
            elif node_id not in parent.children:
                violations.append(TreeViolation(
                    kind="unlisted_child",
                    message=f"Node {node_id} is missing from its parent's children",
                    node_ids=[node_id, node.parent_id],
                ))

        if len(set(node.children)) != len(node.children):
            violations.append(TreeViolation(
                kind="child_parent_mismatch",
                message=f"Node {node_id} lists a child more than once",
                node_ids=[node_id],
            ))
        for child_id in node.children:
            child = nodes.get(child_id)
            if child is None:
                violations.append(TreeViolation(
                    kind="missing_child",
                    message=f"Child {child_id} not found for node {node_id}",
                    node_ids=[node_id, child_id],
                ))
            elif child.parent_id != node_id:
                violations.append(TreeViolation(
                    kind="child_parent_mismatch",
                    message=f"Child {child_id} of {node_id} points at parent {child.parent_id}",
                    node_ids=[node_id, child_id],
                ))

    path_violation = _check_current_path(tree)
    if path_violation is not None:
        violations.append(path_violation)

    for branch in tree.branches:
        if branch.root_node_id not in nodes:
            violations.append(TreeViolation(
                kind="missing_branch_root",
                message=f"Branch root {branch.root_node_id} not found",
                node_ids=[branch.root_node_id],
                branch_id=branch.id,
            ))
        if branch.leaf_node_id not in nodes:
            violations.append(TreeViolation(
                kind="missing_branch_leaf",
                message=f"Branch leaf {branch.leaf_node_id} not found",
                node_ids=[branch.leaf_node_id],
                branch_id=branch.id,
            ))

    return violations


def validate_tree(tree: ConversationTree) -> bool:
    """True when the tree is structurally sound; logs each finding otherwise."""
    violations = diagnose_tree(tree)
    for violation in violations:
        logger.warning(
            "validate_tree: %s",
            violation.message,
            extra={
                "violation": violation.kind,
                "node_ids": violation.node_ids,
                "branch_id": violation.branch_id,
            },
        )
    return not violations
