"""Exceptions raised by the conversation tree.

Two families: lookups that miss (``NotFoundError``) and structurally illegal
requests (``InvariantViolationError``). Every check runs before the tree is
touched, so a raised error always leaves the tree as it was.
"""


class ConversationTreeError(Exception):
    """Base for every error raised by convtree."""


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class NotFoundError(ConversationTreeError):
    role = "node"

    def __init__(self, missing_id: str, operation: str = "lookup") -> None:
        self.missing_id = missing_id
        self.operation = operation
        super().__init__(f"{operation}: {self.role} not found: {missing_id}")


class NodeNotFoundError(NotFoundError):
    role = "node"

    @property
    def node_id(self) -> str:
        return self.missing_id


class BranchNotFoundError(NotFoundError):
    role = "branch"

    @property
    def branch_id(self) -> str:
        return self.missing_id


class InvalidParentError(NotFoundError):
    role = "parent"

    @property
    def parent_id(self) -> str:
        return self.missing_id


# ---------------------------------------------------------------------------
# Invariant violations
# ---------------------------------------------------------------------------


class InvariantViolationError(ConversationTreeError):
    """An operation would break the tree's structure; nothing was changed."""


class RootDeletionError(InvariantViolationError):
    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Cannot delete root node: {node_id}")


class NodeHasChildrenError(InvariantViolationError):
    def __init__(self, node_id: str, child_count: int) -> None:
        self.node_id = node_id
        self.child_count = child_count
        super().__init__(
            f"Cannot delete node with children: {node_id} ({child_count} children)"
        )


class NotAUserMessageError(InvariantViolationError):
    def __init__(self, node_id: str, role: str) -> None:
        self.node_id = node_id
        self.role = role
        super().__init__(
            f"Can only regenerate from user messages: {node_id} has role {role!r}"
        )


class MergePreconditionError(InvariantViolationError):
    def __init__(self, strategy: str, reason: str, node_ids: list[str] | None = None) -> None:
        self.strategy = strategy
        self.reason = reason
        self.node_ids = node_ids or []
        super().__init__(f"Cannot merge with strategy {strategy!r}: {reason}")


class InvalidMergeStrategyError(InvariantViolationError):
    def __init__(self, strategy: str) -> None:
        self.strategy = strategy
        super().__init__(f"Unknown merge strategy: {strategy!r}")


class EmptyBranchNameError(InvariantViolationError):
    def __init__(self, branch_id: str) -> None:
        self.branch_id = branch_id
        super().__init__(f"Branch name cannot be empty: {branch_id}")


class BrokenPathError(InvariantViolationError):
    def __init__(self, node_id: str, reason: str) -> None:
        self.node_id = node_id
        self.reason = reason
        super().__init__(f"Cannot resolve path for node {node_id}: {reason}")


class BranchLimitError(InvariantViolationError):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Branch limit reached: {limit}")


class TreeDepthLimitError(InvariantViolationError):
    def __init__(self, parent_id: str, limit: int) -> None:
        self.parent_id = parent_id
        self.limit = limit
        super().__init__(f"Depth limit {limit} reached below node: {parent_id}")


# ---------------------------------------------------------------------------
# Snapshots and listeners
# ---------------------------------------------------------------------------


class SnapshotFormatError(ConversationTreeError):
    """Raised when a snapshot cannot be parsed into a tree."""


class ListenerError(ConversationTreeError):
    """One or more listeners raised while a change was being delivered."""

    def __init__(self, errors: list[Exception]) -> None:
        self.errors = errors
        super().__init__(
            f"{len(errors)} listener(s) failed: "
            + "; ".join(f"{type(e).__name__}: {e}" for e in errors)
        )
