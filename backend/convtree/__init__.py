"""convtree: a branching conversation-history tree.

Editing or regenerating a message opens an alternate branch instead of
overwriting history. Everything is in memory and synchronous; callers
persist snapshots from ``export_tree`` and restore them with ``import_tree``.
"""

from convtree.config import TreeOptions
from convtree.errors import (
    BranchNotFoundError,
    ConversationTreeError,
    InvalidParentError,
    InvariantViolationError,
    ListenerError,
    MergePreconditionError,
    NodeNotFoundError,
    NotFoundError,
    SnapshotFormatError,
)
from convtree.models import (
    Branch,
    BranchComparison,
    ConversationNode,
    ConversationTree,
    Message,
    MessagePart,
    TreeStateChange,
    TreeStatistics,
)
from convtree.trees import (
    BranchOperations,
    ConversationTreeManager,
    NavigationManager,
    diagnose_tree,
    export_tree,
    generate_id,
    get_message_content,
    import_tree,
    prune_old_nodes,
    update_metadata,
    validate_tree,
)

__version__ = "0.1.0"

__all__ = [
    "Branch",
    "BranchComparison",
    "BranchNotFoundError",
    "BranchOperations",
    "ConversationNode",
    "ConversationTree",
    "ConversationTreeError",
    "ConversationTreeManager",
    "InvalidParentError",
    "InvariantViolationError",
    "ListenerError",
    "MergePreconditionError",
    "Message",
    "MessagePart",
    "NavigationManager",
    "NodeNotFoundError",
    "NotFoundError",
    "SnapshotFormatError",
    "TreeOptions",
    "TreeStateChange",
    "TreeStatistics",
    "diagnose_tree",
    "export_tree",
    "generate_id",
    "get_message_content",
    "import_tree",
    "prune_old_nodes",
    "update_metadata",
    "validate_tree",
]
