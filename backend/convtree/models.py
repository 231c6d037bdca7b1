"""Canonical data structures and state-change events for convtree.

Defined once here, referenced everywhere else. Python attributes are
snake_case; the JSON snapshot uses camelCase aliases so snapshots stay
compatible with the web client that produces them.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Base configuration
# ---------------------------------------------------------------------------


class CamelModel(BaseModel):
    """Base for every snapshot-visible model: camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OpenCamelModel(CamelModel):
    """Camel model that keeps unknown keys verbatim (opaque client data)."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow",
    )


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class MessagePart(OpenCamelModel):
    """One typed segment of a message. Only ``type == "text"`` is displayed."""

    type: str
    text: str | None = None


class Message(OpenCamelModel):
    """Opaque chat message supplied by the caller.

    Content comes in one of two shapes: a flat string in ``content``, or an
    ordered list of typed segments in ``content`` or ``parts``. Non-text
    segments and any other keys are stored untouched.
    """

    id: str | None = None
    role: str
    content: str | list[MessagePart] | None = None
    parts: list[MessagePart] | None = None


# ---------------------------------------------------------------------------
# Nodes and branches
# ---------------------------------------------------------------------------


CreatedBy = Literal["user", "ai", "system", "user_edit"]


class BranchMetadata(OpenCamelModel):
    created_by: CreatedBy = "user"
    name: str | None = None
    description: str | None = None
    reason: str | None = None
    color: str | None = None
    edited_from: str | None = None
    regenerated_from_message_id: str | None = None
    merged_from: str | list[str] | None = None
    merge_strategy: str | None = None
    branch_id: str | None = None


class ConversationNode(CamelModel):
    id: str
    message: Message
    attachments: list[dict[str, Any]] | None = None
    parent_id: str | None = None  # lookup only; ownership lives in tree.nodes
    children: list[str] = Field(default_factory=list)
    branch_name: str | None = None
    created_at: int
    updated_at: int
    metadata: BranchMetadata = Field(default_factory=BranchMetadata)
    is_edited: bool = False
    original_content: str | None = None
    is_branch_point: bool = False


class Branch(CamelModel):
    id: str
    name: str
    description: str | None = None
    root_node_id: str
    leaf_node_id: str
    message_count: int = 1
    created_at: int
    updated_at: int
    is_favorite: bool = False
    color: str | None = None
    metadata: BranchMetadata = Field(default_factory=BranchMetadata)
    is_active: bool = True


class TreeMetadata(CamelModel):
    title: str | None = None
    created_at: int
    updated_at: int
    total_messages: int = 0
    total_branches: int = 0


class ConversationTree(CamelModel):
    """A whole conversation. ``nodes`` is the only owner of node objects."""

    id: str
    nodes: dict[str, ConversationNode] = Field(default_factory=dict)
    root_id: str = ""
    current_node_id: str = ""
    current_path: list[str] = Field(default_factory=list)
    branches: list[Branch] = Field(default_factory=list)
    metadata: TreeMetadata


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


ChangeType = Literal[
    "node_added",
    "node_edited",
    "node_deleted",
    "branch_created",
    "branch_switched",
    "branch_edited",
    "branch_deleted",
    "branch_merged",
    "tree_pruned",
]


class TreeStateChange(CamelModel):
    """Emitted exactly once per mutating manager call."""

    type: ChangeType
    node_id: str
    branch_id: str | None = None
    timestamp: int
    data: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Read-side projections
# ---------------------------------------------------------------------------


class BranchDifference(CamelModel):
    node_id: str
    type: Literal["added", "removed", "modified"]
    content: str
    branch: Literal["A", "B"]


class ComparisonMetrics(CamelModel):
    total_differences: int
    messages_in_a: int
    messages_in_b: int
    divergence_point: int  # length of the shared root prefix


class BranchComparison(CamelModel):
    branch_a: Branch
    branch_b: Branch
    differences: list[BranchDifference]
    common_ancestor: str | None = None
    nodes_only_in_a: list[str]
    nodes_only_in_b: list[str]
    metrics: ComparisonMetrics


class BranchName(CamelModel):
    id: str
    name: str
    is_favorite: bool


class BranchPoint(CamelModel):
    node_id: str
    branch_name: str | None = None
    message_preview: str


class Breadcrumb(CamelModel):
    node_id: str
    branch_name: str | None = None
    message_preview: str


class TreeNavigationState(CamelModel):
    current_branch: str
    available_branches: list[str]
    can_go_back: bool
    can_go_forward: bool
    breadcrumbs: list[Breadcrumb]


class TreeStatistics(CamelModel):
    total_nodes: int
    total_branches: int
    user_messages: int
    assistant_messages: int
    edited_messages: int
    max_depth: int
    avg_branch_length: float


class TreeViolation(BaseModel):
    """One structural problem found by ``diagnose_tree``."""

    kind: Literal[
        "multiple_roots",
        "missing_root",
        "root_has_parent",
        "missing_current_node",
        "missing_parent",
        "missing_child",
        "child_parent_mismatch",
        "unlisted_child",
        "current_path_broken",
        "missing_branch_root",
        "missing_branch_leaf",
    ]
    message: str
    node_ids: list[str] = Field(default_factory=list)
    branch_id: str | None = None
