"""Snapshot export/import: the JSON form of a tree that callers persist."""

import json
import logging
from typing import Any

from pydantic import ValidationError

from convtree.errors import SnapshotFormatError
from convtree.models import Branch, ConversationNode, ConversationTree, TreeMetadata
from convtree.trees.utils import update_metadata

logger = logging.getLogger(__name__)

_REQUIRED_KEYS = ("id", "nodes", "metadata")


def export_tree(tree: ConversationTree) -> str:
    """Serialize a tree to an indented JSON snapshot.

    Nodes become an array of records. Each record's ``id`` is set from the
    mapping key after the node fields are spread, so the key always wins.
    """
    nodes = []
    for node_id, node in tree.nodes.items():
        record = node.model_dump(mode="json", by_alias=True)
        record["id"] = node_id
        nodes.append(record)

    data = {
        "id": tree.id,
        "rootId": tree.root_id,
        "currentNodeId": tree.current_node_id,
        "currentPath": list(tree.current_path),
        "branches": [b.model_dump(mode="json", by_alias=True) for b in tree.branches],
        "metadata": tree.metadata.model_dump(mode="json", by_alias=True),
        "nodes": nodes,
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def _load(json_data: str | bytes) -> dict[str, Any]:
    try:
        data = json.loads(json_data)
    except (ValueError, TypeError) as e:
        raise SnapshotFormatError(f"Snapshot is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SnapshotFormatError("Snapshot must be a JSON object")
    missing = [key for key in _REQUIRED_KEYS if key not in data]
    if missing:
        raise SnapshotFormatError(f"Snapshot is missing keys: {missing}")
    if not isinstance(data["nodes"], list):
        raise SnapshotFormatError("Snapshot 'nodes' must be an array")
    for key in ("currentPath", "branches"):
        if data.get(key) is not None and not isinstance(data[key], list):
            raise SnapshotFormatError(f"Snapshot '{key}' must be an array")
    return data


def import_tree(json_data: str | bytes) -> ConversationTree:
    """Rebuild a tree from a snapshot produced by ``export_tree``.

    The node mapping is keyed by each record's explicit ``id``. Derived
    totals are recomputed; structure is not validated here.
    """
    data = _load(json_data)

    try:
        nodes: dict[str, ConversationNode] = {}
        for record in data["nodes"]:
            if not isinstance(record, dict) or "id" not in record:
                raise SnapshotFormatError("Every node record needs an 'id'")
            node_id = record["id"]
            node = ConversationNode.model_validate({**record, "id": node_id})
            if node_id in nodes:
                logger.warning("import_tree: duplicate node id %r, keeping the last record", node_id)
            nodes[node_id] = node

        tree = ConversationTree(
            id=data["id"],
            nodes=nodes,
            root_id=data.get("rootId") or "",
            current_node_id=data.get("currentNodeId") or "",
            current_path=list(data.get("currentPath") or []),
            branches=[Branch.model_validate(b) for b in data.get("branches") or []],
            metadata=TreeMetadata.model_validate(data["metadata"]),
        )
    except ValidationError as e:
        raise SnapshotFormatError(f"Snapshot does not match the tree schema: {e}") from e

    update_metadata(tree, touch=False)
    return tree
