"""Current-position tracking and root-to-node paths."""

from convtree.errors import BrokenPathError, NodeNotFoundError
from convtree.models import ConversationNode, ConversationTree


class NavigationManager:
    """Reads and moves the tree's current position. Shares the tree, owns nothing."""

    def __init__(self, tree: ConversationTree) -> None:
        self._tree = tree

    def get_node(self, node_id: str) -> ConversationNode | None:
        return self._tree.nodes.get(node_id)

    def get_current_node(self) -> ConversationNode | None:
        return self._tree.nodes.get(self._tree.current_node_id)

    def get_path_to_node(self, node_id: str) -> list[str]:
        """Walk parent links from ``node_id`` to the root; return root first.

        Raises NodeNotFoundError if the node is absent, BrokenPathError if a
        parent is missing or the chain does not end within ``len(nodes)`` hops.
        """
        nodes = self._tree.nodes
        if node_id not in nodes:
            raise NodeNotFoundError(node_id, "get_path_to_node")

        path: list[str] = []
        current_id: str | None = node_id
        while current_id is not None:
            if len(path) >= len(nodes):
                raise BrokenPathError(node_id, f"cycle detected at {current_id}")
            node = nodes.get(current_id)
            if node is None:
                raise BrokenPathError(node_id, f"ancestor {current_id} not found")
            path.append(current_id)
            current_id = node.parent_id

        path.reverse()
        return path

    def update_current_path(self) -> None:
        if not self._tree.current_node_id:
            self._tree.current_path = []
            return
        self._tree.current_path = self.get_path_to_node(self._tree.current_node_id)

    def switch_to_node(self, node_id: str) -> None:
        if node_id not in self._tree.nodes:
            raise NodeNotFoundError(node_id, "switch_to_node")
        path = self.get_path_to_node(node_id)
        self._tree.current_node_id = node_id
        self._tree.current_path = path

    def get_all_nodes(self) -> list[ConversationNode]:
        return list(self._tree.nodes.values())

    def get_messages(self, path: list[str] | None = None) -> list[ConversationNode]:
        """Nodes along ``path`` (default: the current path), skipping unknown ids."""
        target = self._tree.current_path if path is None else path
        return [self._tree.nodes[nid] for nid in target if nid in self._tree.nodes]

    def has_children(self, node_id: str) -> bool:
        node = self._tree.nodes.get(node_id)
        return bool(node and node.children)

    def depth_of(self, node_id: str) -> int:
        """Number of nodes on the root-to-node path (root has depth 1)."""
        return len(self.get_path_to_node(node_id))
