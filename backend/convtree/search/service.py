"""Content search over a tree's nodes."""

import logging
from collections.abc import Iterable

from convtree.models import ConversationNode
from convtree.trees.utils import get_message_content

logger = logging.getLogger(__name__)


def search_nodes(
    nodes: Iterable[ConversationNode],
    query: str,
    *,
    roles: list[str] | None = None,
    limit: int | None = None,
) -> list[ConversationNode]:
    """Nodes whose display text contains ``query``, case-insensitively.

    Results keep the order of ``nodes``. An empty query matches everything,
    like a substring test does.
    """
    results: list[ConversationNode] = []
    if limit is not None and limit <= 0:
        return results
    needle = query.lower()
    for node in nodes:
        if roles and node.message.role not in roles:
            continue
        if needle in get_message_content(node.message).lower():
            results.append(node)
            if limit is not None and len(results) >= limit:
                break
    logger.debug("search_nodes: %r matched %d nodes", query, len(results))
    return results
