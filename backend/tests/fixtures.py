"""Shared test helpers."""

from typing import Any

from convtree.models import Message, MessagePart
from convtree.trees.manager import ConversationTreeManager


def user_message(text: str = "Hello", **extra: Any) -> Message:
    return Message(role="user", content=text, **extra)


def assistant_message(text: str = "Hi there", **extra: Any) -> Message:
    return Message(role="assistant", content=text, **extra)


def segmented_message(role: str = "user", *texts: str, image_url: str | None = None) -> Message:
    """Message whose content is a list of typed segments (optionally with an image)."""
    parts = [MessagePart(type="text", text=t) for t in texts]
    if image_url is not None:
        parts.append(MessagePart(type="image", url=image_url))
    return Message(role=role, content=parts)


def build_linear(manager: ConversationTreeManager, n_messages: int = 4) -> list[str]:
    """Append N alternating user/assistant messages; return ids in order."""
    node_ids: list[str] = []
    parent_id: str | None = None
    for i in range(n_messages):
        message = (
            user_message(f"Message {i + 1}") if i % 2 == 0
            else assistant_message(f"Message {i + 1}")
        )
        parent_id = manager.add_message(message, parent_id=parent_id)
        node_ids.append(parent_id)
    return node_ids


def build_branching(manager: ConversationTreeManager) -> dict[str, str]:
    """root(user) -> A(assistant) -> B(user), and A -> C(user).

    B and C are siblings under A. Current node is C.
    """
    root = manager.add_message(user_message("Root message"))
    a = manager.add_message(assistant_message("Message A"), parent_id=root)
    b = manager.add_message(user_message("Message B (branch 1)"), parent_id=a)
    c = manager.add_message(user_message("Message C (branch 2)"), parent_id=a)
    return {"root": root, "A": a, "B": b, "C": c}


def set_times(manager: ConversationTreeManager, node_id: str, *, created: int | None = None,
              updated: int | None = None) -> None:
    """Pin a node's timestamps so ordering-sensitive tests are deterministic."""
    node = manager.get_node(node_id)
    assert node is not None
    if created is not None:
        node.created_at = created
    if updated is not None:
        node.updated_at = updated
