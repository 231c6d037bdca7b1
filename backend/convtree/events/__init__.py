"""State-change notification: instance-scoped synchronous dispatcher."""

from convtree.events.dispatcher import EventDispatcher, Listener

__all__ = ["EventDispatcher", "Listener"]
