"""Synchronous publish/subscribe for tree state changes.

Each manager holds its own dispatcher; there is no process-wide registry.
"""

import logging
from collections.abc import Callable

from convtree.errors import ListenerError
from convtree.models import TreeStateChange

logger = logging.getLogger(__name__)

Listener = Callable[[TreeStateChange], None]


class EventDispatcher:
    """Delivers each change to every subscribed listener, in subscription order."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; call the returned function to unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, change: TreeStateChange) -> None:
        """Call every listener, then raise ListenerError if any of them failed.

        The listener list is snapshotted first, so (un)subscribing from inside
        a listener only affects later changes.
        """
        errors: list[Exception] = []
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                logger.exception(
                    "Listener %r failed on %s for node %s",
                    listener, change.type, change.node_id,
                )
                errors.append(e)
        if errors:
            raise ListenerError(errors)

    def __len__(self) -> int:
        return len(self._listeners)
