"""Shared pytest fixtures for convtree tests."""

import pytest

from convtree.models import TreeStateChange
from convtree.trees.manager import ConversationTreeManager
from tests.fixtures import build_branching


@pytest.fixture
def manager():
    """Empty manager with default options."""
    return ConversationTreeManager()


@pytest.fixture
def branching(manager):
    """Manager holding root -> A -> {B, C}; returns (manager, ids)."""
    return manager, build_branching(manager)


@pytest.fixture
def events(manager):
    """Every change the manager emits, in delivery order."""
    received: list[TreeStateChange] = []
    manager.subscribe(received.append)
    return received
