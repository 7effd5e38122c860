"""Pytest fixtures for conversational memory tests."""

import pytest

from convomemory.context import ANONYMOUS, RequestContext
from convomemory.services import (
    ConversationCollection,
    InMemoryDocumentStore,
    InteractionCollection,
    MemoryCoordinator,
)


@pytest.fixture
def store():
    """Eventually consistent in-memory store (explicit refresh)."""
    return InMemoryDocumentStore()


@pytest.fixture
def conversations(store):
    return ConversationCollection(store)


@pytest.fixture
def interactions(store):
    return InteractionCollection(store)


@pytest.fixture
def memory(store):
    """Coordinator over the shared in-memory store."""
    return MemoryCoordinator(store)


@pytest.fixture
def anonymous():
    return ANONYMOUS


@pytest.fixture
def alice():
    return RequestContext(user="alice")


@pytest.fixture
def bob():
    return RequestContext(user="bob")


@pytest.fixture
def ticking_clock(monkeypatch):
    """Make every ``utc_now`` call in the services one millisecond later.

    Gives interactions distinct timestamps, so recency order is exact.
    """
    from datetime import timedelta

    from convomemory.schemas import utc_now

    start = utc_now()
    ticks = []

    def tick():
        ticks.append(None)
        return start + timedelta(milliseconds=len(ticks))

    monkeypatch.setattr("convomemory.services.conversations.utc_now", tick)
    monkeypatch.setattr("convomemory.services.memory.utc_now", tick)
    monkeypatch.setattr("convomemory.services.interactions.utc_now", tick)
    return tick
