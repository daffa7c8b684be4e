"""Shared fixtures for campuschat tests."""

import pytest

from campuschat.core.clock import ManualClock
from campuschat.services.conversation_store import ConversationStore
from campuschat.services.persistence import InMemoryRepository
from campuschat.services.presence_gate import PresenceGate


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def gate(clock: ManualClock) -> PresenceGate:
    return PresenceGate(clock=clock)


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def store(repository: InMemoryRepository, clock: ManualClock):
    store = ConversationStore(repository=repository, clock=clock)
    yield store
    store.close()
