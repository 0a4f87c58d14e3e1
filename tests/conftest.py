"""Shared test fixtures for coinduel."""

import random

import pytest

from coinduel.coordinator import MatchCoordinator
from coinduel.core.channel import MemoryBroker
from coinduel.core.seed import SeedManager
from coinduel.session import GameSession


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def broker():
    return MemoryBroker()


@pytest.fixture
def make_coordinator():
    """Build a MatchCoordinator with a fixed seed and optional local name."""
    def _make(name: str | None = None, seed: int = 7) -> MatchCoordinator:
        co = MatchCoordinator(SeedManager(seed))
        if name is not None:
            co.set_local_player(name)
        return co
    return _make


@pytest.fixture
def make_session(broker):
    """Build a connected, joined GameSession on the shared memory broker."""
    sessions = []

    def _make(seed: int = 7, **kwargs) -> GameSession:
        client = broker.client()
        client.connect()
        session = GameSession(client, "test", seeds=SeedManager(seed), **kwargs)
        session.start()
        sessions.append(session)
        return session

    yield _make
    for s in sessions:
        s.close()
