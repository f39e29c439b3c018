"""Shared fixtures for governance tests."""

import pytest

from daogov.governance.clock import ManualClock
from daogov.governance.core import GovernanceSettings, VotingStrategyKind
from daogov.governance.engine import GovernanceEngine
from daogov.logging.core import shutdown_logging
from daogov.storage.keyvalue import InMemoryStore

DAO_ID = "0xdao"
VOTING_PERIOD = 86400
TIMELOCK_DELAY = 3600


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    shutdown_logging()


@pytest.fixture
def clock():
    return ManualClock(0)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def engine(store, clock):
    return GovernanceEngine(store=store, clock=clock, settings=GovernanceSettings())


@pytest.fixture
def capability(engine):
    """DAO with quorum 25%, proposal threshold 1, veto by 0xguardian."""
    return engine.initialize_dao(
        DAO_ID,
        "Test DAO",
        VOTING_PERIOD,
        TIMELOCK_DELAY,
        2500,
        1,
        VotingStrategyKind.SIMPLE_MAJORITY,
        True,
        "0xguardian",
    )
