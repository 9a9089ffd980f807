"""Shared fixtures for testnet_faucet tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from testnet_faucet.coordinator import ClaimCoordinator
from testnet_faucet.models.config import FaucetConfig, PassportConfig, StoreConfig

from tests.factories import make_network
from tests.mocks import FakeClock, MockDispatcher, MockScorer, MockStore

# Well-known throwaway key (anvil/hardhat account #0)
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_FAUCET_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

COOLDOWN_HOURS = 24
COOLDOWN_MS = COOLDOWN_HOURS * 60 * 60 * 1000


def pytest_configure(config):
    """Add faucet info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Faucet Account"] = TEST_FAUCET_ADDRESS
    meta["Cooldown"] = f"{COOLDOWN_HOURS}h"


def make_test_config(**overrides) -> FaucetConfig:
    """Build a FaucetConfig suitable for testing."""
    defaults = dict(
        cooldown_hours=COOLDOWN_HOURS,
        faucet_amount="0.01",
        rollback_retries=3,
        rollback_backoff=0.0,
        private_key=TEST_PRIVATE_KEY,
        dispatch_timeout=1.0,
        confirmation_timeout=1.0,
        store=StoreConfig(url="https://example.upstash.io", token="test-token", timeout=0.5),
        passport=PassportConfig(enabled=False),
        networks=(make_network(), make_network(id="net-other", chain_id=84532)),
    )
    defaults.update(overrides)
    return FaucetConfig(**defaults)


@pytest.fixture
def test_config():
    """Default FaucetConfig for tests."""
    return make_test_config()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_store(clock):
    return MockStore(clock)


@pytest.fixture
def mock_dispatcher():
    return MockDispatcher(succeed=True)


@pytest.fixture
def mock_scorer():
    return MockScorer(score=25.0)


@pytest.fixture
def coordinator(test_config, mock_store, mock_dispatcher, clock):
    """ClaimCoordinator wired to in-memory collaborators."""
    return ClaimCoordinator(test_config, mock_store, mock_dispatcher, clock=clock)
