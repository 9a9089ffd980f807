"""Claim execution: happy path, mutual exclusion, validation ordering, amounts."""

from __future__ import annotations

import asyncio

import pytest

from testnet_faucet.chain.evm import EvmDispatcher
from testnet_faucet.coordinator import ClaimCoordinator
from testnet_faucet.errors import InvalidInput, RateLimited, UnknownNetwork
from testnet_faucet.policy.cooldown import claim_key

from tests.conftest import COOLDOWN_MS, TEST_PRIVATE_KEY, make_test_config
from tests.factories import (
    ADDRESS_A,
    ADDRESS_B,
    CHECKSUM_ADDRESS,
    LOWER_ADDRESS,
    UPPER_ADDRESS,
    make_network,
)
from tests.mocks import FakeEth, FakeWeb3, MockDispatcher

ONE_CENT_WEI = 10_000_000_000_000_000  # 0.01 ETH


# ── Happy path ────────────────────────────────────────────────────


async def test_first_claim_then_rate_limited(coordinator, mock_store, mock_dispatcher):
    """Eligible → claim returns a tx hash → immediate second claim is RateLimited."""
    assert (await coordinator.check(ADDRESS_A, "net-test")).eligible

    outcome = await coordinator.execute(ADDRESS_A, "net-test")
    assert outcome.tx_hash == mock_dispatcher.tx_hash
    assert outcome.amount == "0.01"
    assert outcome.amount_base_units == ONE_CENT_WEI
    assert outcome.to_dict()["txHash"] == mock_dispatcher.tx_hash

    # Reservation stands as the cooldown record
    key = claim_key("faucet", "net-test", ADDRESS_A)
    assert mock_store.data[key][0] == "1"

    with pytest.raises(RateLimited) as exc_info:
        await coordinator.execute(ADDRESS_A, "net-test")
    # Reservation form: remaining time is not computable
    assert exc_info.value.retry_after_ms is None
    assert "retryAfterMillis" not in exc_info.value.to_dict()

    assert len(mock_dispatcher.dispatch_calls) == 1
    assert not (await coordinator.check(ADDRESS_A, "net-test")).eligible


async def test_claim_allowed_again_after_cooldown(coordinator, mock_dispatcher, clock):
    await coordinator.execute(ADDRESS_A, "net-test")
    clock.advance(COOLDOWN_MS)
    assert (await coordinator.check(ADDRESS_A, "net-test")).eligible
    await coordinator.execute(ADDRESS_A, "net-test")
    assert len(mock_dispatcher.dispatch_calls) == 2


async def test_rate_limited_reports_remaining_for_timestamp_record(
    coordinator, mock_store, mock_dispatcher, clock,
):
    """Records written in timestamp form still block and report time left."""
    key = claim_key("faucet", "net-test", ADDRESS_A)
    mock_store.seed(key, str(clock() - 1_000), ttl_ms=COOLDOWN_MS - 1_000)

    with pytest.raises(RateLimited) as exc_info:
        await coordinator.execute(ADDRESS_A, "net-test")
    assert exc_info.value.retry_after_ms == COOLDOWN_MS - 1_000
    assert exc_info.value.to_dict()["retryAfterMillis"] == COOLDOWN_MS - 1_000
    assert mock_dispatcher.dispatch_calls == []


async def test_expired_timestamp_record_is_reclaimed(
    coordinator, mock_store, mock_dispatcher, clock,
):
    """A timestamp record with no TTL stops blocking once its window passes."""
    key = claim_key("faucet", "net-test", ADDRESS_A)
    claimed_at = clock()
    mock_store.seed(key, str(claimed_at))
    clock.advance(COOLDOWN_MS)

    assert (await coordinator.check(ADDRESS_A, "net-test")).eligible
    outcome = await coordinator.execute(ADDRESS_A, "net-test")
    assert outcome.tx_hash == mock_dispatcher.tx_hash

    # Replaced by a reservation carrying the store TTL
    assert mock_store.data[key] == ("1", clock() + COOLDOWN_MS)
    with pytest.raises(RateLimited):
        await coordinator.execute(ADDRESS_A, "net-test")
    assert len(mock_dispatcher.dispatch_calls) == 1


async def test_expired_timestamp_record_single_winner(mock_store, clock):
    key = claim_key("faucet", "net-test", ADDRESS_A)
    mock_store.seed(key, str(clock()))
    clock.advance(COOLDOWN_MS + 5_000)
    dispatcher = MockDispatcher(delay=0.01)
    coordinator = ClaimCoordinator(make_test_config(), mock_store, dispatcher, clock=clock)

    results = await asyncio.gather(
        *(coordinator.execute(ADDRESS_A, "net-test") for _ in range(10)),
        return_exceptions=True,
    )
    assert sum(not isinstance(r, Exception) for r in results) == 1
    assert all(isinstance(r, RateLimited) for r in results if isinstance(r, Exception))
    assert len(dispatcher.dispatch_calls) == 1


async def test_live_timestamp_record_without_ttl_gets_expiry(
    coordinator, mock_store, mock_dispatcher, clock,
):
    key = claim_key("faucet", "net-test", ADDRESS_A)
    claimed_at = clock()
    mock_store.seed(key, str(claimed_at))
    clock.advance(1_000)

    with pytest.raises(RateLimited) as exc_info:
        await coordinator.execute(ADDRESS_A, "net-test")
    assert exc_info.value.retry_after_ms == COOLDOWN_MS - 1_000
    assert ("expire", key) in mock_store.calls
    assert mock_store.data[key] == (str(claimed_at), claimed_at + COOLDOWN_MS)
    assert mock_dispatcher.dispatch_calls == []


async def test_networks_have_independent_cooldowns(coordinator, mock_dispatcher):
    await coordinator.execute(ADDRESS_A, "net-test")
    await coordinator.execute(ADDRESS_A, "net-other")
    assert [c[0] for c in mock_dispatcher.dispatch_calls] == ["net-test", "net-other"]


# ── Mutual exclusion ──────────────────────────────────────────────


@pytest.mark.parametrize("n", [2, 10, 50])
async def test_concurrent_claims_exactly_one_dispatch(
    test_config, mock_store, clock, n,
):
    dispatcher = MockDispatcher(succeed=True, delay=0.01)
    coordinator = ClaimCoordinator(test_config, mock_store, dispatcher, clock=clock)

    results = await asyncio.gather(
        *(coordinator.execute(ADDRESS_A, "net-test") for _ in range(n)),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    limited = [r for r in results if isinstance(r, RateLimited)]
    assert len(successes) == 1
    assert len(limited) == n - 1
    assert len(dispatcher.dispatch_calls) == 1


async def test_two_simultaneous_requests(coordinator, mock_dispatcher):
    first, second = await asyncio.gather(
        coordinator.execute(ADDRESS_A, "net-test"),
        coordinator.execute(ADDRESS_A, "net-test"),
        return_exceptions=True,
    )
    outcomes = sorted([first, second], key=lambda r: isinstance(r, Exception))
    assert outcomes[0].tx_hash == mock_dispatcher.tx_hash
    assert isinstance(outcomes[1], RateLimited)


async def test_concurrent_claims_for_different_addresses_all_succeed(coordinator, mock_dispatcher):
    results = await asyncio.gather(
        coordinator.execute(ADDRESS_A, "net-test"),
        coordinator.execute(ADDRESS_B, "net-test"),
    )
    assert len(results) == 2
    assert len(mock_dispatcher.dispatch_calls) == 2


async def test_claims_queued_on_one_network_are_not_timed_out(mock_store, clock):
    """Confirmation takes over half the dispatch timeout; the second claim waits
    its turn on the network and still succeeds."""
    eth = FakeEth(confirm_delay=0.6)
    dispatcher = EvmDispatcher(TEST_PRIVATE_KEY, web3_factory=lambda network: FakeWeb3(eth))
    coordinator = ClaimCoordinator(
        make_test_config(dispatch_timeout=1.0), mock_store, dispatcher, clock=clock,
    )

    results = await asyncio.gather(
        coordinator.execute(ADDRESS_A, "net-test"),
        coordinator.execute(ADDRESS_B, "net-test"),
    )
    assert len({r.tx_hash for r in results}) == 2
    assert len(eth.sent) == 2
    assert mock_store.writes() == [
        ("set_if_absent", claim_key("faucet", "net-test", ADDRESS_A)),
        ("set_if_absent", claim_key("faucet", "net-test", ADDRESS_B)),
    ]


# ── Case-insensitivity ────────────────────────────────────────────


async def test_case_variants_share_one_window(coordinator, mock_store, mock_dispatcher):
    await coordinator.execute(UPPER_ADDRESS, "net-test")

    with pytest.raises(RateLimited):
        await coordinator.execute(LOWER_ADDRESS, "net-test")
    with pytest.raises(RateLimited):
        await coordinator.execute(CHECKSUM_ADDRESS, "net-test")

    assert len(mock_store.data) == 1
    # Address reaches the dispatcher exactly as submitted
    assert mock_dispatcher.dispatch_calls[0][1] == UPPER_ADDRESS


# ── Validation ordering ───────────────────────────────────────────


async def test_unknown_network_no_store_calls(coordinator, mock_store, mock_dispatcher):
    with pytest.raises(UnknownNetwork) as exc_info:
        await coordinator.execute(ADDRESS_A, "net-unknown")
    assert exc_info.value.kind == "UnknownNetwork"
    assert mock_store.calls == []
    assert mock_dispatcher.dispatch_calls == []


async def test_network_match_is_exact(coordinator, mock_store):
    with pytest.raises(UnknownNetwork):
        await coordinator.execute(ADDRESS_A, "NET-TEST")
    assert mock_store.calls == []


@pytest.mark.parametrize(
    "address, network_id",
    [
        ("", "net-test"),
        (None, "net-test"),
        (ADDRESS_A, ""),
        (ADDRESS_A, None),
    ],
)
async def test_missing_params_no_store_calls(coordinator, mock_store, address, network_id):
    with pytest.raises(InvalidInput):
        await coordinator.execute(address, network_id)
    assert mock_store.calls == []


@pytest.mark.parametrize(
    "address",
    [
        "0x123",
        "a" * 40,
        "0x" + "g" * 40,
        "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAeD",  # bad checksum
    ],
)
async def test_malformed_address_no_store_calls(coordinator, mock_store, address):
    with pytest.raises(InvalidInput):
        await coordinator.execute(address, "net-test")
    assert mock_store.calls == []


# ── Amounts ───────────────────────────────────────────────────────


async def test_requested_amount_is_clamped(coordinator, mock_dispatcher):
    outcome = await coordinator.execute(ADDRESS_A, "net-test", amount="5")
    assert outcome.amount == "0.01"
    assert mock_dispatcher.dispatch_calls[0][2] == ONE_CENT_WEI


async def test_smaller_requested_amount_is_honoured(coordinator, mock_dispatcher):
    outcome = await coordinator.execute(ADDRESS_A, "net-test", amount="0.005")
    assert outcome.amount == "0.005"
    assert mock_dispatcher.dispatch_calls[0][2] == ONE_CENT_WEI // 2


@pytest.mark.parametrize("amount", ["-1", "abc", "0", "1e18", "0.0000000000000000001"])
async def test_bad_amount_rejected_before_store(coordinator, mock_store, amount):
    with pytest.raises(InvalidInput):
        await coordinator.execute(ADDRESS_A, "net-test", amount=amount)
    assert mock_store.calls == []


async def test_per_network_faucet_amount(mock_store, mock_dispatcher, clock):
    cfg = make_test_config(
        networks=(make_network(id="six-dec", decimals=6, symbol="TST", faucet_amount="2.5"),),
    )
    coordinator = ClaimCoordinator(cfg, mock_store, mock_dispatcher, clock=clock)
    outcome = await coordinator.execute(ADDRESS_A, "six-dec")
    assert outcome.amount == "2.5"
    assert outcome.amount_base_units == 2_500_000
