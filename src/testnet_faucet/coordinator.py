"""Claim coordinator - admission, dispatch and rollback of faucet claims.

Admission uses reserve-then-confirm: a claim is admitted only by an atomic
``SET key marker NX PX window`` against the shared store, so among
concurrent requests for the same (network, address) exactly one wins per
cooldown window. The winner dispatches the transfer. A confirmed transfer
leaves the reservation in place as the cooldown record; a failed or
timed-out transfer deletes it so the address may retry.

A timed-out transfer is released as well even though it may still land on
chain; the address can then claim again and could be funded twice. The
dispatch timeout runs from the moment the transfer holds its network's
dispatch lock, so claims queued behind others are not timed out early.

Legacy timestamp records left by check-then-set deployments are honoured:
once their window has passed, a claim replaces them with a reservation by
compare-and-set.

No in-process lock guards admission. Instances share nothing but the store.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Callable

from testnet_faucet.chain.addresses import short, validate_address
from testnet_faucet.chain.amounts import from_base_units, to_base_units
from testnet_faucet.chain.evm import EvmDispatcher
from testnet_faucet.errors import (
    ConfigurationError,
    DispatchFailed,
    EligibilityUnavailable,
    Ineligible,
    InvalidInput,
    RateLimited,
    StoreUnavailable,
)
from testnet_faucet.interfaces.dispatcher import TransactionDispatcher
from testnet_faucet.interfaces.scorer import EligibilityScorer
from testnet_faucet.interfaces.store import RateLimitStore
from testnet_faucet.models.config import FaucetConfig, NetworkDescriptor
from testnet_faucet.models.records import (
    ClaimOutcome,
    ClaimRecord,
    DispatchResult,
    EligibilityResult,
    RecordForm,
)
from testnet_faucet.networks import NetworkRegistry
from testnet_faucet.policy.cooldown import claim_key, evaluate_record
from testnet_faucet.scoring.passport import PassportScorer
from testnet_faucet.storage.upstash import UpstashRateLimitStore

log = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ClaimCoordinator:
    """Answers eligibility queries and executes faucet claims."""

    def __init__(
        self,
        cfg: FaucetConfig,
        store: RateLimitStore,
        dispatcher: TransactionDispatcher,
        scorer: EligibilityScorer | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._cfg = cfg
        self._store = store
        self._dispatcher = dispatcher
        self._scorer = scorer
        self._clock = clock
        self.networks = NetworkRegistry(cfg.networks)

    async def close(self) -> None:
        await self._store.close()
        await self._dispatcher.close()
        if self._scorer:
            await self._scorer.close()

    # ── Eligibility ────────────────────────────────────────

    async def check(self, address: str, network_id: str) -> EligibilityResult:
        """Read-only: may this address claim on this network now?

        "Not yet eligible" is a normal result. Raises StoreUnavailable if
        the store cannot be read.
        """
        self._resolve(address, network_id)
        key = claim_key(self._cfg.key_prefix, network_id, address)
        raw = await self._store_call(self._store.get(key), "GET", key)
        return evaluate_record(
            raw, self._cfg.reservation_marker, self._clock(), self._cfg.cooldown_ms,
        )

    # ── Claim ──────────────────────────────────────────────

    async def execute(
        self, address: str, network_id: str, amount: str | None = None
    ) -> ClaimOutcome:
        """Reserve the claim window, send the transfer, roll back on failure."""
        network = self._resolve(address, network_id)
        units = self._resolve_amount(network, amount)

        if self._scorer:
            await self._check_score(address)

        key = claim_key(self._cfg.key_prefix, network.id, address)
        try:
            reserved = await self._store_call(
                self._store.set_if_absent(
                    key, self._cfg.reservation_marker, self._cfg.cooldown_ms,
                ),
                "SET NX",
                key,
            )
        except StoreUnavailable:
            log.error(
                "POSSIBLE ORPHANED RESERVATION %s: SET NX outcome unknown; if the "
                "store applied it, the address is locked until it expires with "
                "nothing sent",
                key,
            )
            raise
        if not reserved:
            await self._take_over_stale(key)

        log.info(
            "Reserved %s, dispatching %s %s",
            key, from_base_units(units, network.decimals), network.symbol,
        )

        try:
            result = await self._dispatch(network, address, units)
        except asyncio.CancelledError:
            log.warning("Claim %s cancelled during dispatch, releasing reservation", key)
            await asyncio.shield(self._rollback(key))
            raise

        if result.success:
            log.info("Claim complete: %s (tx=%s)", key, result.tx_hash)
            return ClaimOutcome(
                tx_hash=result.tx_hash or "",
                network_id=network.id,
                address=address,
                amount=from_base_units(units, network.decimals),
                amount_base_units=units,
            )

        log.error("Claim %s failed: %s", key, result.error)
        rolled_back = await self._rollback(key)
        raise DispatchFailed(rollback_failed=not rolled_back)

    # ── Internals ──────────────────────────────────────────

    def _resolve(self, address: str, network_id: str) -> NetworkDescriptor:
        """Validate request fields. Never touches the store."""
        if not address or not network_id:
            raise InvalidInput("Missing required parameters.")
        network = self.networks.get(network_id)
        validate_address(address)
        return network

    def _resolve_amount(self, network: NetworkDescriptor, amount: str | None) -> int:
        """Requested amount clamped to the faucet amount, in base units."""
        cap = to_base_units(network.faucet_amount or self._cfg.faucet_amount, network.decimals)
        if amount is None or str(amount).strip() == "":
            return cap
        requested = to_base_units(amount, network.decimals)
        if requested > cap:
            log.info(
                "Requested %s %s exceeds faucet amount, clamping",
                amount, network.symbol,
            )
            return cap
        return requested

    async def _check_score(self, address: str) -> None:
        try:
            result = await asyncio.wait_for(
                self._scorer.score(address), self._cfg.passport.timeout,
            )
        except asyncio.TimeoutError as exc:
            log.error("Passport lookup for %s timed out", short(address))
            raise EligibilityUnavailable() from exc
        if not result.passing:
            log.info(
                "Claim refused for %s: score %s below %s",
                short(address), result.score, result.threshold,
            )
            raise Ineligible(result.score, result.threshold)

    async def _dispatch(
        self, network: NetworkDescriptor, address: str, units: int
    ) -> DispatchResult:
        try:
            result = await self._dispatcher.dispatch(
                network, address, units, timeout=self._cfg.dispatch_timeout,
            )
        except Exception as exc:
            log.error("Dispatcher raised for %s: %s", short(address), exc, exc_info=True)
            return DispatchResult(
                success=False,
                network_id=network.id,
                to_address=address,
                error=str(exc),
            )
        if result.timed_out:
            if result.tx_hash:
                log.warning(
                    "Dispatch to %s on %s timed out after %ss; tx %s was broadcast "
                    "and may still land after the reservation is released",
                    short(address), network.id, self._cfg.dispatch_timeout,
                    result.tx_hash,
                )
            else:
                log.warning(
                    "Dispatch to %s on %s timed out after %ss before a transaction "
                    "hash was known",
                    short(address), network.id, self._cfg.dispatch_timeout,
                )
        return result

    async def _take_over_stale(self, key: str) -> None:
        """Handle a claim key that already holds a record.

        Returns only if a legacy timestamp record whose window has passed was
        replaced by a fresh reservation. The replacement is a compare-and-set
        against the value just read, so of several concurrent claimants only
        one wins. Otherwise raises RateLimited.
        """
        try:
            raw = await self._store_call(self._store.get(key), "GET", key)
        except StoreUnavailable:
            log.warning("Could not read %s for retry-after; reporting none", key)
            raise RateLimited() from None
        if raw is None:
            # Expired between SET NX and GET
            log.info("Claim rejected, record under %s vanished; caller may retry", key)
            raise RateLimited()

        marker = self._cfg.reservation_marker
        result = evaluate_record(raw, marker, self._clock(), self._cfg.cooldown_ms)
        if ClaimRecord.parse(raw, marker).form == RecordForm.TIMESTAMP:
            if result.eligible:
                replaced = await self._store_call(
                    self._store.replace_if_equal(
                        key, raw, marker, self._cfg.cooldown_ms,
                    ),
                    "EVAL",
                    key,
                )
                if replaced:
                    log.info("Replaced expired timestamp record %s with a reservation", key)
                    return
            else:
                await self._bound_timestamp_record(key, result.retry_after_ms)

        log.info("Claim rejected, window already taken: %s", key)
        raise RateLimited(result.retry_after_ms)

    async def _bound_timestamp_record(self, key: str, remaining_ms: int) -> None:
        """Give a live timestamp record a TTL matching its remaining window.

        Records written by check-then-set deployments may have lost their
        EXPIRE. The record already blocks the claim, so a failure here is
        only logged.
        """
        try:
            await self._store_call(
                self._store.expire(key, math.ceil(remaining_ms / 1000)), "EXPIRE", key,
            )
        except StoreUnavailable:
            log.warning("Could not set expiry on timestamp record %s", key)

    async def _rollback(self, key: str) -> bool:
        """Delete a reservation whose transfer did not confirm.

        Retried with backoff. Returns False if every attempt failed, which
        leaves the address locked out until the reservation expires.
        """
        attempts = max(1, self._cfg.rollback_retries)
        delay = self._cfg.rollback_backoff
        for attempt in range(1, attempts + 1):
            try:
                await self._store_call(self._store.delete(key), "DEL", key)
                log.info("Released reservation %s", key)
                return True
            except StoreUnavailable:
                log.warning("Rollback attempt %d/%d for %s failed", attempt, attempts, key)
                if attempt < attempts:
                    await asyncio.sleep(delay)
                    delay *= 2

        log.critical(
            "ROLLBACK FAILED for %s after %d attempts: address is locked out "
            "until the reservation expires, with no confirmed transfer",
            key, attempts,
        )
        return False

    async def _store_call(self, coro, op: str, key: str):
        """Await a store call with the configured timeout.

        A timeout is a failure, never an absent key.
        """
        try:
            return await asyncio.wait_for(coro, self._cfg.store.timeout)
        except asyncio.TimeoutError as exc:
            log.error("Store %s %s timed out after %ss", op, key, self._cfg.store.timeout)
            raise StoreUnavailable() from exc


def build_coordinator(cfg: FaucetConfig) -> ClaimCoordinator:
    """Wire production collaborators. Raises ConfigurationError if incomplete."""
    cfg.validate()

    try:
        dispatcher = EvmDispatcher(cfg.private_key, cfg.confirmation_timeout)
    except (ValueError, TypeError) as exc:
        raise ConfigurationError("faucet private key is not a valid secp256k1 key") from exc

    store = UpstashRateLimitStore(cfg.store.url, cfg.store.token, cfg.store.timeout)
    scorer = None
    if cfg.passport.enabled:
        scorer = PassportScorer(
            cfg.passport.api_url,
            cfg.passport.api_key,
            cfg.passport.threshold,
            cfg.passport.timeout,
        )

    log.info(
        "Faucet ready: %d networks, cooldown %sh, amount %s, faucet %s",
        len(cfg.networks), cfg.cooldown_hours, cfg.faucet_amount,
        dispatcher.address,
    )
    return ClaimCoordinator(cfg, store, dispatcher, scorer)
