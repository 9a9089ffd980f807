"""EVM transaction dispatcher - sends native-currency transfers via web3.py."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from testnet_faucet.chain.addresses import short
from testnet_faucet.models.config import NetworkDescriptor
from testnet_faucet.models.records import DispatchResult

log = logging.getLogger(__name__)

# Gas for a plain value transfer to an EOA
TRANSFER_GAS = 21_000


def _default_web3(network: NetworkDescriptor) -> AsyncWeb3:
    return AsyncWeb3(AsyncHTTPProvider(network.rpc_url))


def _remaining(loop: asyncio.AbstractEventLoop, deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return max(0.0, deadline - loop.time())


class ChainMismatchError(Exception):
    """The RPC endpoint serves a different chain than configured."""


class TransactionRevertedError(Exception):
    """The transfer was mined with status 0."""


class EvmDispatcher:
    """Sends faucet transfers from a single signing key on any configured network.

    One transfer is in flight per network at a time: the faucet account's
    nonce is read from the node just before signing, so concurrent sends on
    the same chain would collide.
    """

    def __init__(
        self,
        private_key: str,
        confirmation_timeout: float = 120.0,
        poll_latency: float = 2.0,
        web3_factory: Callable[[NetworkDescriptor], Any] | None = None,
    ) -> None:
        self._account = Account.from_key(private_key)
        self._confirmation_timeout = confirmation_timeout
        self._poll_latency = poll_latency
        self._web3_factory = web3_factory or _default_web3
        self._clients: dict[str, Any] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def address(self) -> str:
        """Faucet account address."""
        return self._account.address

    def _web3(self, network: NetworkDescriptor) -> Any:
        w3 = self._clients.get(network.id)
        if w3 is None:
            w3 = self._web3_factory(network)
            self._clients[network.id] = w3
        return w3

    def _lock(self, network_id: str) -> asyncio.Lock:
        return self._locks.setdefault(network_id, asyncio.Lock())

    async def close(self) -> None:
        """Close cached provider sessions."""
        for network_id, w3 in self._clients.items():
            disconnect = getattr(w3.provider, "disconnect", None)
            if disconnect is None:
                continue
            try:
                await disconnect()
            except Exception as exc:
                log.debug("Closing provider for %s failed: %s", network_id, exc)
        self._clients.clear()

    async def dispatch(
        self,
        network: NetworkDescriptor,
        to_address: str,
        amount_base_units: int,
        timeout: float | None = None,
    ) -> DispatchResult:
        """Send a transfer and wait for one confirmation.

        The timeout clock starts once this network's lock is held, so queued
        transfers are not charged for the ones ahead of them. Returns a
        DispatchResult; failures carry the cause in ``error``.
        """
        async with self._lock(network.id):
            log.info(
                "Sending %d base units to %s on %s",
                amount_base_units, short(to_address), network.id,
            )
            loop = asyncio.get_running_loop()
            deadline = None if timeout is None else loop.time() + timeout
            tx_hash: str | None = None
            try:
                w3 = self._web3(network)
                tx_hash = await asyncio.wait_for(
                    self._send(w3, network, to_address, amount_base_units),
                    _remaining(loop, deadline),
                )
                receipt = await asyncio.wait_for(
                    w3.eth.wait_for_transaction_receipt(
                        tx_hash,
                        timeout=self._confirmation_timeout,
                        poll_latency=self._poll_latency,
                    ),
                    _remaining(loop, deadline),
                )
                if receipt["status"] != 1:
                    raise TransactionRevertedError(f"transaction {tx_hash} reverted")

                block_number = receipt.get("blockNumber")
                log.info(
                    "Transfer confirmed on %s (tx=%s, block=%s)",
                    network.id, short(tx_hash, 18), block_number,
                )
                return DispatchResult(
                    success=True,
                    network_id=network.id,
                    to_address=to_address,
                    tx_hash=tx_hash,
                    block_number=block_number,
                )

            except asyncio.TimeoutError:
                log.warning(
                    "Transfer to %s on %s timed out after %ss (tx=%s)",
                    short(to_address), network.id, timeout, short(tx_hash, 18),
                )
                return DispatchResult(
                    success=False,
                    network_id=network.id,
                    to_address=to_address,
                    tx_hash=tx_hash,
                    error="dispatch timed out",
                    timed_out=True,
                )
            except Exception as exc:
                log.error(
                    "Transfer to %s on %s failed (tx=%s): %s",
                    short(to_address), network.id, short(tx_hash, 18), exc,
                )
                return DispatchResult(
                    success=False,
                    network_id=network.id,
                    to_address=to_address,
                    tx_hash=tx_hash,
                    error=f"{type(exc).__name__}: {exc}",
                )

    async def _send(
        self, w3: Any, network: NetworkDescriptor, to_address: str, value: int
    ) -> str:
        """Build, sign and broadcast the transfer. Returns the 0x tx hash."""
        chain_id = await w3.eth.chain_id
        if chain_id != network.chain_id:
            raise ChainMismatchError(
                f"RPC for {network.id} reports chain {chain_id}, "
                f"expected {network.chain_id}"
            )

        nonce = await w3.eth.get_transaction_count(self._account.address, "pending")
        tx: dict[str, Any] = {
            "to": Web3.to_checksum_address(to_address),
            "value": value,
            "gas": TRANSFER_GAS,
            "nonce": nonce,
            "chainId": network.chain_id,
        }
        tx.update(await self._fee_fields(w3))

        signed = self._account.sign_transaction(tx)
        raw_hash = await w3.eth.send_raw_transaction(signed.raw_transaction)
        tx_hash = Web3.to_hex(raw_hash)
        log.info("Submitted %s on %s (nonce=%d)", short(tx_hash, 18), network.id, nonce)
        return tx_hash

    async def _fee_fields(self, w3: Any) -> dict[str, int]:
        """EIP-1559 fees when the chain reports a base fee, legacy gasPrice otherwise."""
        latest = await w3.eth.get_block("latest")
        base_fee = latest.get("baseFeePerGas")
        if base_fee is not None:
            priority_fee = await w3.eth.max_priority_fee
            return {
                "type": 2,
                "maxFeePerGas": int(base_fee) * 2 + int(priority_fee),
                "maxPriorityFeePerGas": int(priority_fee),
            }
        return {"gasPrice": int(await w3.eth.gas_price)}
