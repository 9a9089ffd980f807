"""TransactionDispatcher protocol - sends and confirms funding transfers."""

from __future__ import annotations

from typing import Protocol

from testnet_faucet.models.config import NetworkDescriptor
from testnet_faucet.models.records import DispatchResult


class TransactionDispatcher(Protocol):
    """Builds, signs, submits and confirms a native-currency transfer."""

    async def dispatch(
        self,
        network: NetworkDescriptor,
        to_address: str,
        amount_base_units: int,
        timeout: float | None = None,
    ) -> DispatchResult:
        """Send the transfer and wait for at least one confirmation.

        ``timeout`` bounds submission plus confirmation. Time spent queued
        behind other transfers on the same network does not count. Failures,
        including a timeout, are returned as DispatchResult(success=False),
        not raised.
        """
        ...

    async def close(self) -> None:
        ...
