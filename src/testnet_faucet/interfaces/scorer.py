"""EligibilityScorer protocol - remote reputation score lookup."""

from __future__ import annotations

from typing import Protocol

from testnet_faucet.models.records import ScoreResult


class EligibilityScorer(Protocol):
    """Looks up an address score and compares it to a fixed threshold."""

    @property
    def threshold(self) -> float:
        ...

    async def score(self, address: str) -> ScoreResult:
        """Raises EligibilityUnavailable if the service cannot be reached."""
        ...

    async def close(self) -> None:
        ...
