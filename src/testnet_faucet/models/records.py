"""Claim records and operation results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RecordForm(str, Enum):
    """How a claim record stored under a claim key is represented."""

    TIMESTAMP = "timestamp"  # ms since epoch of the last successful claim
    RESERVATION = "reservation"  # opaque marker, expiry enforced by store TTL


@dataclass
class ClaimRecord:
    """A decoded value from the rate-limit store."""

    form: RecordForm
    claimed_at_ms: int | None = None  # only for TIMESTAMP form

    @classmethod
    def parse(cls, raw: str, marker: str) -> ClaimRecord:
        """Decode a stored value.

        Anything that is not a parseable timestamp is treated as a
        reservation, so an unrecognized value never reads as eligible.
        """
        if raw == marker:
            return cls(form=RecordForm.RESERVATION)
        try:
            ts = int(str(raw).strip().strip('"'))
        except ValueError:
            return cls(form=RecordForm.RESERVATION)
        if ts <= 0:
            return cls(form=RecordForm.RESERVATION)
        return cls(form=RecordForm.TIMESTAMP, claimed_at_ms=ts)


@dataclass
class EligibilityResult:
    """Answer to "may this address claim now on this network?"."""

    eligible: bool
    retry_after_ms: int | None = None  # None when not computable
    next_claim_at_ms: int | None = None

    def to_dict(self) -> dict:
        d: dict = {
            "canClaim": self.eligible,
            "isRateLimited": not self.eligible,
        }
        if self.retry_after_ms is not None:
            d["remainingTime"] = self.retry_after_ms
        if self.next_claim_at_ms is not None:
            d["nextClaimTime"] = self.next_claim_at_ms
        return d


@dataclass
class DispatchResult:
    """Result of a funding transfer. Never persisted."""

    success: bool
    network_id: str
    to_address: str
    tx_hash: str | None = None
    block_number: int | None = None
    error: str | None = None  # cause, for logs only
    timed_out: bool = False  # tx_hash set means it was broadcast and may still land


@dataclass
class ClaimOutcome:
    """Successful claim returned to the caller."""

    tx_hash: str
    network_id: str
    address: str
    amount: str  # native units, after clamping
    amount_base_units: int

    def to_dict(self) -> dict:
        return {
            "message": "Transaction successful!",
            "txHash": self.tx_hash,
            "networkId": self.network_id,
            "address": self.address,
            "amount": self.amount,
        }


@dataclass
class ScoreResult:
    """Passport score lookup."""

    address: str
    score: float
    threshold: float

    @property
    def passing(self) -> bool:
        return self.score >= self.threshold

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "score": self.score,
            "passing_score": self.passing,
        }
