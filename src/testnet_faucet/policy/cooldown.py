"""Cooldown policy - claim key derivation and record evaluation."""

from __future__ import annotations

from testnet_faucet.chain.addresses import normalize_address
from testnet_faucet.models.records import ClaimRecord, EligibilityResult, RecordForm


def claim_key(prefix: str, network_id: str, address: str) -> str:
    """Key for one (network, address) cooldown window.

    Addresses differing only in letter case share a key.
    """
    return f"{prefix}:{network_id}:{normalize_address(address)}"


def evaluate_record(
    raw: str | None,
    marker: str,
    now_ms: int,
    window_ms: int,
) -> EligibilityResult:
    """Decide eligibility from the value currently stored under a claim key.

    - absent: eligible
    - timestamp: eligible once now >= timestamp + window
    - reservation: not eligible until the store expires the key; the
      remaining time cannot be derived from the marker, so none is reported
    """
    if raw is None:
        return EligibilityResult(eligible=True)

    record = ClaimRecord.parse(raw, marker)
    if record.form == RecordForm.RESERVATION:
        return EligibilityResult(eligible=False)

    next_claim_at = record.claimed_at_ms + window_ms
    remaining = next_claim_at - now_ms
    if remaining <= 0:
        return EligibilityResult(eligible=True)
    return EligibilityResult(
        eligible=False,
        retry_after_ms=remaining,
        next_claim_at_ms=next_claim_at,
    )
