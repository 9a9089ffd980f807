"""Error kinds surfaced by the claim coordinator.

Validation errors carry a message the caller can act on. Store, scoring and
dispatch errors carry a generic message; the underlying cause is chained via
``raise ... from exc`` and logged, never put in the message.
"""

from __future__ import annotations


class FaucetError(Exception):
    """Base class for all faucet errors."""

    kind = "FaucetError"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class InvalidInput(FaucetError):
    """Missing or malformed address, amount or network id."""

    kind = "InvalidInput"


class UnknownNetwork(FaucetError):
    kind = "UnknownNetwork"

    def __init__(self, network_id: str) -> None:
        super().__init__(f"Unsupported network ID: {network_id}")
        self.network_id = network_id


class RateLimited(FaucetError):
    """The address already claimed on this network within the cooldown."""

    kind = "RateLimited"

    def __init__(self, retry_after_ms: int | None = None) -> None:
        super().__init__("Rate limit exceeded. Please try again later.")
        self.retry_after_ms = retry_after_ms

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.retry_after_ms is not None:
            d["retryAfterMillis"] = self.retry_after_ms
        return d


class StoreUnavailable(FaucetError):
    kind = "StoreUnavailable"
    retryable = True

    def __init__(self, message: str = "Rate limit service unavailable.") -> None:
        super().__init__(message)


class DispatchFailed(FaucetError):
    """The transfer was not confirmed on-chain."""

    kind = "DispatchFailed"

    def __init__(self, rollback_failed: bool = False) -> None:
        super().__init__("Failed to send transaction.")
        self.rollback_failed = rollback_failed


class Ineligible(FaucetError):
    """The address scored below the passport threshold."""

    kind = "Ineligible"

    def __init__(self, score: float, threshold: float) -> None:
        super().__init__(
            f"Passport score {score:g} is below the required {threshold:g}."
        )
        self.score = score
        self.threshold = threshold


class EligibilityUnavailable(FaucetError):
    kind = "EligibilityUnavailable"
    retryable = True

    def __init__(self) -> None:
        super().__init__("Failed to retrieve passport score.")


class ConfigurationError(FaucetError):
    """Missing credentials or endpoints. Fatal at startup."""

    kind = "ConfigurationError"
