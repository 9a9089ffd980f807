"""Data models for the testnet faucet."""

from testnet_faucet.models.config import (
    DEFAULT_NETWORKS,
    FaucetConfig,
    NetworkDescriptor,
    PassportConfig,
    StoreConfig,
)
from testnet_faucet.models.records import (
    ClaimOutcome,
    ClaimRecord,
    DispatchResult,
    EligibilityResult,
    RecordForm,
    ScoreResult,
)

__all__ = [
    "DEFAULT_NETWORKS", "FaucetConfig", "NetworkDescriptor",
    "PassportConfig", "StoreConfig",
    "ClaimOutcome", "ClaimRecord", "DispatchResult", "EligibilityResult",
    "RecordForm", "ScoreResult",
]
