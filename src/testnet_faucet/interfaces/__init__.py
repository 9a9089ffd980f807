"""Protocol interfaces for the faucet's external collaborators."""

from testnet_faucet.interfaces.dispatcher import TransactionDispatcher
from testnet_faucet.interfaces.scorer import EligibilityScorer
from testnet_faucet.interfaces.store import RateLimitStore

__all__ = [
    "RateLimitStore",
    "TransactionDispatcher",
    "EligibilityScorer",
]
