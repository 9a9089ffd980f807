"""EVM chain integration."""

from testnet_faucet.chain.addresses import normalize_address, validate_address
from testnet_faucet.chain.amounts import from_base_units, to_base_units
from testnet_faucet.chain.evm import EvmDispatcher

__all__ = [
    "EvmDispatcher",
    "normalize_address", "validate_address",
    "from_base_units", "to_base_units",
]
