"""Rate-limited testnet faucet claim coordinator."""

__version__ = "0.1.0"
