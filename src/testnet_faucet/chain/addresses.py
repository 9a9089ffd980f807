"""EVM address validation and normalization."""

from __future__ import annotations

import re

from web3 import Web3

from testnet_faucet.errors import InvalidInput

_HEX_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")


def validate_address(address: str) -> None:
    """Reject anything that is not a 0x-prefixed 20-byte hex address.

    Mixed-case input must carry a valid EIP-55 checksum; all-lowercase and
    all-uppercase input is accepted as-is.
    """
    if not _HEX_ADDRESS_RE.fullmatch(address or ""):
        raise InvalidInput(f"Invalid address: {address!r}")
    digits = address[2:]
    mixed_case = digits != digits.lower() and digits != digits.upper()
    if mixed_case and not Web3.is_checksum_address(address):
        raise InvalidInput(f"Invalid address checksum: {address!r}")


def normalize_address(address: str) -> str:
    """Case-fold an address for key derivation."""
    return address.strip().lower()


def short(value: str | None, n: int = 10) -> str:
    """Truncate an address or hash for log lines."""
    if not value:
        return "?"
    return value[:n]
