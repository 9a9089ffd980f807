"""Conversion between human-readable decimal amounts and base units."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, localcontext

from testnet_faucet.errors import InvalidInput

_AMOUNT_RE = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)")


def to_base_units(amount: str, decimals: int) -> int:
    """Convert a decimal string such as "0.01" to the smallest integer unit.

    Uses exact decimal arithmetic. Rejects malformed, zero or negative
    amounts and amounts finer than the network's precision.
    """
    text = str(amount).strip()
    if not _AMOUNT_RE.fullmatch(text):
        raise InvalidInput(f"Malformed amount: {amount!r}")

    with localcontext() as ctx:
        ctx.prec = 80
        try:
            value = Decimal(text)
        except InvalidOperation as exc:
            raise InvalidInput(f"Malformed amount: {amount!r}") from exc
        if value < 0:
            raise InvalidInput("Amount must not be negative.")
        if value == 0:
            raise InvalidInput("Amount must be greater than zero.")

        scaled = value.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise InvalidInput(f"Amount has more than {decimals} decimal places.")
        return int(scaled)


def from_base_units(units: int, decimals: int) -> str:
    """Format base units as a plain decimal string ("10000000000000000" -> "0.01")."""
    with localcontext() as ctx:
        ctx.prec = 80
        value = Decimal(units).scaleb(-decimals).normalize()
    return format(value, "f")
