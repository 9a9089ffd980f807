"""RateLimitStore protocol - shared key/value store holding claim records."""

from __future__ import annotations

from typing import Protocol


class RateLimitStore(Protocol):
    """Remote key/value store. The only synchronization point between
    faucet instances.

    Every method raises StoreUnavailable on transport failure, timeout or a
    store-side error. A failed call must never be read as "key absent".
    """

    async def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""
        ...

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        """Atomically set key with a TTL only if it does not exist.

        Returns True if this call created the key, False if it already existed.
        """
        ...

    async def replace_if_equal(
        self, key: str, expected: str, value: str, ttl_ms: int
    ) -> bool:
        """Atomically overwrite key with value and a TTL if it holds expected.

        Returns True if the value was replaced. Used to take over a legacy
        timestamp record whose window has passed.
        """
        ...

    async def delete(self, key: str) -> None:
        ...

    async def expire(self, key: str, ttl_seconds: int) -> None:
        """Set a TTL on an existing key. Legacy timestamp records written
        without one are bounded this way when a claim hits them."""
        ...

    async def close(self) -> None:
        ...
