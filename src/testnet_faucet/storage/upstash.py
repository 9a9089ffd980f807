"""Upstash Redis REST implementation of the RateLimitStore protocol."""

from __future__ import annotations

import logging

import httpx

from testnet_faucet.errors import StoreUnavailable

log = logging.getLogger(__name__)

# Overwrite KEYS[1] only while it still holds ARGV[1]
_REPLACE_IF_EQUAL = (
    "if redis.call('GET', KEYS[1]) == ARGV[1] then "
    "redis.call('SET', KEYS[1], ARGV[2], 'PX', ARGV[3]) "
    "return 1 "
    "end "
    "return 0"
)


class UpstashRateLimitStore:
    """Talks to an Upstash Redis database over its REST API.

    Each operation is one POST of a Redis command as a JSON array to the
    database's base URL:

    - ["GET", key]
    - ["SET", key, value, "NX", "PX", ttl_ms]  (atomic test-and-set)
    - ["EVAL", script, 1, key, expected, value, ttl_ms]  (compare-and-set)
    - ["DEL", key]
    - ["EXPIRE", key, seconds]

    Upstash answers {"result": ...} on success and {"error": "..."} otherwise.
    """

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _command(self, *args: str | int) -> object:
        command = [str(a) for a in args]
        try:
            resp = await self._client.post(self._base_url, json=command)
        except httpx.HTTPError as exc:
            log.error("Upstash %s failed: %s", command[0], exc)
            raise StoreUnavailable() from exc

        try:
            body = resp.json()
        except ValueError as exc:
            log.error(
                "Upstash %s returned non-JSON body (HTTP %d)",
                command[0], resp.status_code,
            )
            raise StoreUnavailable() from exc

        if not isinstance(body, dict):
            log.error(
                "Upstash %s returned an unexpected body (HTTP %d)",
                command[0], resp.status_code,
            )
            raise StoreUnavailable()

        if resp.status_code >= 400 or "error" in body:
            log.error(
                "Upstash %s error (HTTP %d): %s",
                command[0], resp.status_code, body.get("error", "unknown"),
            )
            raise StoreUnavailable()

        return body.get("result")

    async def get(self, key: str) -> str | None:
        result = await self._command("GET", key)
        if result is None:
            return None
        return str(result)

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        result = await self._command("SET", key, value, "NX", "PX", ttl_ms)
        return result == "OK"

    async def replace_if_equal(
        self, key: str, expected: str, value: str, ttl_ms: int
    ) -> bool:
        result = await self._command(
            "EVAL", _REPLACE_IF_EQUAL, 1, key, expected, value, ttl_ms,
        )
        return result == 1

    async def delete(self, key: str) -> None:
        await self._command("DEL", key)

    async def expire(self, key: str, ttl_seconds: int) -> None:
        await self._command("EXPIRE", key, ttl_seconds)
