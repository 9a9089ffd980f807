"""Gitcoin Passport scorer - optional reputation gate for claims."""

from __future__ import annotations

import logging

import httpx

from testnet_faucet.chain.addresses import short
from testnet_faucet.errors import EligibilityUnavailable
from testnet_faucet.models.records import ScoreResult

log = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 10.0


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return "Unknown error"
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return "Unknown error"


class PassportScorer:
    """Looks up an address score via GET {api_url}/score/{address}."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        threshold: float = DEFAULT_THRESHOLD,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = api_url.rstrip("/")
        self._threshold = threshold
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
            headers={
                "X-API-Key": api_key,
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    @property
    def threshold(self) -> float:
        return self._threshold

    async def close(self) -> None:
        await self._client.aclose()

    async def score(self, address: str) -> ScoreResult:
        url = f"{self._base_url}/score/{address}"
        try:
            resp = await self._client.get(url)
        except httpx.HTTPError as exc:
            log.error("Passport lookup for %s failed: %s", short(address), exc)
            raise EligibilityUnavailable() from exc

        if resp.status_code >= 400:
            log.error(
                "Passport API error for %s (HTTP %d): %s",
                short(address), resp.status_code, _error_detail(resp),
            )
            raise EligibilityUnavailable()

        try:
            score = float(resp.json().get("score") or 0)
        except (ValueError, TypeError, AttributeError) as exc:
            log.error("Passport API returned an unreadable score for %s", short(address))
            raise EligibilityUnavailable() from exc

        log.debug("Passport score for %s: %s", short(address), score)
        return ScoreResult(address=address, score=score, threshold=self._threshold)
