"""Tier 2 fixtures: a real Upstash Redis database.

Set UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN to run; the tests
are skipped otherwise. Keys are written under a per-session prefix and
deleted on teardown.
"""

from __future__ import annotations

import os
import uuid

import pytest

from testnet_faucet.storage.upstash import UpstashRateLimitStore


@pytest.fixture(scope="session")
def upstash_credentials():
    url = os.environ.get("UPSTASH_REDIS_REST_URL")
    token = os.environ.get("UPSTASH_REDIS_REST_TOKEN")
    if not url or not token:
        pytest.skip("UPSTASH_REDIS_REST_URL / UPSTASH_REDIS_REST_TOKEN not set")
    return url, token


@pytest.fixture(scope="session")
def key_prefix():
    return f"faucet-test-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def written_keys():
    """Keys a test wrote; deleted after the test."""
    return []


@pytest.fixture
async def live_store(upstash_credentials, written_keys):
    url, token = upstash_credentials
    store = UpstashRateLimitStore(url, token, timeout=10.0)
    yield store
    for key in written_keys:
        await store.delete(key)
    await store.close()
