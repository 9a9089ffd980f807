"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from testnet_faucet.errors import ConfigurationError
from testnet_faucet.models.config import (
    FaucetConfig,
    NetworkDescriptor,
    PassportConfig,
    StoreConfig,
)

# Variable names used by the original serverless deployment
LEGACY_ENV = {
    "store_url": "UPSTASH_REDIS_REST_URL",
    "store_token": "UPSTASH_REDIS_REST_TOKEN",
    "passport_url": "GITCOIN_PASSPORT_API_URL",
    "passport_key": "GITCOIN_PASSPORT_API_KEY",
}


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "FAUCET_",
) -> FaucetConfig:
    """Load faucet configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (FAUCET_PRIVATE_KEY, UPSTASH_REDIS_REST_URL, ...)
        2. TOML config file
        3. Defaults from FaucetConfig

    Does not validate; call FaucetConfig.validate() before serving.
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = FaucetConfig()

    # ── Faucet section ─────────────────────────────────────
    faucet = raw.get("faucet", {})
    if v := faucet.get("cooldown_hours"):
        cfg.cooldown_hours = float(v)
    if v := faucet.get("faucet_amount"):
        cfg.faucet_amount = str(v)
    if v := faucet.get("key_prefix"):
        cfg.key_prefix = str(v)
    if v := faucet.get("reservation_marker"):
        cfg.reservation_marker = str(v)
    if (v := faucet.get("rollback_retries")) is not None:
        cfg.rollback_retries = int(v)
    if (v := faucet.get("rollback_backoff")) is not None:
        cfg.rollback_backoff = float(v)
    if v := faucet.get("log_level"):
        cfg.log_level = str(v)

    # ── Store section ──────────────────────────────────────
    store = raw.get("store", {})
    cfg.store = StoreConfig(
        url=str(store.get("url", "")),
        token=str(store.get("token", "")),
        timeout=float(store.get("timeout", 5.0)),
    )

    # ── Chain section ──────────────────────────────────────
    chain = raw.get("chain", {})
    if v := chain.get("private_key"):
        cfg.private_key = str(v)
    if v := chain.get("dispatch_timeout"):
        cfg.dispatch_timeout = float(v)
    if v := chain.get("confirmation_timeout"):
        cfg.confirmation_timeout = float(v)

    # ── Passport section ───────────────────────────────────
    passport = raw.get("passport", {})
    cfg.passport = PassportConfig(
        enabled=passport.get("enabled", False),
        api_url=str(passport.get("api_url", "")),
        api_key=str(passport.get("api_key", "")),
        threshold=float(passport.get("threshold", 10.0)),
        timeout=float(passport.get("timeout", 10.0)),
    )

    # ── Networks (replace the defaults when present) ───────
    if networks := raw.get("networks"):
        cfg.networks = tuple(_parse_network(n) for n in networks)

    # ── Environment variable overrides (highest priority) ──
    if url := os.environ.get(f"{env_prefix}STORE_URL") or os.environ.get(LEGACY_ENV["store_url"]):
        cfg.store.url = url
    if token := os.environ.get(f"{env_prefix}STORE_TOKEN") or os.environ.get(LEGACY_ENV["store_token"]):
        cfg.store.token = token
    if key := os.environ.get(f"{env_prefix}PRIVATE_KEY"):
        cfg.private_key = key
    if hours := os.environ.get(f"{env_prefix}COOLDOWN_HOURS"):
        cfg.cooldown_hours = float(hours)
    if amount := os.environ.get(f"{env_prefix}AMOUNT"):
        cfg.faucet_amount = amount
    if api_url := os.environ.get(LEGACY_ENV["passport_url"]):
        cfg.passport.api_url = api_url
    if api_key := os.environ.get(LEGACY_ENV["passport_key"]):
        cfg.passport.api_key = api_key

    return cfg


def _parse_network(entry: dict) -> NetworkDescriptor:
    """Build a NetworkDescriptor from a [[networks]] table."""
    try:
        return NetworkDescriptor(
            id=str(entry["id"]),
            chain_id=int(entry["chain_id"]),
            rpc_url=str(entry["rpc_url"]),
            decimals=int(entry.get("decimals", 18)),
            symbol=str(entry.get("symbol", "ETH")),
            faucet_amount=str(entry["faucet_amount"]) if "faucet_amount" in entry else None,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"invalid [[networks]] entry {entry.get('id', '?')!r}: {exc}"
        ) from exc
