"""Configuration models for the faucet."""

from __future__ import annotations

from dataclasses import dataclass, field

from testnet_faucet.errors import ConfigurationError, InvalidInput


@dataclass(frozen=True)
class NetworkDescriptor:
    """A supported network. Immutable once loaded."""

    id: str  # e.g. "base-sepolia"
    chain_id: int
    rpc_url: str
    decimals: int = 18
    symbol: str = "ETH"
    faucet_amount: str | None = None  # overrides FaucetConfig.faucet_amount


DEFAULT_NETWORKS: tuple[NetworkDescriptor, ...] = (
    NetworkDescriptor("base-sepolia", 84532, "https://sepolia.base.org"),
    NetworkDescriptor("optimism-sepolia", 11155420, "https://sepolia.optimism.io"),
    NetworkDescriptor("arbitrum-sepolia", 421614, "https://sepolia-rollup.arbitrum.io/rpc"),
    NetworkDescriptor("scroll-sepolia", 534351, "https://sepolia-rpc.scroll.io"),
    NetworkDescriptor("mode-sepolia", 919, "https://sepolia.mode.network"),
    NetworkDescriptor("zora-sepolia", 999999999, "https://sepolia.rpc.zora.energy"),
    NetworkDescriptor("unichain-sepolia", 1301, "https://sepolia.unichain.org"),
    NetworkDescriptor("blast-sepolia", 168587773, "https://sepolia.blast.io"),
    NetworkDescriptor("frax-sepolia", 2522, "https://rpc.testnet.frax.com", symbol="frxETH"),
    NetworkDescriptor("cyber-sepolia", 111557560, "https://cyber-testnet.alt.technology"),
)


@dataclass
class StoreConfig:
    """Upstash Redis REST endpoint used as the rate-limit store."""

    url: str = ""
    token: str = ""  # loaded from env var UPSTASH_REDIS_REST_TOKEN
    timeout: float = 5.0  # seconds per call


@dataclass
class PassportConfig:
    """Optional Gitcoin Passport score gate."""

    enabled: bool = False
    api_url: str = ""
    api_key: str = ""
    threshold: float = 10.0
    timeout: float = 10.0


@dataclass
class FaucetConfig:
    """Complete faucet configuration."""

    # Faucet
    cooldown_hours: float = 24.0
    faucet_amount: str = "0.01"  # native units, per claim
    key_prefix: str = "faucet"
    reservation_marker: str = "1"
    rollback_retries: int = 3
    rollback_backoff: float = 0.5  # seconds, doubled per attempt
    log_level: str = "info"

    # Chain
    private_key: str = ""  # loaded from env var FAUCET_PRIVATE_KEY
    dispatch_timeout: float = 180.0  # seconds, covers submit + confirmation
    confirmation_timeout: float = 120.0

    store: StoreConfig = field(default_factory=StoreConfig)
    passport: PassportConfig = field(default_factory=PassportConfig)
    networks: tuple[NetworkDescriptor, ...] = DEFAULT_NETWORKS

    @property
    def cooldown_ms(self) -> int:
        return int(self.cooldown_hours * 60 * 60 * 1000)

    def validate(self) -> None:
        """Raise ConfigurationError if the faucet cannot serve requests."""
        missing = []
        if not self.store.url:
            missing.append("store url (UPSTASH_REDIS_REST_URL)")
        if not self.store.token:
            missing.append("store token (UPSTASH_REDIS_REST_TOKEN)")
        if not self.private_key:
            missing.append("faucet private key (FAUCET_PRIVATE_KEY)")
        if self.passport.enabled:
            if not self.passport.api_url:
                missing.append("passport api url (GITCOIN_PASSPORT_API_URL)")
            if not self.passport.api_key:
                missing.append("passport api key (GITCOIN_PASSPORT_API_KEY)")
        if missing:
            raise ConfigurationError("missing " + ", ".join(missing))
        if self.cooldown_ms <= 0:
            raise ConfigurationError("cooldown_hours must be positive")
        if not self.networks:
            raise ConfigurationError("no networks configured")
        ids = [n.id for n in self.networks]
        if len(set(ids)) != len(ids):
            raise ConfigurationError("duplicate network ids in configuration")

        from testnet_faucet.chain.amounts import to_base_units  # chain imports models

        for n in self.networks:
            amount = n.faucet_amount or self.faucet_amount
            try:
                to_base_units(amount, n.decimals)
            except InvalidInput as exc:
                raise ConfigurationError(
                    f"faucet_amount {amount!r} for network {n.id!r}: {exc.message}"
                ) from exc
