"""Application configuration using pydantic-settings.

A single BIP39 seed phrase drives deposit address derivation on every
supported chain family (EVM, UTXO, Cosmos-SDK, Solana).
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/sendswap.db",
        description="Database connection URL",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=3004, description="API server port")
    allowed_origins: str = Field(
        default="http://localhost:3000", description="Comma-separated CORS origins"
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")
    dry_run: bool = Field(
        default=True, description="Use simulated scanners and never broadcast transactions"
    )

    # ======================
    # HD Wallet
    # ======================
    wallet_seed_phrase: Optional[str] = Field(
        default=None, description="BIP39 mnemonic used to derive deposit addresses"
    )
    wallet_passphrase: str = Field(default="", description="Optional BIP39 passphrase")

    # ======================
    # Quote lifecycle
    # ======================
    quote_ttl_minutes: int = Field(
        default=15, description="Minutes a quote accepts deposits after creation"
    )

    # ======================
    # Deposit monitor
    # ======================
    monitor_enabled: bool = Field(default=True, description="Run the deposit monitor task")
    monitor_interval_seconds: int = Field(default=30, description="Seconds between monitor ticks")
    monitor_concurrency: int = Field(
        default=10, description="Maximum concurrent per-quote checks in a tick"
    )
    external_call_timeout: float = Field(
        default=15.0, description="Timeout in seconds for every external HTTP call"
    )
    deposit_tolerance_bps: int = Field(
        default=10, description="Accepted shortfall below the expected deposit (basis points)"
    )

    # ======================
    # Chain data (Unchained API)
    # ======================
    unchained_ethereum_url: str = Field(default="", description="Unchained Ethereum API URL")
    unchained_avalanche_url: str = Field(default="", description="Unchained Avalanche API URL")
    unchained_bnbsmartchain_url: str = Field(default="", description="Unchained BSC API URL")
    unchained_polygon_url: str = Field(default="", description="Unchained Polygon API URL")
    unchained_optimism_url: str = Field(default="", description="Unchained Optimism API URL")
    unchained_arbitrum_url: str = Field(default="", description="Unchained Arbitrum API URL")
    unchained_base_url: str = Field(default="", description="Unchained Base API URL")
    unchained_gnosis_url: str = Field(default="", description="Unchained Gnosis API URL")
    unchained_bitcoin_url: str = Field(default="", description="Unchained Bitcoin API URL")
    unchained_litecoin_url: str = Field(default="", description="Unchained Litecoin API URL")
    unchained_dogecoin_url: str = Field(default="", description="Unchained Dogecoin API URL")
    unchained_bitcoincash_url: str = Field(default="", description="Unchained Bitcoin Cash API URL")
    unchained_cosmos_url: str = Field(default="", description="Unchained Cosmos Hub API URL")
    unchained_osmosis_url: str = Field(default="", description="Unchained Osmosis API URL")
    solana_rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com", description="Solana RPC URL"
    )

    # ======================
    # EVM RPC (service wallet broadcasts)
    # ======================
    eth_rpc_url: str = Field(default="https://eth.llamarpc.com", description="Ethereum RPC URL")
    avax_rpc_url: str = Field(
        default="https://api.avax.network/ext/bc/C/rpc", description="Avalanche RPC URL"
    )
    bsc_rpc_url: str = Field(default="https://bsc-dataseed.binance.org", description="BSC RPC URL")
    polygon_rpc_url: str = Field(default="https://polygon-rpc.com", description="Polygon RPC URL")
    arbitrum_rpc_url: str = Field(default="https://arb1.arbitrum.io/rpc", description="Arbitrum RPC URL")
    base_rpc_url: str = Field(default="https://mainnet.base.org", description="Base RPC URL")

    # ======================
    # Swap providers
    # ======================
    chainflip_api_url: str = Field(default="", description="Chainflip status API URL")
    near_intents_api_url: str = Field(default="", description="NEAR Intents 1Click API URL")
    near_intents_api_key: str = Field(default="", description="NEAR Intents JWT")
    thornode_url: str = Field(
        default="https://thornode.ninerealms.com", description="THORNode API URL"
    )
    mayanode_url: str = Field(
        default="https://mayanode.mayachain.info", description="MAYANode API URL"
    )

    # ======================
    # Notifications
    # ======================
    telegram_bot_token: str = Field(default="", description="Telegram bot token for operator alerts")
    telegram_notify_chat_id: Optional[int] = Field(
        default=None, description="Telegram chat receiving quote status changes"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def has_wallet(self) -> bool:
        """Check if wallet seed phrase is configured."""
        return bool(self.wallet_seed_phrase and len(self.wallet_seed_phrase.split()) >= 12)

    @property
    def origins(self) -> list[str]:
        """Parse allowed CORS origins."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    def get_unchained_url(self, chain: str) -> str:
        """Get Unchained API URL for a chain symbol."""
        url_map = {
            "ETH": self.unchained_ethereum_url,
            "AVAX": self.unchained_avalanche_url,
            "BSC": self.unchained_bnbsmartchain_url,
            "POLYGON": self.unchained_polygon_url,
            "OPTIMISM": self.unchained_optimism_url,
            "ARBITRUM": self.unchained_arbitrum_url,
            "BASE": self.unchained_base_url,
            "GNOSIS": self.unchained_gnosis_url,
            "BTC": self.unchained_bitcoin_url,
            "LTC": self.unchained_litecoin_url,
            "DOGE": self.unchained_dogecoin_url,
            "BCH": self.unchained_bitcoincash_url,
            "ATOM": self.unchained_cosmos_url,
            "OSMO": self.unchained_osmosis_url,
        }
        return url_map.get(chain.upper(), "")

    def get_rpc_url(self, chain: str) -> str:
        """Get JSON-RPC URL for an EVM chain symbol."""
        rpc_map = {
            "ETH": self.eth_rpc_url,
            "AVAX": self.avax_rpc_url,
            "BSC": self.bsc_rpc_url,
            "POLYGON": self.polygon_rpc_url,
            "ARBITRUM": self.arbitrum_rpc_url,
            "BASE": self.base_rpc_url,
        }
        return rpc_map.get(chain.upper(), "")

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "database_url": self._redact_url(self.database_url),
            "wallet_configured": self.has_wallet,
            "quote_ttl_minutes": self.quote_ttl_minutes,
            "monitor": {
                "enabled": self.monitor_enabled,
                "interval_seconds": self.monitor_interval_seconds,
                "concurrency": self.monitor_concurrency,
                "external_call_timeout": self.external_call_timeout,
                "deposit_tolerance_bps": self.deposit_tolerance_bps,
            },
            "providers": {
                "chainflip": self.chainflip_api_url or "(not set)",
                "near_intents": self.near_intents_api_url or "(not set)",
                "near_intents_api_key": "***" if self.near_intents_api_key else "(not set)",
                "thornode": self.thornode_url,
                "mayanode": self.mayanode_url,
            },
            "telegram_bot_token": "***" if self.telegram_bot_token else "(not set)",
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
