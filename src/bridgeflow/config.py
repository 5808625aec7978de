"""Application configuration using pydantic-settings.

All values can be overridden with environment variables (or a local
``.env`` file), e.g. ``RELAY_BASE_URL`` or ``RECEIPT_MAX_ATTEMPTS``.
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
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")

    # ======================
    # Aggregators
    # ======================
    relay_base_url: str = Field(
        default="https://api.relay.link", description="Relay API base URL"
    )
    relay_api_key: str = Field(default="", description="Relay API key (optional)")
    relay_app_fee_recipient: Optional[str] = Field(
        default=None, description="Recipient of the Relay app fee"
    )
    relay_app_fee_bps: Optional[int] = Field(
        default=None, description="Relay app fee in basis points"
    )

    lifi_base_url: str = Field(default="https://li.quest/v1", description="LI.FI API base URL")
    lifi_api_key: str = Field(default="", description="LI.FI API key (optional)")
    lifi_fee: Optional[float] = Field(
        default=None, description="LI.FI integrator fee as a fraction (0.005 = 0.5%)"
    )
    lifi_order: str = Field(default="RECOMMENDED", description="LI.FI route ordering")

    integrator: str = Field(default="bridgeflow", description="Integrator identifier sent to providers")
    http_timeout: float = Field(default=30.0, description="Provider HTTP timeout in seconds")

    # ======================
    # Execution
    # ======================
    default_slippage_bps: int = Field(default=300, description="Default slippage (300 = 3%)")
    poll_interval: float = Field(default=5.0, description="Seconds between polling attempts")
    receipt_max_attempts: int = Field(default=60, description="Receipt polling attempts")
    relay_receipt_max_attempts: int = Field(
        default=15, description="Receipt polling attempts for Relay routes"
    )
    relay_status_max_attempts: int = Field(
        default=30, description="Relay execution status polling attempts"
    )
    lifi_status_max_attempts: int = Field(
        default=120, description="LI.FI transfer status polling attempts"
    )
    receipt_timeout_assume_success: bool = Field(
        default=False,
        description="Treat a transaction as confirmed when receipt polling is exhausted",
    )
    gas_price_multiplier_pct: int = Field(default=120, description="Gas price multiplier in percent")
    gas_limit_multiplier_pct: int = Field(default=110, description="Gas limit multiplier in percent")

    # ======================
    # Retry
    # ======================
    retry_max_attempts: int = Field(default=3, description="Attempts for quote/status calls")
    retry_base_delay: float = Field(default=2.0, description="Linear backoff step in seconds")

    # ======================
    # Batch jobs
    # ======================
    operation_delay_ms: int = Field(
        default=108, description="Pause between asset operations of one wallet"
    )
    min_value_usd: float = Field(default=1.0, description="Skip balances worth less than this")

    # ======================
    # Chain RPC Endpoints
    # ======================
    rpc_urls: dict[int, str] = Field(
        default_factory=dict, description="Chain id -> RPC URL overrides (JSON)"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_rpc_url(self, chain_id: int) -> str:
        """Get the configured RPC URL override for a chain (empty if none)."""
        return self.rpc_urls.get(chain_id, "")

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "relay": {
                "base_url": self.relay_base_url,
                "api_key": "***" if self.relay_api_key else "(not set)",
                "app_fee_bps": self.relay_app_fee_bps,
            },
            "lifi": {
                "base_url": self.lifi_base_url,
                "api_key": "***" if self.lifi_api_key else "(not set)",
                "fee": self.lifi_fee,
                "order": self.lifi_order,
            },
            "integrator": self.integrator,
            "execution": {
                "poll_interval": self.poll_interval,
                "receipt_max_attempts": self.receipt_max_attempts,
                "receipt_timeout_assume_success": self.receipt_timeout_assume_success,
                "gas_price_multiplier_pct": self.gas_price_multiplier_pct,
                "gas_limit_multiplier_pct": self.gas_limit_multiplier_pct,
            },
            "rpc_overrides": sorted(self.rpc_urls),
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
