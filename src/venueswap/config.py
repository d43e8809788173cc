"""Application configuration using pydantic-settings.

All values can be supplied as environment variables prefixed with
``VENUESWAP_`` or through a local ``.env`` file.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from venueswap.models import Network, RoutingStrategy


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="VENUESWAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="prod", description="Runtime environment (prod or dev)")
    debug: bool = Field(default=False, description="Enable debug logging")

    # ======================
    # Wallet / Network
    # ======================
    network: Network = Field(default=Network.POLYGON, description="Chain to trade on")
    target_network: Optional[Network] = Field(
        default=None,
        description="Chain where cross-chain settlement is received (defaults to network)",
    )
    private_key: Optional[str] = Field(default=None, description="Wallet private key (hex)")
    rpc_url: Optional[str] = Field(default=None, description="Custom RPC URL for the selected network")
    user_email: Optional[str] = Field(default=None, description="Email attached to cross-chain orders")

    # ======================
    # Trading
    # ======================
    rpq_api_key: str = Field(default="", description="API key for the market maker RPQ service")
    routing_strategy: RoutingStrategy = Field(
        default=RoutingStrategy.BEST_PRICE, description="Default venue routing strategy"
    )
    affiliate_address: Optional[str] = Field(
        default=None, description="Affiliate address passed when taking offers"
    )
    cross_chain_max_slippage: Optional[Decimal] = Field(
        default=Decimal("0.01"),
        description="Max deviation of execution price from quoted price (0.01 = 1%, empty = off)",
    )

    # ======================
    # Timeouts / Retries
    # ======================
    tx_timeout_seconds: float = Field(default=300.0, description="On-chain confirmation timeout")
    http_timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")
    max_retries: int = Field(default=3, description="Max HTTP attempts for retryable errors")
    retry_initial_delay: float = Field(default=2.0, description="First retry delay in seconds")
    retry_max_delay: float = Field(default=10.0, description="Upper bound for retry delay")
    signing_timeout_seconds: float = Field(default=60.0, description="Auth message signing timeout")

    # ======================
    # Service endpoints
    # ======================
    cross_chain_api_url_prod: str = Field(
        default="https://stock-trading-api.app.swarm.com/stock-trading",
        description="Cross-chain access API (prod)",
    )
    cross_chain_api_url_dev: str = Field(
        default="https://stock-trading-api.dev.swarm.com/stock-trading",
        description="Cross-chain access API (dev)",
    )
    auth_api_url: str = Field(default="https://api.app.swarm.com", description="Wallet auth API")
    rpq_api_url: str = Field(default="https://rfq.swarm.com/v1/client", description="RPQ service API")
    remote_config_url_prod: str = Field(
        default="https://swarm-sdk-configurations.s3.eu-central-1.amazonaws.com/config.prod.json",
        description="Remote configuration JSON (prod)",
    )
    remote_config_url_dev: str = Field(
        default="https://swarm-sdk-configurations.s3.eu-central-1.amazonaws.com/config.dev.json",
        description="Remote configuration JSON (dev)",
    )
    remote_config_refresh_seconds: float = Field(
        default=300.0, description="Remote configuration refresh interval"
    )

    @field_validator("network", "target_network", mode="before")
    @classmethod
    def parse_network(cls, v):
        """Accept a network slug ("base") or chain id ("8453")."""
        if isinstance(v, str):
            if not v.strip():
                return None
            return Network.from_name(v)
        return v

    @field_validator("cross_chain_max_slippage", mode="before")
    @classmethod
    def parse_slippage(cls, v):
        """Empty string disables the slippage guard."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_dev(self) -> bool:
        """Check if running against development services."""
        return self.environment.lower() == "dev"

    @property
    def cross_chain_api_url(self) -> str:
        return self.cross_chain_api_url_dev if self.is_dev else self.cross_chain_api_url_prod

    @property
    def remote_config_url(self) -> str:
        return self.remote_config_url_dev if self.is_dev else self.remote_config_url_prod

    @property
    def settlement_network(self) -> Network:
        """Network where cross-chain access settlement is received."""
        return self.target_network or self.network

    def get_rpc_url(self) -> str:
        """Get RPC URL for the selected network."""
        return self.rpc_url or self.network.default_rpc_url

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "network": self.network.slug,
            "target_network": self.settlement_network.slug,
            "rpc_url": self.get_rpc_url(),
            "private_key": "***" if self.private_key else "(not set)",
            "rpq_api_key": "***" if self.rpq_api_key else "(not set)",
            "user_email": self.user_email or "(not set)",
            "routing_strategy": self.routing_strategy.value,
            "tx_timeout_seconds": self.tx_timeout_seconds,
            "cross_chain_max_slippage": (
                str(self.cross_chain_max_slippage)
                if self.cross_chain_max_slippage is not None
                else "(off)"
            ),
            "endpoints": {
                "cross_chain": self.cross_chain_api_url,
                "auth": self.auth_api_url,
                "rpq": self.rpq_api_url,
                "remote_config": self.remote_config_url,
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
