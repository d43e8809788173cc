"""Trading context: settings plus the shared resources built from them."""

import logging
from typing import Optional

import httpx

from venueswap.auth import WalletAuth
from venueswap.chain import ChainClient
from venueswap.config import Settings, get_settings
from venueswap.exceptions import ConfigurationError
from venueswap.models import Network
from venueswap.remote_config import RemoteConfigFetcher

logger = logging.getLogger(__name__)


class TradingContext:
    """Owns the HTTP client, remote configuration and chain clients.

    Usage:
        async with await TradingContext.create() as context:
            orchestrator = TradeOrchestrator.from_context(context)
    """

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        remote_config: RemoteConfigFetcher,
    ):
        self.settings = settings
        self.client = client
        self.remote_config = remote_config
        self._chains: dict[Network, ChainClient] = {}
        self._auth: Optional[WalletAuth] = None

    @classmethod
    async def create(
        cls,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "TradingContext":
        """Build the context and load remote configuration."""
        settings = settings or get_settings()
        client = client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        remote_config = RemoteConfigFetcher(
            settings.remote_config_url,
            client=client,
            refresh_interval=settings.remote_config_refresh_seconds,
        )
        context = cls(settings, client, remote_config)
        try:
            await remote_config.initialize()
        except Exception:
            await context.close()
            raise
        logger.info(
            f"Trading context ready ({settings.environment}, {settings.network.slug}, "
            f"remote config {remote_config.version})"
        )
        return context

    @property
    def private_key(self) -> str:
        if not self.settings.private_key:
            raise ConfigurationError("VENUESWAP_PRIVATE_KEY is not set")
        return self.settings.private_key

    def api_options(self) -> dict:
        """Keyword arguments shared by every BaseAPIClient."""
        return {
            "client": self.client,
            "max_attempts": self.settings.max_retries,
            "initial_delay": self.settings.retry_initial_delay,
            "max_delay": self.settings.retry_max_delay,
        }

    def chain(self, network: Optional[Network] = None) -> ChainClient:
        """Chain client for a network (defaults to the configured one)."""
        network = network or self.settings.network
        if network not in self._chains:
            rpc_url = self.settings.get_rpc_url() if network == self.settings.network else None
            self._chains[network] = ChainClient(
                self.private_key,
                network,
                rpc_url=rpc_url,
                tx_timeout=self.settings.tx_timeout_seconds,
            )
        return self._chains[network]

    @property
    def auth(self) -> WalletAuth:
        if self._auth is None:
            self._auth = WalletAuth(
                self.settings.auth_api_url,
                signing_timeout=self.settings.signing_timeout_seconds,
                **self.api_options(),
            )
        return self._auth

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "TradingContext":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
