"""Remote configuration fetcher.

The configuration JSON carries the cross-chain access escrow address and
the market maker manager contract address per chain id. It is cached and
refreshed once the refresh interval has elapsed.
"""

import asyncio
import logging
import time
from typing import Optional

import httpx

from venueswap.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class RemoteConfigFetcher:
    """Cached remote configuration with interval refresh."""

    def __init__(
        self,
        url: str,
        client: Optional[httpx.AsyncClient] = None,
        refresh_interval: float = 300.0,
    ):
        self.url = url
        self.refresh_interval = refresh_interval
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=30.0)
        self._cache: Optional[dict] = None
        self._last_fetch: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._cache is not None

    @property
    def version(self) -> str:
        return str((self._cache or {}).get("version", "unknown"))

    async def initialize(self) -> None:
        """Load the configuration, raising if nothing could be fetched."""
        await self.refresh()
        if self._cache is None:
            raise ConfigurationError(f"Failed to load configuration from remote: {self.url}")

    async def refresh(self) -> bool:
        """Fetch the configuration. A failed fetch keeps the previous copy."""
        async with self._lock:
            try:
                response = await self._client.get(
                    self.url, headers={"Accept": "application/json"}
                )
                response.raise_for_status()
                config = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Remote config fetch failed ({self.url}): {e}")
                return False

            if not isinstance(config, dict):
                logger.warning(f"Remote config is not a JSON object: {self.url}")
                return False

            self._cache = config
            self._last_fetch = time.monotonic()
            logger.debug(f"Remote config loaded, version {self.version}")
            return True

    async def _maybe_refresh(self) -> None:
        if self._last_fetch is None or (
            time.monotonic() - self._last_fetch >= self.refresh_interval
        ):
            await self.refresh()

    async def _get(self) -> dict:
        await self._maybe_refresh()
        if self._cache is None:
            raise ConfigurationError("Configuration not loaded")
        return self._cache

    async def get_escrow_address(self) -> str:
        """Cross-chain access escrow (top-up) address."""
        config = await self._get()
        address = (config.get("topup_addresses") or {}).get("cross_chain_access_escrow")
        if not address:
            raise ConfigurationError("Escrow address not found in configuration")
        return address

    async def get_manager_address(self, chain_id: int) -> str:
        """Market maker manager contract address for a chain."""
        config = await self._get()
        address = (config.get("dotc_manager_addresses") or {}).get(str(chain_id))
        if not address or address.lower() == ZERO_ADDRESS:
            raise ConfigurationError(
                f"Market Maker Manager address not found for chain ID {chain_id}"
            )
        return address

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
