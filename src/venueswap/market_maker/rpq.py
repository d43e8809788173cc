"""RPQ service client: offer listing, best offers, quotes and price feeds.

Request parameter naming follows the taker's perspective:
``buyAssetAddress`` is what the taker receives (the offer's deposit asset),
``sellAssetAddress`` is what the taker pays (the offer's withdrawal asset).
"""

import logging
from decimal import Decimal
from typing import Optional

import httpx

from venueswap.exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    NoOffersAvailableError,
    PriceFeedNotFoundError,
    QuoteUnavailableError,
    ValidationError,
)
from venueswap.http import BaseAPIClient
from venueswap.market_maker.models import BestOffersResult, Offer
from venueswap.models import Network, Quote, Venue

logger = logging.getLogger(__name__)


def _format_amount(amount: Optional[Decimal]) -> Optional[str]:
    return format(amount, "f") if amount is not None else None


def _check_target(sell_amount: Optional[Decimal], buy_amount: Optional[Decimal]) -> None:
    if sell_amount is not None and buy_amount is not None:
        raise ValidationError("Specify either target sell amount or target buy amount, not both")
    if sell_amount is None and buy_amount is None:
        raise ValidationError("Must specify either target sell amount or target buy amount")


class RPQClient(BaseAPIClient):
    """Client for the market maker RPQ service."""

    def __init__(
        self,
        base_url: str,
        network: Network,
        api_key: str = "",
        client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        super().__init__(base_url, client=client, **kwargs)
        self.network = network
        self.api_key = api_key
        if api_key:
            self.headers["X-API-Key"] = api_key

    def _require_api_key(self, operation: str) -> None:
        if not self.api_key:
            raise ConfigurationError(f"RPQ API key is required for {operation}")

    async def _get(self, endpoint: str, params: dict, operation: str) -> dict:
        try:
            return await self._request("GET", endpoint, params=params)
        except APIError as e:
            if e.status_code == 401:
                raise AuthenticationError("Invalid or missing RPQ API key", error=e) from e
            if e.status_code == 400:
                raise QuoteUnavailableError(f"{operation} rejected: {e}") from e
            raise

    async def get_offers(
        self,
        buy_asset: Optional[str] = None,
        sell_asset: Optional[str] = None,
        page: int = 0,
        limit: int = 100,
    ) -> list[Offer]:
        """List offers on the network, optionally filtered by pair."""
        self._require_api_key("get_offers")
        response = await self._get(
            "/dotc_offers",
            {
                "network": self.network.slug,
                "page": page,
                "limit": limit,
                "buyAssetAddress": buy_asset,
                "sellAssetAddress": sell_asset,
            },
            "Offer listing",
        )

        offers = [Offer.from_dict(o) for o in response.get("offers") or []]
        if not offers:
            raise NoOffersAvailableError(
                f"No offers available for the given parameters on network {self.network.slug}"
            )
        logger.info(f"Retrieved {len(offers)} offers on {self.network.slug}")
        return offers

    async def get_best_offers(
        self,
        buy_asset: str,
        sell_asset: str,
        target_sell_amount: Optional[Decimal] = None,
        target_buy_amount: Optional[Decimal] = None,
    ) -> BestOffersResult:
        """Best combination of offers covering a target amount."""
        _check_target(target_sell_amount, target_buy_amount)
        response = await self._get(
            "/dotc_offers/best",
            {
                "network": self.network.slug,
                "buyAssetAddress": buy_asset,
                "sellAssetAddress": sell_asset,
                "targetSellAmount": _format_amount(target_sell_amount),
                "targetBuyAmount": _format_amount(target_buy_amount),
            },
            "Best offers request",
        )

        data = response.get("result")
        if not data:
            raise NoOffersAvailableError(f"No offers available for {sell_asset} -> {buy_asset}")

        result = BestOffersResult.from_dict(data)
        logger.info(
            f"Best offers for {sell_asset} -> {buy_asset}: "
            f"{result.total_withdrawal_amount_paid}/{result.target_amount} "
            f"({len(result.selected_offers)} offers)"
        )
        return result

    async def get_quote(
        self,
        buy_asset: str,
        sell_asset: str,
        target_sell_amount: Optional[Decimal] = None,
        target_buy_amount: Optional[Decimal] = None,
    ) -> Quote:
        """
        Quote a trade across the available offers.

        Raises:
            QuoteUnavailableError: request rejected or no priced amounts returned
        """
        self._require_api_key("get_quote")
        _check_target(target_sell_amount, target_buy_amount)
        response = await self._get(
            "/dotc_offers/quote",
            {
                "network": self.network.slug,
                "buyAssetAddress": buy_asset,
                "sellAssetAddress": sell_asset,
                "targetSellAmount": _format_amount(target_sell_amount),
                "targetBuyAmount": _format_amount(target_buy_amount),
            },
            "Quote request",
        )

        sell_amount = Decimal(str(response.get("sellAmount") or "0"))
        buy_amount = Decimal(str(response.get("buyAmount") or "0"))
        if sell_amount <= 0 or buy_amount <= 0:
            raise QuoteUnavailableError(
                f"Quote unavailable for {sell_asset} -> {buy_asset}: no priced amounts"
            )

        return Quote(
            sell_asset=response.get("sellAssetAddress") or sell_asset,
            buy_asset=response.get("buyAssetAddress") or buy_asset,
            sell_amount=sell_amount,
            buy_amount=buy_amount,
            venue=Venue.MARKET_MAKER,
        )

    async def get_price_feeds(self) -> dict[str, str]:
        """Token contract address -> price feed address, for dynamic offers."""
        response = await self._get(
            "/all_price_feeds", {"network": self.network.slug}, "Price feed request"
        )
        feeds = response.get("priceFeeds") or {}
        if not feeds:
            raise PriceFeedNotFoundError(f"No price feeds found for network {self.network.slug}")
        logger.info(f"Retrieved {len(feeds)} price feeds for {self.network.slug}")
        return feeds
