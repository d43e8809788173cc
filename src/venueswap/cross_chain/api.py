"""Cross-chain access stock trading API client.

Every endpoint except the asset quote requires a bearer token from the
wallet authentication handshake. Payloads use ``data.attributes``
envelopes.
"""

import logging

from venueswap.exceptions import (
    APIError,
    AuthenticationError,
    InvalidSymbolError,
    OrderFailedError,
    QuoteUnavailableError,
)
from venueswap.cross_chain.models import (
    AccountFunds,
    AccountStatus,
    AssetQuote,
    OrderResponse,
    PendingSettlement,
    parse_timestamp,
    to_decimal,
)
from venueswap.http import BaseAPIClient

logger = logging.getLogger(__name__)


class CrossChainAccessAPI(BaseAPIClient):
    """HTTP client for account status, funds, quotes and orders."""

    def _require_token(self, operation: str) -> None:
        if not self.auth_token:
            raise AuthenticationError(f"Authentication token required for {operation}")

    async def get_account_status(self) -> AccountStatus:
        self._require_token("getting account status")
        response = await self._request("GET", "/status")
        return AccountStatus.from_attributes(_attributes(response))

    async def get_account_funds(self) -> AccountFunds:
        self._require_token("getting account funds")
        response = await self._request("GET", "/funds")
        return AccountFunds.from_attributes(_attributes(response))

    async def get_asset_quote(self, symbol: str) -> AssetQuote:
        """
        Real-time bid/ask for a symbol.

        Raises:
            InvalidSymbolError: unknown symbol (404)
            QuoteUnavailableError: any other failure
        """
        try:
            response = await self._request(
                "GET", "/asset-quote", params={"symbol": symbol.upper(), "currency": "usd"}
            )
        except APIError as e:
            if e.status_code == 404:
                raise InvalidSymbolError(f"Invalid trading symbol: {symbol}") from e
            raise QuoteUnavailableError(f"Quote unavailable for {symbol}: {e}") from e

        quote = AssetQuote.from_attributes(_attributes(response))
        logger.info(f"Quote for {symbol.upper()}: bid=${quote.bid}, ask=${quote.ask}")
        return quote

    async def create_order(self, settlement: PendingSettlement) -> OrderResponse:
        """
        Record an order for a confirmed escrow transfer.

        Raises:
            OrderFailedError: the order was not accepted
        """
        self._require_token("creating orders")
        logger.info(
            f"Creating {settlement.side.value} order for {settlement.quantity} "
            f"{settlement.symbol.upper()} at ${settlement.price} (tx: {settlement.tx_hash[:10]}...)"
        )

        try:
            response = await self._request(
                "POST", "/orders", json={"data": {"attributes": settlement.order_attributes()}}
            )
        except APIError as e:
            logger.error(f"Order creation failed for tx {settlement.tx_hash}: {e}")
            raise OrderFailedError(f"Order creation failed: {e}") from e

        data = response.get("data") or {}
        attrs = data.get("attributes") or {}
        filled_at = attrs.get("filled_at")
        order = OrderResponse(
            order_id=str(data.get("id") or "unknown"),
            symbol=attrs.get("symbol") or settlement.symbol.upper(),
            side=attrs.get("side") or settlement.side.value,
            quantity=to_decimal(attrs.get("qty", settlement.quantity)),
            filled_quantity=to_decimal(attrs.get("filled_qty")),
            status=attrs.get("status") or "pending",
            created_at=parse_timestamp(attrs.get("created_at")),
            filled_at=parse_timestamp(filled_at) if filled_at else None,
        )
        logger.info(f"Order created: {order.order_id} (status: {order.status})")
        return order


def _attributes(response: dict) -> dict:
    return (response.get("data") or {}).get("attributes") or {}
