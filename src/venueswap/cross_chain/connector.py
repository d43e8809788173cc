"""Cross-chain access venue: stock market bridge settled through an escrow transfer.

Every pair is the symbol's token against USDC on the trading network.
Paying USDC is a buy, receiving USDC is a sell.
"""

import logging
from decimal import Decimal
from typing import Optional

from venueswap.auth import WalletAuth
from venueswap.cross_chain.api import CrossChainAccessAPI
from venueswap.cross_chain.executor import OffChainOrderExecutor
from venueswap.cross_chain.market_hours import get_market_status
from venueswap.cross_chain.models import OrderSide
from venueswap.exceptions import MarketClosedError, QuoteUnavailableError
from venueswap.models import Network, Quote, TradeRequest, TradeResult, Venue
from venueswap.routing.base import VenueConnector

logger = logging.getLogger(__name__)


class CrossChainAccessConnector(VenueConnector):
    """Time-windowed bridge venue."""

    def __init__(
        self,
        api: CrossChainAccessAPI,
        executor: OffChainOrderExecutor,
        auth: Optional[WalletAuth] = None,
        private_key: Optional[str] = None,
        user_email: Optional[str] = None,
        target_network: Optional[Network] = None,
    ):
        self.api = api
        self.executor = executor
        self.auth = auth
        self.private_key = private_key
        self.user_email = user_email
        self.target_network = target_network
        self._initialized = False

    @classmethod
    def from_context(cls, context) -> "CrossChainAccessConnector":
        settings = context.settings
        api = CrossChainAccessAPI(settings.cross_chain_api_url, **context.api_options())
        executor = OffChainOrderExecutor(
            api,
            context.chain(),
            context.remote_config.get_escrow_address,
            max_slippage=settings.cross_chain_max_slippage,
        )
        return cls(
            api,
            executor,
            auth=context.auth,
            private_key=context.private_key,
            user_email=settings.user_email,
            target_network=settings.target_network,
        )

    @property
    def venue(self) -> Venue:
        return Venue.CROSS_CHAIN_ACCESS

    async def initialize(self) -> None:
        """Authenticate and attach the access token to the API client."""
        if self._initialized:
            return
        if self.auth is not None and self.private_key:
            logger.info("Authenticating cross-chain access wallet")
            tokens = await self.auth.verify(self.private_key)
            self.api.set_auth_token(tokens.access_token)
        self._initialized = True

    async def close(self) -> None:
        await self.api.close()

    def _resolve(self, request: TradeRequest) -> tuple[OrderSide, str, str]:
        """Order side, asset token and symbol for a request."""
        usdc = self.executor.usdc_address.lower()
        if request.sell_asset.lower() == usdc:
            side, asset = OrderSide.BUY, request.buy_asset
        elif request.buy_asset.lower() == usdc:
            side, asset = OrderSide.SELL, request.sell_asset
        else:
            raise QuoteUnavailableError(
                f"Cross-Chain Access trades only against USDC ({self.executor.usdc_address})"
            )
        if not request.symbol:
            raise QuoteUnavailableError("Symbol not provided")
        return side, asset, request.symbol

    async def get_quote(self, request: TradeRequest) -> Quote:
        side, _, symbol = self._resolve(request)

        market = get_market_status(self.executor.clock())
        if not market.is_open:
            raise MarketClosedError(market.message)

        asset_quote = await self.api.get_asset_quote(symbol)
        price = asset_quote.price_for(side)
        if price <= 0:
            raise QuoteUnavailableError(f"No {side.value} price for {symbol}")

        if side == OrderSide.BUY:
            # sell USDC, buy the asset at the ask
            if request.sell_amount is not None:
                sell_amount, buy_amount = request.sell_amount, request.sell_amount / price
            else:
                sell_amount, buy_amount = request.buy_amount * price, request.buy_amount
        else:
            # sell the asset, buy USDC at the bid
            if request.sell_amount is not None:
                sell_amount, buy_amount = request.sell_amount, request.sell_amount * price
            else:
                sell_amount, buy_amount = request.buy_amount / price, request.buy_amount

        return Quote(
            sell_asset=request.sell_asset,
            buy_asset=request.buy_asset,
            sell_amount=sell_amount,
            buy_amount=buy_amount,
            venue=self.venue,
        )

    async def execute(self, request: TradeRequest, quote: Optional[Quote] = None) -> TradeResult:
        await self.initialize()
        side, asset, symbol = self._resolve(request)

        if side == OrderSide.BUY:
            notional, quantity = request.sell_amount, request.buy_amount
        else:
            quantity, notional = request.sell_amount, request.buy_amount

        quoted_price: Optional[Decimal] = None
        if quote is not None and quote.venue == self.venue:
            # USDC per unit of the asset
            quoted_price = quote.inverse_rate if side == OrderSide.BUY else quote.rate

        target = request.target_network or self.target_network
        return await self.executor.execute_order(
            asset_address=asset,
            symbol=symbol,
            side=side,
            quantity=quantity,
            notional=notional,
            user_email=request.user_email or self.user_email or "",
            target_chain_id=int(target) if target else None,
            quoted_price=quoted_price,
        )
