"""Market maker venue: RPQ quotes plus on-chain offer taking."""

import logging
from decimal import Decimal
from typing import Optional

from venueswap.auth import WalletAuth
from venueswap.exceptions import (
    AvailabilityError,
    ConfirmationTimeoutError,
    ExecutionError,
    MarketMakerError,
    NoOffersAvailableError,
)
from venueswap.market_maker.executor import OnChainOfferExecutor
from venueswap.market_maker.rpq import RPQClient
from venueswap.models import Network, Quote, TradeRequest, TradeResult, Venue
from venueswap.routing.base import VenueConnector

logger = logging.getLogger(__name__)


class MarketMakerConnector(VenueConnector):
    """Peer-to-peer offer venue."""

    def __init__(
        self,
        rpq: RPQClient,
        executor: OnChainOfferExecutor,
        auth: Optional[WalletAuth] = None,
        private_key: Optional[str] = None,
    ):
        self.rpq = rpq
        self.executor = executor
        self.auth = auth
        self.private_key = private_key
        self._initialized = False

    @classmethod
    def from_context(cls, context) -> "MarketMakerConnector":
        settings = context.settings
        rpq = RPQClient(
            settings.rpq_api_url,
            settings.network,
            api_key=settings.rpq_api_key,
            **context.api_options(),
        )
        executor = OnChainOfferExecutor(
            context.chain(),
            context.remote_config.get_manager_address,
            affiliate=settings.affiliate_address,
        )
        return cls(rpq, executor, auth=context.auth, private_key=context.private_key)

    @property
    def venue(self) -> Venue:
        return Venue.MARKET_MAKER

    @property
    def network(self) -> Network:
        return self.executor.chain.network

    async def initialize(self) -> None:
        """Authenticate the wallet once."""
        if self._initialized:
            return
        if self.auth is not None and self.private_key:
            logger.info("Authenticating market maker wallet")
            await self.auth.verify(self.private_key)
        self._initialized = True

    async def close(self) -> None:
        await self.rpq.close()

    async def get_quote(self, request: TradeRequest) -> Quote:
        return await self.rpq.get_quote(
            buy_asset=request.buy_asset,
            sell_asset=request.sell_asset,
            target_sell_amount=request.sell_amount,
            target_buy_amount=request.buy_amount,
        )

    async def execute(self, request: TradeRequest, quote: Optional[Quote] = None) -> TradeResult:
        """
        Take the best offer for the request.

        The offer's deposit asset is what we receive (``buy_asset``); its
        withdrawal asset is what we pay (``sell_asset``).
        """
        await self.initialize()
        logger.info(f"Starting Market Maker trade: {request.sell_asset} -> {request.buy_asset}")

        try:
            best = await self.rpq.get_best_offers(
                buy_asset=request.buy_asset,
                sell_asset=request.sell_asset,
                target_sell_amount=request.sell_amount,
                target_buy_amount=request.buy_amount,
            )
            if not best.selected_offers:
                raise NoOffersAvailableError("No suitable offers found for this trade")

            offer = best.selected_offers[0]
            logger.info(
                f"Best offer {offer.id}: paying {offer.withdrawal_amount_paid} units "
                f"at price {offer.price_per_unit}"
            )
            tx_hash = await self.executor.take_offer(offer, paid_asset=request.sell_asset)
        except (AvailabilityError, ExecutionError, ConfirmationTimeoutError):
            raise
        except Exception as e:
            raise MarketMakerError(f"Trade execution failed: {e}", error=e) from e

        result = TradeResult(
            tx_hash=tx_hash,
            order_id=offer.id,
            sell_asset=request.sell_asset,
            sell_amount=offer.amount_paid,
            buy_asset=request.buy_asset,
            buy_amount=offer.amount_received,
            venue=self.venue,
            network=self.network,
        )
        logger.info(f"Market Maker trade completed: {result}")
        return result

    async def make_offer(
        self,
        sell_asset: str,
        sell_amount: Decimal,
        buy_asset: str,
        buy_amount: Decimal,
        is_dynamic: bool = False,
        expires_at: Optional[int] = None,
    ) -> TradeResult:
        """Create an offer depositing ``sell_amount`` in exchange for ``buy_amount``."""
        await self.initialize()
        tx_hash, offer_id = await self.executor.make_offer(
            sell_asset, sell_amount, buy_asset, buy_amount, is_dynamic, expires_at
        )
        return TradeResult(
            tx_hash=tx_hash,
            order_id=offer_id,
            sell_asset=sell_asset,
            sell_amount=sell_amount,
            buy_asset=buy_asset,
            buy_amount=buy_amount,
            venue=self.venue,
            network=self.network,
            status="open",
        )

    async def cancel_offer(self, offer_id: str) -> str:
        await self.initialize()
        return await self.executor.cancel_offer(offer_id)
