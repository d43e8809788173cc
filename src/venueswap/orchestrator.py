"""Trade orchestration across the two venues.

Quotes are gathered from both venues concurrently, a venue is selected by
the routing strategy, and a failed execution falls back to the other venue
when the strategy allows it. Once a transaction has been broadcast (moved
funds or an unconfirmed transaction) there is no fallback.
"""

import asyncio
import logging
from typing import Optional

from venueswap.config import Settings
from venueswap.exceptions import (
    AllVenuesFailedError,
    ConfirmationTimeoutError,
    PartialSettlementError,
    TradingError,
)
from venueswap.models import Quote, RoutingStrategy, TradeRequest, TradeResult, Venue
from venueswap.routing.base import VenueConnector, VenueOption
from venueswap.routing.router import select_venue

logger = logging.getLogger(__name__)


class TradeOrchestrator:
    """Unified entry point for quoting and trading.

    Usage:
        orchestrator = await TradeOrchestrator.create()
        try:
            result = await orchestrator.trade(request)
        finally:
            await orchestrator.close()
    """

    def __init__(
        self,
        market_maker: VenueConnector,
        cross_chain: VenueConnector,
        strategy: RoutingStrategy = RoutingStrategy.BEST_PRICE,
        context=None,
    ):
        self.market_maker = market_maker
        self.cross_chain = cross_chain
        self.strategy = strategy
        self.context = context
        self._initialized = False

    @classmethod
    def from_context(cls, context) -> "TradeOrchestrator":
        from venueswap.cross_chain.connector import CrossChainAccessConnector
        from venueswap.market_maker.connector import MarketMakerConnector

        return cls(
            MarketMakerConnector.from_context(context),
            CrossChainAccessConnector.from_context(context),
            strategy=context.settings.routing_strategy,
            context=context,
        )

    @classmethod
    async def create(cls, settings: Optional[Settings] = None) -> "TradeOrchestrator":
        """Build a context from settings and wire both venues to it."""
        from venueswap.context import TradingContext

        context = await TradingContext.create(settings)
        try:
            return cls.from_context(context)
        except Exception:
            await context.close()
            raise

    def connector(self, venue: Venue) -> VenueConnector:
        return self.market_maker if venue == Venue.MARKET_MAKER else self.cross_chain

    async def initialize(self) -> None:
        """Authenticate both venues, market maker first.

        Each handshake consumes a single-use nonce for the shared wallet,
        so the two must never overlap.
        """
        if self._initialized:
            return
        await self.market_maker.initialize()
        await self.cross_chain.initialize()
        self._initialized = True

    async def close(self) -> None:
        await asyncio.gather(self.market_maker.close(), self.cross_chain.close())
        if self.context is not None:
            await self.context.close()
        logger.info("Trade orchestrator closed")

    async def __aenter__(self) -> "TradeOrchestrator":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def get_options(self, request: TradeRequest) -> tuple[VenueOption, VenueOption]:
        """Quote both venues concurrently. Never raises."""
        return await asyncio.gather(
            self.market_maker.get_option(request),
            self.cross_chain.get_option(request),
        )

    async def get_quotes(self, request: TradeRequest) -> dict[Venue, Optional[Quote]]:
        """Quotes from both venues; None marks a venue that cannot quote."""
        mm_option, cca_option = await self.get_options(request)
        return {option.venue: option.quote for option in (mm_option, cca_option)}

    async def trade(self, request: TradeRequest) -> TradeResult:
        """
        Execute a trade on the best venue for the strategy.

        Raises:
            ValidationError: request is malformed (no network calls made)
            NoLiquidityError: no venue can serve the request
            PartialSettlementError: funds moved but the order was not recorded
            ConfirmationTimeoutError: a broadcast transaction was not confirmed
            AllVenuesFailedError: primary and fallback both failed
            TradingError: primary failed and no fallback was possible
        """
        request.validate()
        strategy = request.strategy or self.strategy
        logger.info(
            f"Starting trade: {request.sell_asset} -> {request.buy_asset} "
            f"(strategy: {strategy.value})"
        )

        await self.initialize()

        mm_option, cca_option = await self.get_options(request)
        logger.info(
            f"Venue availability - {Venue.MARKET_MAKER.label}: {mm_option.available}, "
            f"{Venue.CROSS_CHAIN_ACCESS.label}: {cca_option.available}"
        )

        # Cross-chain access first: it wins best-price ties
        selected = select_venue(cca_option, mm_option, strategy, request.is_buy)
        logger.info(f"Selected venue: {selected.venue.label}")

        try:
            result = await self.connector(selected.venue).execute(request, selected.quote)
        except (PartialSettlementError, ConfirmationTimeoutError):
            raise
        except Exception as error:
            logger.error(f"Trade failed on {selected.venue.label}: {error}")
            alternate = cca_option if selected.venue == Venue.MARKET_MAKER else mm_option

            if strategy.allows_fallback and alternate.available:
                return await self._fallback(request, selected.venue, error, alternate)

            raise TradingError(f"Trade failed: {error}", error=error) from error

        logger.info(f"Trade successful on {selected.venue.label}: {result.tx_hash}")
        return result

    async def _fallback(
        self,
        request: TradeRequest,
        primary_venue: Venue,
        primary_error: Exception,
        alternate: VenueOption,
    ) -> TradeResult:
        logger.info(f"Attempting fallback to {alternate.venue.label}")
        try:
            result = await self.connector(alternate.venue).execute(request, alternate.quote)
        except (PartialSettlementError, ConfirmationTimeoutError):
            raise
        except Exception as fallback_error:
            logger.error(f"Fallback failed on {alternate.venue.label}: {fallback_error}")
            raise AllVenuesFailedError(
                primary_venue, primary_error, alternate.venue, fallback_error
            ) from fallback_error

        logger.info(f"Fallback successful on {alternate.venue.label}: {result.tx_hash}")
        return result
