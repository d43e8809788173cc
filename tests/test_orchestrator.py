"""Tests for trade orchestration and fallback."""

import asyncio
from decimal import Decimal
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from venueswap.cross_chain.models import OrderSide, PendingSettlement
from venueswap.exceptions import (
    AllVenuesFailedError,
    ConfirmationTimeoutError,
    NoLiquidityError,
    OrderFailedError,
    PartialSettlementError,
    QuoteUnavailableError,
    TradingError,
    UnconfirmedSettlementError,
    ValidationError,
)
from venueswap.models import Network, Quote, RoutingStrategy, TradeRequest, TradeResult, Venue
from venueswap.orchestrator import TradeOrchestrator
from venueswap.routing.base import VenueConnector

USDC = Network.POLYGON.usdc_address
ASSET = "0x1111111111111111111111111111111111111111"


def make_quote(venue: Venue, sell: str, buy: str) -> Quote:
    return Quote(
        sell_asset=USDC,
        buy_asset=ASSET,
        sell_amount=Decimal(sell),
        buy_amount=Decimal(buy),
        venue=venue,
    )


def make_result(venue: Venue, tx_hash: str) -> TradeResult:
    return TradeResult(
        tx_hash=tx_hash,
        sell_asset=USDC,
        sell_amount=Decimal("100"),
        buy_asset=ASSET,
        buy_amount=Decimal("2"),
        venue=venue,
        network=Network.POLYGON,
    )


class FakeConnector(VenueConnector):
    """Scripted venue for orchestration tests."""

    def __init__(
        self,
        venue: Venue,
        quote: Optional[Quote] = None,
        quote_error: Optional[Exception] = None,
        result: Optional[TradeResult] = None,
        execute_error: Optional[Exception] = None,
    ):
        self._venue = venue
        self.quote = quote
        self.quote_error = quote_error
        self.result = result
        self.execute_error = execute_error
        self.executed_with: list = []
        self.quote_calls = 0
        self.initialize = AsyncMock()
        self.close = AsyncMock()

    @property
    def venue(self) -> Venue:
        return self._venue

    async def get_quote(self, request):
        self.quote_calls += 1
        if self.quote_error:
            raise self.quote_error
        return self.quote

    async def execute(self, request, quote=None):
        self.executed_with.append(quote)
        if self.execute_error:
            raise self.execute_error
        return self.result


def buy_request(**kwargs) -> TradeRequest:
    return TradeRequest(
        sell_asset=USDC, buy_asset=ASSET, sell_amount=Decimal("100"), symbol="AAPL", **kwargs
    )


def pending_settlement() -> PendingSettlement:
    return PendingSettlement(
        tx_hash="0xescrow",
        wallet="0xWallet",
        asset_address=ASSET,
        symbol="AAPL",
        side=OrderSide.BUY,
        price=Decimal("50"),
        quantity=Decimal("2"),
        notional=Decimal("100"),
        chain_id=137,
        target_chain_id=137,
    )


@pytest.fixture
def market_maker():
    return FakeConnector(
        Venue.MARKET_MAKER,
        quote=make_quote(Venue.MARKET_MAKER, "100", "250"),
        result=make_result(Venue.MARKET_MAKER, "0xmm"),
    )


@pytest.fixture
def cross_chain():
    return FakeConnector(
        Venue.CROSS_CHAIN_ACCESS,
        quote=make_quote(Venue.CROSS_CHAIN_ACCESS, "100", "200"),
        result=make_result(Venue.CROSS_CHAIN_ACCESS, "0xcca"),
    )


class TestTrade:
    """Tests for TradeOrchestrator.trade."""

    @pytest.mark.asyncio
    async def test_executes_on_selected_venue(self, market_maker, cross_chain):
        """Test the best price venue executes with its own quote."""
        orchestrator = TradeOrchestrator(market_maker, cross_chain)

        result = await orchestrator.trade(buy_request())

        assert result.venue == Venue.CROSS_CHAIN_ACCESS
        assert cross_chain.executed_with == [cross_chain.quote]
        assert market_maker.executed_with == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "sell_amount,buy_amount",
        [(Decimal("1"), Decimal("1")), (None, None), (Decimal("0"), None)],
    )
    async def test_invalid_request_makes_no_calls(
        self, market_maker, cross_chain, sell_amount, buy_amount
    ):
        """Test validation fails before any venue is touched."""
        orchestrator = TradeOrchestrator(market_maker, cross_chain)
        request = TradeRequest(
            sell_asset=USDC, buy_asset=ASSET, sell_amount=sell_amount, buy_amount=buy_amount
        )

        with pytest.raises(ValidationError):
            await orchestrator.trade(request)

        for venue in (market_maker, cross_chain):
            venue.initialize.assert_not_awaited()
            assert venue.quote_calls == 0
            assert venue.executed_with == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("is_buy", [True, False])
    async def test_equal_rates_choose_cross_chain(self, market_maker, cross_chain, is_buy):
        """Test cross-chain access wins a best-price tie on either side."""
        market_maker.quote = make_quote(Venue.MARKET_MAKER, "100", "200")
        cross_chain.quote = make_quote(Venue.CROSS_CHAIN_ACCESS, "100", "200")
        orchestrator = TradeOrchestrator(market_maker, cross_chain)
        if is_buy:
            request = buy_request()
        else:
            request = TradeRequest(
                sell_asset=ASSET, buy_asset=USDC, buy_amount=Decimal("200"), symbol="AAPL"
            )

        result = await orchestrator.trade(request)

        assert result.venue == Venue.CROSS_CHAIN_ACCESS
        assert market_maker.executed_with == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            ConfirmationTimeoutError("0xescrowtx", 300.0, "transfer"),
            UnconfirmedSettlementError("Escrow transfer not confirmed", pending_settlement()),
        ],
    )
    async def test_unconfirmed_transaction_never_falls_back(
        self, market_maker, cross_chain, error
    ):
        """Test a broadcast but unconfirmed transaction stops the trade."""
        cross_chain.execute_error = error
        orchestrator = TradeOrchestrator(market_maker, cross_chain)

        with pytest.raises(type(error)) as exc_info:
            await orchestrator.trade(buy_request())

        assert exc_info.value is error
        assert market_maker.executed_with == []

    @pytest.mark.asyncio
    async def test_fallback_timeout_is_not_wrapped(self, market_maker, cross_chain):
        """Test a fallback confirmation timeout surfaces with its hash."""
        cross_chain.execute_error = OrderFailedError("order rejected")
        market_maker.execute_error = ConfirmationTimeoutError("0xtake", 300.0, "take offer")
        orchestrator = TradeOrchestrator(market_maker, cross_chain)

        with pytest.raises(ConfirmationTimeoutError) as exc_info:
            await orchestrator.trade(buy_request())

        assert exc_info.value.tx_hash == "0xtake"

    @pytest.mark.asyncio
    async def test_falls_back_when_selected_venue_fails(self, market_maker, cross_chain):
        """Test a failed cross-chain execution is retried on the market maker."""
        cross_chain.execute_error = OrderFailedError("order rejected")
        orchestrator = TradeOrchestrator(market_maker, cross_chain)

        result = await orchestrator.trade(buy_request())

        assert result.venue == Venue.MARKET_MAKER
        assert result.tx_hash == "0xmm"
        assert market_maker.executed_with == [market_maker.quote]

    @pytest.mark.asyncio
    async def test_partial_settlement_never_falls_back(self, market_maker, cross_chain):
        """Test moved funds stop the trade instead of trying the other venue."""
        cross_chain.execute_error = PartialSettlementError(
            "Order submission failed after escrow transfer", pending_settlement()
        )
        orchestrator = TradeOrchestrator(market_maker, cross_chain)

        with pytest.raises(PartialSettlementError) as exc_info:
            await orchestrator.trade(buy_request())

        assert exc_info.value.tx_hash == "0xescrow"
        assert market_maker.executed_with == []

    @pytest.mark.asyncio
    async def test_both_venues_fail(self, market_maker, cross_chain):
        """Test primary and fallback failures are both reported."""
        cross_chain.execute_error = OrderFailedError("order rejected")
        market_maker.execute_error = RuntimeError("rpc down")
        orchestrator = TradeOrchestrator(market_maker, cross_chain)

        with pytest.raises(AllVenuesFailedError) as exc_info:
            await orchestrator.trade(buy_request())

        error = exc_info.value
        assert error.primary_venue == Venue.CROSS_CHAIN_ACCESS
        assert error.fallback_venue == Venue.MARKET_MAKER
        assert "order rejected" in str(error)
        assert "rpc down" in str(error)

    @pytest.mark.asyncio
    async def test_no_fallback_when_other_venue_unavailable(self, market_maker, cross_chain):
        """Test a failure with no alternate venue is wrapped, not retried."""
        market_maker.quote_error = QuoteUnavailableError("no offers")
        cross_chain.execute_error = OrderFailedError("order rejected")
        orchestrator = TradeOrchestrator(market_maker, cross_chain)

        with pytest.raises(TradingError) as exc_info:
            await orchestrator.trade(buy_request())

        assert not isinstance(exc_info.value, AllVenuesFailedError)
        assert isinstance(exc_info.value.error, OrderFailedError)
        assert market_maker.executed_with == []

    @pytest.mark.asyncio
    async def test_only_strategy_never_falls_back(self, market_maker, cross_chain):
        """Test *_only strategies surface the failure of the named venue."""
        cross_chain.execute_error = OrderFailedError("order rejected")
        orchestrator = TradeOrchestrator(
            market_maker, cross_chain, strategy=RoutingStrategy.CROSS_CHAIN_ACCESS_ONLY
        )

        with pytest.raises(TradingError):
            await orchestrator.trade(buy_request())

        assert market_maker.executed_with == []

    @pytest.mark.asyncio
    async def test_request_strategy_overrides_default(self, market_maker, cross_chain):
        """Test a per-request strategy wins over the orchestrator default."""
        orchestrator = TradeOrchestrator(market_maker, cross_chain)

        result = await orchestrator.trade(buy_request(strategy=RoutingStrategy.MARKET_MAKER_ONLY))

        assert result.venue == Venue.MARKET_MAKER

    @pytest.mark.asyncio
    async def test_no_liquidity(self, market_maker, cross_chain):
        """Test both venues failing to quote raises NoLiquidityError."""
        market_maker.quote_error = QuoteUnavailableError("no offers")
        cross_chain.quote_error = QuoteUnavailableError("market closed")
        orchestrator = TradeOrchestrator(market_maker, cross_chain)

        with pytest.raises(NoLiquidityError):
            await orchestrator.trade(buy_request())


class TestLifecycle:
    """Tests for initialization, quoting and shutdown."""

    @pytest.mark.asyncio
    async def test_initialize_is_sequential_and_idempotent(self, market_maker, cross_chain):
        """Test market maker authenticates before cross-chain, once."""
        order = []
        market_maker.initialize.side_effect = lambda: order.append("mm")
        cross_chain.initialize.side_effect = lambda: order.append("cca")
        orchestrator = TradeOrchestrator(market_maker, cross_chain)

        await orchestrator.initialize()
        await orchestrator.initialize()

        assert order == ["mm", "cca"]

    @pytest.mark.asyncio
    async def test_get_quotes_marks_unavailable_venue(self, market_maker, cross_chain):
        """Test get_quotes returns None for a venue that cannot quote."""
        cross_chain.quote_error = QuoteUnavailableError("market closed")
        orchestrator = TradeOrchestrator(market_maker, cross_chain)

        quotes = await orchestrator.get_quotes(buy_request())

        assert quotes[Venue.MARKET_MAKER] == market_maker.quote
        assert quotes[Venue.CROSS_CHAIN_ACCESS] is None

    @pytest.mark.asyncio
    async def test_quotes_are_fetched_concurrently(self, market_maker, cross_chain):
        """Test each venue can only finish quoting while the other is in flight."""
        mm_started = asyncio.Event()
        cca_started = asyncio.Event()

        async def mm_quote(request):
            mm_started.set()
            await asyncio.wait_for(cca_started.wait(), timeout=1)
            return market_maker.quote

        async def cca_quote(request):
            cca_started.set()
            await asyncio.wait_for(mm_started.wait(), timeout=1)
            return cross_chain.quote

        market_maker.get_quote = mm_quote
        cross_chain.get_quote = cca_quote
        orchestrator = TradeOrchestrator(market_maker, cross_chain)

        quotes = await orchestrator.get_quotes(buy_request())

        assert quotes[Venue.MARKET_MAKER] == market_maker.quote
        assert quotes[Venue.CROSS_CHAIN_ACCESS] == cross_chain.quote

    @pytest.mark.asyncio
    async def test_failing_venue_does_not_cancel_slow_venue(self, market_maker, cross_chain):
        """Test an immediate quote failure leaves the slower venue to complete."""
        finished = []

        async def slow_quote(request):
            await asyncio.sleep(0.05)
            finished.append(Venue.MARKET_MAKER)
            return market_maker.quote

        market_maker.get_quote = slow_quote
        cross_chain.quote_error = RuntimeError("connection reset")
        orchestrator = TradeOrchestrator(market_maker, cross_chain)

        quotes = await orchestrator.get_quotes(buy_request())

        assert finished == [Venue.MARKET_MAKER]
        assert quotes[Venue.MARKET_MAKER] == market_maker.quote
        assert quotes[Venue.CROSS_CHAIN_ACCESS] is None

    @pytest.mark.asyncio
    async def test_context_manager_closes_everything(self, market_maker, cross_chain):
        """Test leaving the async context closes both venues and the context."""
        context = AsyncMock()

        async with TradeOrchestrator(market_maker, cross_chain, context=context) as orchestrator:
            assert orchestrator.connector(Venue.MARKET_MAKER) is market_maker

        market_maker.close.assert_awaited_once()
        cross_chain.close.assert_awaited_once()
        context.close.assert_awaited_once()
