"""Off-chain order execution for cross-chain access.

Flow:
1. Market hours and account status gate
2. Fresh quote (ask for buys, bid for sells)
3. Amounts from the specified side, rounded
4. Slippage check against the routing quote
5. Buying power (buy) or on-chain asset balance (sell)
6. Escrow transfer of the paying asset, confirmed on-chain
7. Order creation referencing the transfer hash

Funds move only in step 6. A confirmation timeout in step 6 raises
UnconfirmedSettlementError and a failure in step 7 raises
PartialSettlementError, both carrying everything needed to resubmit the order.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Awaitable, Callable, Optional

from venueswap.chain import ChainClient
from venueswap.cross_chain.api import CrossChainAccessAPI
from venueswap.cross_chain.market_hours import get_market_status
from venueswap.cross_chain.models import OrderResponse, OrderSide, PendingSettlement
from venueswap.exceptions import (
    AccountBlockedError,
    APIError,
    AuthenticationError,
    AvailabilityError,
    ConfigurationError,
    ConfirmationTimeoutError,
    CrossChainAccessError,
    InsufficientFundsError,
    MarketClosedError,
    PartialSettlementError,
    QuoteUnavailableError,
    SlippageExceededError,
    UnconfirmedSettlementError,
    ValidationError,
)
from venueswap.models import TradeResult, Venue

logger = logging.getLogger(__name__)

ASSET_QUANTITY_STEP = Decimal("0.000000001")  # 9 dp
NOTIONAL_STEP = Decimal("0.01")  # 2 dp

EscrowAddressProvider = Callable[[], Awaitable[str]]


@dataclass
class CalculatedAmounts:
    quantity: Decimal
    notional: Decimal
    price: Decimal
    side: OrderSide


def calculate_amounts(
    side: OrderSide,
    price: Decimal,
    quantity: Optional[Decimal] = None,
    notional: Optional[Decimal] = None,
) -> CalculatedAmounts:
    """Derive the unspecified side at ``price`` and round both sides."""
    if (quantity is None) == (notional is None):
        raise ValidationError("Provide either an asset quantity or a notional amount")
    if price <= 0:
        raise QuoteUnavailableError(f"Invalid {side.value} price: {price}")

    if quantity is not None:
        notional = quantity * price
    else:
        quantity = notional / price

    return CalculatedAmounts(
        quantity=quantity.quantize(ASSET_QUANTITY_STEP, rounding=ROUND_HALF_UP),
        notional=notional.quantize(NOTIONAL_STEP, rounding=ROUND_HALF_UP),
        price=price,
        side=side,
    )


def check_slippage(
    side: OrderSide, price: Decimal, quoted_price: Decimal, max_slippage: Decimal
) -> None:
    """Reject a price that moved against the caller by more than ``max_slippage``."""
    if quoted_price <= 0:
        return
    if side == OrderSide.BUY:
        limit = quoted_price * (1 + max_slippage)
        breached = price > limit
    else:
        limit = quoted_price * (1 - max_slippage)
        breached = price < limit
    if breached:
        raise SlippageExceededError(
            f"{side.value} price ${price} moved beyond {max_slippage:%} of quoted ${quoted_price} "
            f"(limit ${limit:.4f})"
        )


class OffChainOrderExecutor:
    """Runs the escrow transfer and order submission for one wallet."""

    def __init__(
        self,
        api: CrossChainAccessAPI,
        chain: ChainClient,
        escrow_address_provider: EscrowAddressProvider,
        max_slippage: Optional[Decimal] = Decimal("0.01"),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.api = api
        self.chain = chain
        self._escrow_address_provider = escrow_address_provider
        self.max_slippage = max_slippage
        self.clock = clock

    @property
    def usdc_address(self) -> str:
        return self.chain.network.usdc_address

    async def _availability_error(self) -> Optional[AvailabilityError]:
        """Market hours first, then account status. Moves no funds."""
        market = get_market_status(self.clock())
        if not market.is_open:
            return MarketClosedError(market.message)

        try:
            status = await self.api.get_account_status()
        except (APIError, AuthenticationError) as e:
            logger.error(f"Failed to check account status: {e}")
            return AccountBlockedError(f"Failed to check account status: {e}")

        if status.is_trading_allowed:
            return None
        message = f"Trading not available: {', '.join(status.blocking_reasons())}"
        if status.is_blocked:
            return AccountBlockedError(message)
        return MarketClosedError(message)

    async def check_trading_availability(self) -> tuple[bool, str]:
        error = await self._availability_error()
        if error is None:
            return True, "Trading is available"
        return False, str(error)

    async def ensure_trading_available(self) -> None:
        """
        Raises:
            MarketClosedError: outside market hours, with no account block
            AccountBlockedError: account flags set or status unavailable
        """
        error = await self._availability_error()
        if error is not None:
            raise error

    async def _check_funds(self, asset_address: str, amounts: CalculatedAmounts) -> None:
        if amounts.side == OrderSide.BUY:
            funds = await self.api.get_account_funds()
            if not funds.has_sufficient(amounts.notional):
                raise InsufficientFundsError(
                    f"Insufficient buying power: need ${amounts.notional}, have ${funds.buying_power}"
                )
            logger.info(f"Buying power check passed: ${funds.buying_power}")
        else:
            balance = await self.chain.get_balance(asset_address)
            if balance < amounts.quantity:
                raise InsufficientFundsError(
                    f"Insufficient asset balance: need {amounts.quantity}, have {balance}"
                )
            logger.info(f"Asset balance check passed: {balance}")

    async def _escrow_address(self) -> str:
        try:
            return await self._escrow_address_provider()
        except ConfigurationError as e:
            raise CrossChainAccessError(f"Escrow address unavailable: {e}", error=e) from e

    async def execute_order(
        self,
        asset_address: str,
        symbol: str,
        side: OrderSide,
        quantity: Optional[Decimal] = None,
        notional: Optional[Decimal] = None,
        user_email: str = "",
        target_chain_id: Optional[int] = None,
        quoted_price: Optional[Decimal] = None,
    ) -> TradeResult:
        """
        Buy or sell ``symbol`` through the escrow.

        Args:
            asset_address: On-chain token for the symbol
            symbol: Trading symbol (e.g. "AAPL")
            side: Order side
            quantity: Asset amount (exclusive with notional)
            notional: USDC amount (exclusive with quantity)
            user_email: Email recorded on the order
            target_chain_id: Settlement chain (defaults to this chain)
            quoted_price: Price the caller was quoted, for the slippage check

        Returns:
            TradeResult with the transfer hash and order id
        """
        logger.info(f"Starting {side.value} trade for {symbol}")
        await self.ensure_trading_available()

        asset_quote = await self.api.get_asset_quote(symbol)
        price = asset_quote.price_for(side)
        amounts = calculate_amounts(side, price, quantity=quantity, notional=notional)
        logger.info(
            f"Calculated amounts at ${price}: quantity {amounts.quantity}, notional ${amounts.notional}"
        )

        if quoted_price is not None and self.max_slippage is not None:
            check_slippage(side, price, quoted_price, self.max_slippage)

        await self._check_funds(asset_address, amounts)

        if side == OrderSide.BUY:
            pay_token, pay_amount = self.usdc_address, amounts.notional
            receive_token, receive_amount = asset_address, amounts.quantity
        else:
            pay_token, pay_amount = asset_address, amounts.quantity
            receive_token, receive_amount = self.usdc_address, amounts.notional

        def settlement(tx_hash: str) -> PendingSettlement:
            return PendingSettlement(
                tx_hash=tx_hash,
                wallet=self.chain.address,
                asset_address=asset_address,
                symbol=symbol,
                side=side,
                price=price,
                quantity=amounts.quantity,
                notional=amounts.notional,
                chain_id=self.chain.chain_id,
                target_chain_id=target_chain_id or self.chain.chain_id,
                user_email=user_email,
            )

        escrow = await self._escrow_address()
        logger.info(f"Transferring {pay_amount} of {pay_token} to escrow {escrow}")
        try:
            tx_hash = await self.chain.transfer(pay_token, escrow, pay_amount)
        except ConfirmationTimeoutError as e:
            pending = settlement(e.tx_hash)
            logger.error(
                f"Escrow transfer {e.tx_hash} broadcast but not confirmed. "
                f"Pending settlement: {pending.to_dict()}"
            )
            raise UnconfirmedSettlementError(
                "Escrow transfer not confirmed", pending, error=e
            ) from e

        pending = settlement(tx_hash)

        try:
            order = await self.api.create_order(pending)
        except Exception as e:
            logger.error(
                f"Escrow transfer {tx_hash} confirmed but order creation failed: {e}. "
                f"Pending settlement: {pending.to_dict()}"
            )
            raise PartialSettlementError(
                f"Order submission failed after escrow transfer: {e}", pending, error=e
            ) from e

        return TradeResult(
            tx_hash=tx_hash,
            order_id=order.order_id,
            sell_asset=pay_token,
            sell_amount=pay_amount,
            buy_asset=receive_token,
            buy_amount=receive_amount,
            venue=Venue.CROSS_CHAIN_ACCESS,
            network=self.chain.network,
        )

    async def resubmit_order(self, pending: PendingSettlement) -> OrderResponse:
        """Record the order for an already-confirmed escrow transfer.

        No funds move. Raises OrderFailedError if the order is rejected again.
        """
        logger.info(f"Resubmitting order for escrow transfer {pending.tx_hash}")
        return await self.api.create_order(pending)
