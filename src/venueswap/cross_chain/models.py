"""Cross-chain access API models."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


def to_decimal(value) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


def parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(timezone.utc)


@dataclass
class AssetQuote:
    """Top of book for a symbol, in USD."""

    bid: Decimal
    ask: Decimal
    bid_size: Decimal = Decimal("0")
    ask_size: Decimal = Decimal("0")
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_attributes(cls, attrs: dict) -> "AssetQuote":
        return cls(
            bid=to_decimal(attrs.get("bidPrice")),
            ask=to_decimal(attrs.get("askPrice")),
            bid_size=to_decimal(attrs.get("bidSize")),
            ask_size=to_decimal(attrs.get("askSize")),
            timestamp=parse_timestamp(attrs.get("timestamp")),
        )

    def price_for(self, side: OrderSide) -> Decimal:
        """Ask when buying, bid when selling."""
        return self.ask if side == OrderSide.BUY else self.bid


@dataclass
class AccountStatus:
    account_blocked: bool = False
    trading_blocked: bool = False
    transfers_blocked: bool = False
    trade_suspended_by_user: bool = False
    market_open: bool = False
    account_status: str = "UNKNOWN"

    @classmethod
    def from_attributes(cls, attrs: dict) -> "AccountStatus":
        return cls(
            account_blocked=bool(attrs.get("account_blocked", False)),
            trading_blocked=bool(attrs.get("trading_blocked", False)),
            transfers_blocked=bool(attrs.get("transfers_blocked", False)),
            trade_suspended_by_user=bool(attrs.get("trade_suspended_by_user", False)),
            market_open=bool(attrs.get("market_open", False)),
            account_status=attrs.get("account_status") or "UNKNOWN",
        )

    def blocking_reasons(self) -> list[str]:
        reasons = []
        if self.account_blocked:
            reasons.append("account blocked")
        if self.trading_blocked:
            reasons.append("trading blocked")
        if self.transfers_blocked:
            reasons.append("transfers blocked")
        if self.trade_suspended_by_user:
            reasons.append("suspended by user")
        if not self.market_open:
            reasons.append("market closed")
        return reasons

    @property
    def is_blocked(self) -> bool:
        """Blocked for an account reason, regardless of market hours."""
        return (
            self.account_blocked
            or self.trading_blocked
            or self.transfers_blocked
            or self.trade_suspended_by_user
        )

    @property
    def is_trading_allowed(self) -> bool:
        return not self.blocking_reasons()


@dataclass
class AccountFunds:
    cash: Decimal = Decimal("0")
    buying_power: Decimal = Decimal("0")
    day_trading_buying_power: Decimal = Decimal("0")
    effective_buying_power: Decimal = Decimal("0")
    non_margin_buying_power: Decimal = Decimal("0")
    reg_t_buying_power: Decimal = Decimal("0")

    @classmethod
    def from_attributes(cls, attrs: dict) -> "AccountFunds":
        return cls(
            cash=to_decimal(attrs.get("cash")),
            buying_power=to_decimal(attrs.get("buying_power")),
            day_trading_buying_power=to_decimal(attrs.get("day_trading_buying_power")),
            effective_buying_power=to_decimal(attrs.get("effective_buying_power")),
            non_margin_buying_power=to_decimal(attrs.get("non_margin_buying_power")),
            reg_t_buying_power=to_decimal(attrs.get("reg_t_buying_power")),
        )

    def has_sufficient(self, amount: Decimal) -> bool:
        return self.buying_power >= amount


@dataclass
class OrderResponse:
    order_id: str
    symbol: str
    side: str
    quantity: Decimal
    filled_quantity: Decimal
    status: str
    created_at: datetime
    filled_at: Optional[datetime] = None


@dataclass
class PendingSettlement:
    """Everything needed to record an order for a confirmed escrow transfer.

    Kept on PartialSettlementError so the order can be resubmitted later
    without moving funds again.
    """

    tx_hash: str
    wallet: str
    asset_address: str
    symbol: str
    side: OrderSide
    price: Decimal
    quantity: Decimal
    notional: Decimal
    chain_id: int
    target_chain_id: int
    user_email: str = ""

    def order_attributes(self) -> dict:
        """JSON attributes for the order creation request."""
        return {
            "wallet": self.wallet.lower(),
            "tx_hash": self.tx_hash,
            "asset": self.asset_address,
            "asset_symbol": self.symbol.upper(),
            "side": self.side.value,
            "price": float(self.price),
            "qty": float(self.quantity),
            "notional": float(self.notional),
            "chain_id": self.chain_id,
            "target_chain_id": self.target_chain_id,
            "user_email": self.user_email,
        }

    def to_dict(self) -> dict:
        data = asdict(self)
        data["side"] = self.side.value
        for key in ("price", "quantity", "notional"):
            data[key] = str(data[key])
        return data
