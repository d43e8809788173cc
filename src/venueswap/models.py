"""Shared data models for quoting and trading across venues.

All amounts are normalized decimal units (1.5 means 1.5 USDC, not wei).
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Optional

from venueswap.exceptions import ValidationError


class Network(IntEnum):
    """Supported EVM networks, valued by chain id."""

    ETHEREUM = 1
    BSC = 56
    POLYGON = 137
    BASE = 8453

    @property
    def slug(self) -> str:
        return self.name.lower()

    @property
    def default_rpc_url(self) -> str:
        return RPC_ENDPOINTS[self]

    @property
    def usdc_address(self) -> str:
        return USDC_ADDRESSES[self]

    @classmethod
    def from_name(cls, value: str) -> "Network":
        """Parse a network from its slug ("polygon") or chain id ("137")."""
        value = value.strip().lower()
        if value.isdigit():
            return cls(int(value))
        try:
            return cls[value.upper()]
        except KeyError:
            raise ValueError(f"Unsupported network: {value}") from None


# Public RPC endpoints (rate limited)
RPC_ENDPOINTS = {
    Network.ETHEREUM: "https://eth.llamarpc.com",
    Network.POLYGON: "https://polygon-rpc.com",
    Network.BASE: "https://mainnet.base.org",
    Network.BSC: "https://bsc-dataseed.binance.org",
}

USDC_ADDRESSES = {
    Network.ETHEREUM: "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    Network.POLYGON: "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
    Network.BASE: "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    Network.BSC: "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d",
}


class RoutingStrategy(str, Enum):
    """Venue routing strategy."""

    BEST_PRICE = "best_price"
    CROSS_CHAIN_ACCESS_FIRST = "cross_chain_access_first"
    MARKET_MAKER_FIRST = "market_maker_first"
    CROSS_CHAIN_ACCESS_ONLY = "cross_chain_access_only"
    MARKET_MAKER_ONLY = "market_maker_only"

    @property
    def allows_fallback(self) -> bool:
        """Whether a failed execution may be retried on the other venue."""
        return self in (
            RoutingStrategy.BEST_PRICE,
            RoutingStrategy.CROSS_CHAIN_ACCESS_FIRST,
            RoutingStrategy.MARKET_MAKER_FIRST,
        )


class Venue(str, Enum):
    """Trading venues."""

    MARKET_MAKER = "market_maker"
    CROSS_CHAIN_ACCESS = "cross_chain_access"

    @property
    def label(self) -> str:
        return "Market Maker" if self is Venue.MARKET_MAKER else "Cross-Chain Access"

    @property
    def other(self) -> "Venue":
        if self is Venue.MARKET_MAKER:
            return Venue.CROSS_CHAIN_ACCESS
        return Venue.MARKET_MAKER


@dataclass(frozen=True)
class Quote:
    """A price quote from one venue."""

    sell_asset: str
    buy_asset: str
    sell_amount: Decimal
    buy_amount: Decimal
    venue: Venue
    timestamp: float = field(default_factory=time.time)

    @property
    def rate(self) -> Decimal:
        """Buy amount received per unit of sell amount."""
        if self.sell_amount == 0:
            return Decimal("0")
        return self.buy_amount / self.sell_amount

    @property
    def inverse_rate(self) -> Decimal:
        """Sell amount paid per unit of buy amount."""
        if self.buy_amount == 0:
            return Decimal("0")
        return self.sell_amount / self.buy_amount


@dataclass(frozen=True)
class TradeResult:
    """Outcome of a completed trade."""

    tx_hash: str
    sell_asset: str
    sell_amount: Decimal
    buy_asset: str
    buy_amount: Decimal
    venue: Venue
    network: Network
    order_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    status: str = "completed"

    @property
    def rate(self) -> Decimal:
        """Buy amount received per unit of sell amount, as executed."""
        if self.sell_amount == 0:
            return Decimal("0")
        return self.buy_amount / self.sell_amount

    def __str__(self) -> str:
        return (
            f"Trade({self.venue.value}): sold {self.sell_amount} for {self.buy_amount} "
            f"on {self.network.slug} (tx: {self.tx_hash[:10]}...)"
        )

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {
            "tx_hash": self.tx_hash,
            "order_id": self.order_id,
            "sell_asset": self.sell_asset,
            "sell_amount": str(self.sell_amount),
            "buy_asset": self.buy_asset,
            "buy_amount": str(self.buy_amount),
            "rate": str(self.rate),
            "venue": self.venue.value,
            "network": self.network.slug,
            "timestamp": self.timestamp,
            "status": self.status,
        }


@dataclass
class TradeRequest:
    """Parameters for quoting or executing a trade.

    Exactly one of ``sell_amount`` / ``buy_amount`` is the caller-specified
    side. Venue-specific fields (``symbol`` for cross-chain access, the
    order email and settlement network) travel in the same request.
    """

    sell_asset: str
    buy_asset: str
    sell_amount: Optional[Decimal] = None
    buy_amount: Optional[Decimal] = None
    symbol: Optional[str] = None
    strategy: Optional[RoutingStrategy] = None
    user_email: Optional[str] = None
    target_network: Optional[Network] = None

    def validate(self) -> None:
        """Raise ValidationError unless exactly one amount is given."""
        if self.sell_amount is not None and self.buy_amount is not None:
            raise ValidationError("Provide either sell_amount or buy_amount, not both")
        if self.sell_amount is None and self.buy_amount is None:
            raise ValidationError("Must provide either sell_amount or buy_amount")
        amount = self.sell_amount if self.sell_amount is not None else self.buy_amount
        if amount <= 0:
            raise ValidationError(f"Amount must be positive, got {amount}")

    @property
    def is_buy(self) -> bool:
        """True when the caller fixed how much they spend."""
        return self.sell_amount is not None
