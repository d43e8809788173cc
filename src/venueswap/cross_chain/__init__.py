"""Cross-chain access venue: stock market bridge.

Trades run only during US market hours and settle by transferring the
paying asset to an escrow address before the order is recorded.
"""

from venueswap.cross_chain.api import CrossChainAccessAPI
from venueswap.cross_chain.connector import CrossChainAccessConnector
from venueswap.cross_chain.executor import OffChainOrderExecutor, calculate_amounts
from venueswap.cross_chain.market_hours import (
    get_market_status,
    is_market_open,
    time_until_close,
    time_until_open,
)
from venueswap.cross_chain.models import (
    AccountFunds,
    AccountStatus,
    AssetQuote,
    OrderResponse,
    OrderSide,
    PendingSettlement,
)

__all__ = [
    "AccountFunds",
    "AccountStatus",
    "AssetQuote",
    "CrossChainAccessAPI",
    "CrossChainAccessConnector",
    "OffChainOrderExecutor",
    "OrderResponse",
    "OrderSide",
    "PendingSettlement",
    "calculate_amounts",
    "get_market_status",
    "is_market_open",
    "time_until_close",
    "time_until_open",
]
