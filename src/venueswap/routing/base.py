"""Abstract venue interface and routing data types."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from venueswap.models import Quote, RoutingStrategy, TradeRequest, TradeResult, Venue

logger = logging.getLogger(__name__)

__all__ = ["RoutingStrategy", "VenueConnector", "VenueOption"]


@dataclass(frozen=True)
class VenueOption:
    """A venue with its quote, or the reason it cannot trade."""

    venue: Venue
    quote: Optional[Quote] = None
    available: bool = True
    error: Optional[str] = None

    def __post_init__(self):
        if self.available and self.quote is None:
            raise ValueError(f"Available {self.venue.value} option must carry a quote")
        if not self.available and self.quote is not None:
            raise ValueError(f"Unavailable {self.venue.value} option must not carry a quote")

    @classmethod
    def of(cls, quote: Quote) -> "VenueOption":
        return cls(venue=quote.venue, quote=quote)

    @classmethod
    def unavailable(cls, venue: Venue, error: str) -> "VenueOption":
        return cls(venue=venue, available=False, error=error)

    @property
    def rate(self):
        """Effective rate (buy amount / sell amount), 0 without a quote."""
        return self.quote.rate if self.quote else 0


class VenueConnector(ABC):
    """Abstract base class for a trading venue.

    Each connector hides its venue's HTTP and on-chain details behind
    ``get_quote`` and ``execute``.
    """

    @property
    @abstractmethod
    def venue(self) -> Venue:
        """Venue identifier."""
        pass

    async def initialize(self) -> None:
        """Authenticate and load configuration. Safe to call twice."""

    async def close(self) -> None:
        """Release resources."""

    @abstractmethod
    async def get_quote(self, request: TradeRequest) -> Quote:
        """
        Get a quote without touching chain state.

        Args:
            request: Trade parameters (exactly one amount set)

        Returns:
            Quote with both amounts filled in

        Raises:
            AvailabilityError: venue cannot price the pair right now
        """
        pass

    @abstractmethod
    async def execute(self, request: TradeRequest, quote: Optional[Quote] = None) -> TradeResult:
        """
        Execute a trade on this venue.

        Args:
            request: Trade parameters
            quote: Quote this venue gave during routing, if any

        Returns:
            TradeResult for the executed trade

        Raises:
            AvailabilityError, ExecutionError, ConfirmationTimeoutError
        """
        pass

    async def get_option(self, request: TradeRequest) -> VenueOption:
        """Quote this venue, reporting any failure as an unavailable option."""
        try:
            quote = await self.get_quote(request)
        except Exception as e:
            logger.warning(f"{self.venue.label} quote failed: {type(e).__name__}: {e}")
            return VenueOption.unavailable(self.venue, str(e) or type(e).__name__)

        logger.info(
            f"Quote from {self.venue.label}: {quote.sell_amount} {quote.sell_asset} -> "
            f"{quote.buy_amount} {quote.buy_asset} (rate: {quote.rate:.6f})"
        )
        return VenueOption.of(quote)
