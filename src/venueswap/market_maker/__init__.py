"""Market maker venue: peer-to-peer on-chain offers.

Quotes and offer selection come from the RPQ service; trades settle by
taking offers on the manager contract.
"""

from venueswap.market_maker.connector import MarketMakerConnector
from venueswap.market_maker.executor import OnChainOfferExecutor, map_contract_error
from venueswap.market_maker.models import (
    BestOffersResult,
    Offer,
    OfferStatus,
    OfferType,
    PricingType,
    SelectedOffer,
    cancel,
    fill,
)
from venueswap.market_maker.rpq import RPQClient

__all__ = [
    "BestOffersResult",
    "MarketMakerConnector",
    "Offer",
    "OfferStatus",
    "OfferType",
    "OnChainOfferExecutor",
    "PricingType",
    "RPQClient",
    "SelectedOffer",
    "cancel",
    "fill",
    "map_contract_error",
]
