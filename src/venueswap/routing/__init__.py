"""Routing module for venue selection.

Venues:
- Market Maker: peer-to-peer on-chain offers
- Cross-Chain Access: stock market bridge settled through an escrow transfer
"""

from venueswap.models import RoutingStrategy
from venueswap.routing.base import VenueConnector, VenueOption
from venueswap.routing.router import select_venue

__all__ = [
    "RoutingStrategy",
    "VenueConnector",
    "VenueOption",
    "select_venue",
]
