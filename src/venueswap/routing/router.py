"""Venue selection.

``select_venue`` is a pure function: the same options, strategy and side
always give the same answer, and it performs no I/O.

Rates are always buy amount per sell amount, so the comparison flips with
the side:
- buy (caller fixed what they spend): lower rate wins
- sell: higher rate wins
Ties go to the first option.
"""

import logging

from venueswap.exceptions import NoLiquidityError
from venueswap.models import RoutingStrategy, Venue
from venueswap.routing.base import VenueOption

logger = logging.getLogger(__name__)

_ONLY = {
    RoutingStrategy.MARKET_MAKER_ONLY: Venue.MARKET_MAKER,
    RoutingStrategy.CROSS_CHAIN_ACCESS_ONLY: Venue.CROSS_CHAIN_ACCESS,
}

_FIRST = {
    RoutingStrategy.MARKET_MAKER_FIRST: Venue.MARKET_MAKER,
    RoutingStrategy.CROSS_CHAIN_ACCESS_FIRST: Venue.CROSS_CHAIN_ACCESS,
}


def _is_available(option: VenueOption) -> bool:
    return option.available and option.quote is not None


def _pick(venue: Venue, option_a: VenueOption, option_b: VenueOption) -> VenueOption:
    """Return whichever option belongs to ``venue``."""
    if option_a.venue == venue:
        return option_a
    if option_b.venue == venue:
        return option_b
    raise ValueError(f"No option for venue {venue.value}")


def select_venue(
    option_a: VenueOption,
    option_b: VenueOption,
    strategy: RoutingStrategy,
    is_buy: bool,
) -> VenueOption:
    """
    Select the venue to execute on.

    Args:
        option_a: First option (wins best-price ties)
        option_b: Second option
        strategy: Routing strategy
        is_buy: True if the caller fixed the amount they spend

    Returns:
        The selected option (always available)

    Raises:
        NoLiquidityError: no acceptable venue is available
    """
    logger.debug(f"Routing with strategy: {strategy.value}")

    a_available = _is_available(option_a)
    b_available = _is_available(option_b)

    if not a_available and not b_available:
        errors = [
            f"{option.venue.label}: {option.error}"
            for option in (option_a, option_b)
            if option.error
        ]
        raise NoLiquidityError(f"No venues available. {'; '.join(errors)}")

    if strategy in _ONLY:
        named = _pick(_ONLY[strategy], option_a, option_b)
        if not _is_available(named):
            raise NoLiquidityError(f"{named.venue.label} not available: {named.error}")
        logger.info(f"Selected: {named.venue.label} ({strategy.value} strategy)")
        return named

    if strategy in _FIRST:
        named = _pick(_FIRST[strategy], option_a, option_b)
        if _is_available(named):
            logger.info(f"Selected: {named.venue.label} ({strategy.value} strategy)")
            return named
        other = _pick(named.venue.other, option_a, option_b)
        logger.info(f"Selected: {other.venue.label} (fallback from {named.venue.label})")
        return other

    if strategy is not RoutingStrategy.BEST_PRICE:
        raise ValueError(f"Unknown routing strategy: {strategy}")

    if a_available and not b_available:
        logger.info(f"Selected: {option_a.venue.label} (only available)")
        return option_a
    if b_available and not a_available:
        logger.info(f"Selected: {option_b.venue.label} (only available)")
        return option_b

    rate_a = option_a.rate
    rate_b = option_b.rate
    logger.info(
        f"Comparing rates - {option_a.venue.label}: {rate_a}, {option_b.venue.label}: {rate_b}"
    )

    if is_buy:
        selected = option_a if rate_a <= rate_b else option_b
    else:
        selected = option_a if rate_a >= rate_b else option_b

    side = "buy" if is_buy else "sell"
    logger.info(f"Selected: {selected.venue.label} (better {side} rate: {selected.rate})")
    return selected
