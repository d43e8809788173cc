"""Market maker offer models and offer lifecycle rules.

Offer lifecycle:
    PartialOffer: NotTaken -> PartiallyTaken -> ... -> Taken
    BlockOffer:   NotTaken -> Taken (filled in full)
    Cancelled is reachable by the maker from NotTaken or PartiallyTaken.
    Taken and Cancelled are terminal.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from venueswap.exceptions import (
    InsufficientOfferBalanceError,
    OfferExpiredError,
    OfferInactiveError,
    UnauthorizedError,
)


class OfferType(str, Enum):
    PARTIAL = "PartialOffer"
    BLOCK = "BlockOffer"


class OfferStatus(str, Enum):
    NOT_TAKEN = "NotTaken"
    PARTIALLY_TAKEN = "PartiallyTaken"
    TAKEN = "Taken"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OfferStatus.TAKEN, OfferStatus.CANCELLED)


class PricingType(str, Enum):
    FIXED = "FixedPricing"
    DYNAMIC = "DynamicPricing"


def _decimal(value, default: str = "0") -> Decimal:
    if value is None or value == "":
        return Decimal(default)
    return Decimal(str(value))


@dataclass
class OfferAsset:
    """Token leg of an offer."""

    address: str
    symbol: str = ""
    name: str = ""
    decimals: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "OfferAsset":
        decimals = data.get("decimals")
        return cls(
            address=data.get("address", ""),
            symbol=data.get("symbol", ""),
            name=data.get("name", ""),
            decimals=int(decimals) if decimals is not None else None,
        )


@dataclass
class OfferPrice:
    pricing_type: PricingType
    unit_price: Optional[Decimal] = None
    percentage: Optional[Decimal] = None
    percentage_type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "OfferPrice":
        return cls(
            pricing_type=PricingType(data.get("pricingType", PricingType.FIXED.value)),
            unit_price=_decimal(data["unitPrice"]) if data.get("unitPrice") else None,
            percentage=_decimal(data["percentage"]) if data.get("percentage") is not None else None,
            percentage_type=data.get("percentageType"),
        )


@dataclass
class Offer:
    """A maker offer as listed by the RPQ service."""

    id: str
    maker: str
    deposit_asset: OfferAsset
    withdrawal_asset: OfferAsset
    amount_in: Decimal
    amount_out: Decimal
    available_amount: Decimal
    offer_type: OfferType
    status: OfferStatus
    price: OfferPrice
    expiry_timestamp: int = 0
    authorization_addresses: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Offer":
        return cls(
            id=str(data["id"]),
            maker=data.get("maker", ""),
            deposit_asset=OfferAsset.from_dict(data.get("depositAsset") or {}),
            withdrawal_asset=OfferAsset.from_dict(data.get("withdrawalAsset") or {}),
            amount_in=_decimal(data.get("amountIn")),
            amount_out=_decimal(data.get("amountOut")),
            available_amount=_decimal(data.get("availableAmount")),
            offer_type=OfferType(data.get("offerType", OfferType.PARTIAL.value)),
            status=OfferStatus(data.get("offerStatus", OfferStatus.NOT_TAKEN.value)),
            price=OfferPrice.from_dict(data.get("offerPrice") or {}),
            expiry_timestamp=int(data.get("expiryTimestamp") or 0),
            authorization_addresses=list(data.get("authorizationAddresses") or []),
        )

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Expiry 0 means the offer never expires."""
        if not self.expiry_timestamp:
            return False
        return (now if now is not None else time.time()) >= self.expiry_timestamp


@dataclass
class SelectedOffer:
    """One offer picked by the best-offers search."""

    id: str
    withdrawal_amount_paid: int
    withdrawal_amount_paid_decimals: int
    offer_type: OfferType
    maker: str
    price_per_unit: Decimal
    pricing_type: PricingType
    deposit_to_withdrawal_rate: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "SelectedOffer":
        rate = data.get("depositToWithdrawalRate")
        return cls(
            id=str(data["id"]),
            withdrawal_amount_paid=int(data["withdrawalAmountPaid"]),
            withdrawal_amount_paid_decimals=int(data.get("withdrawalAmountPaidDecimals") or 18),
            offer_type=OfferType(data.get("offerType", OfferType.PARTIAL.value)),
            maker=data.get("maker", ""),
            price_per_unit=_decimal(data.get("pricePerUnit")),
            pricing_type=PricingType(data.get("pricingType", PricingType.FIXED.value)),
            deposit_to_withdrawal_rate=int(rate) if rate not in (None, "") else None,
        )

    @property
    def is_dynamic(self) -> bool:
        return self.pricing_type == PricingType.DYNAMIC

    @property
    def amount_paid(self) -> Decimal:
        """Withdrawal amount paid, normalized."""
        return Decimal(self.withdrawal_amount_paid) / (
            Decimal(10) ** self.withdrawal_amount_paid_decimals
        )

    @property
    def amount_received(self) -> Decimal:
        """Deposit amount received, normalized (0 when price is 0)."""
        if self.price_per_unit == 0:
            return Decimal("0")
        return self.amount_paid / self.price_per_unit


@dataclass
class BestOffersResult:
    target_amount: str
    total_withdrawal_amount_paid: str
    selected_offers: list[SelectedOffer]
    mode: str

    @classmethod
    def from_dict(cls, data: dict) -> "BestOffersResult":
        return cls(
            target_amount=str(data.get("targetAmount", "0")),
            total_withdrawal_amount_paid=str(data.get("totalWithdrawalAmountPaid", "0")),
            selected_offers=[
                SelectedOffer.from_dict(o) for o in data.get("selectedOffers") or []
            ],
            mode=data.get("mode", ""),
        )


# ======================
# Lifecycle
# ======================


def _ensure_active(offer: Offer) -> None:
    if offer.status.is_terminal:
        raise OfferInactiveError(f"Offer {offer.id} is {offer.status.value}")


def fill(offer: Offer, amount: Decimal, taker: str, now: Optional[float] = None) -> OfferStatus:
    """
    Status an offer moves to when ``taker`` fills ``amount`` of it.

    Raises:
        OfferInactiveError: offer is Taken or Cancelled
        OfferExpiredError: offer is past its expiry
        UnauthorizedError: taker not in a non-empty authorization list
        InsufficientOfferBalanceError: amount exceeds what is available
    """
    _ensure_active(offer)
    if offer.is_expired(now):
        raise OfferExpiredError(f"Offer {offer.id} has expired")

    allowed = {a.lower() for a in offer.authorization_addresses}
    if allowed and taker.lower() not in allowed:
        raise UnauthorizedError(f"{taker} is not authorized to take offer {offer.id}")

    if amount <= 0:
        raise InsufficientOfferBalanceError(f"Fill amount must be positive, got {amount}")
    if amount > offer.available_amount:
        raise InsufficientOfferBalanceError(
            f"Offer {offer.id} has {offer.available_amount} available, requested {amount}"
        )

    if offer.offer_type == OfferType.BLOCK and amount != offer.available_amount:
        raise InsufficientOfferBalanceError(
            f"Block offer {offer.id} must be taken in full ({offer.available_amount})"
        )

    if amount == offer.available_amount:
        return OfferStatus.TAKEN
    return OfferStatus.PARTIALLY_TAKEN


def cancel(offer: Offer, caller: str) -> OfferStatus:
    """Status after the maker cancels. Only the maker may cancel."""
    _ensure_active(offer)
    if caller.lower() != offer.maker.lower():
        raise UnauthorizedError(f"Only the maker can cancel offer {offer.id}")
    return OfferStatus.CANCELLED
