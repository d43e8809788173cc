"""Error taxonomy for quoting and trading.

Hierarchy:
- TradingError
  - ValidationError: malformed request, raised before any network call
  - AvailabilityError: venue cannot serve this request right now
  - ExecutionError: failure after an execution attempt was submitted
  - ConfirmationTimeoutError: transaction not confirmed within the bound
  - AllVenuesFailedError: primary and fallback executions both failed
"""

from typing import Optional


class TradingError(Exception):
    """Base class for all trading errors."""

    def __init__(self, message: str = "Trade failed", error: Optional[BaseException] = None):
        super().__init__(message)
        self.error = error


class ValidationError(TradingError):
    """Request is malformed (e.g. both or neither amount given)."""

    pass


class ConfigurationError(TradingError):
    """Required configuration is missing or invalid."""

    pass


class APIError(TradingError):
    """HTTP request to a venue service failed."""

    def __init__(self, message: str = "API request failed", status_code: int = 0):
        if status_code:
            message = f"{message} (status: {status_code})"
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_retryable(self) -> bool:
        return self.status_code >= 500 or self.status_code == 429


class AuthenticationError(TradingError):
    """Wallet authentication handshake failed."""

    pass


class SigningTimeoutError(AuthenticationError):
    """Signing the authentication challenge took too long."""

    pass


# ======================
# Availability
# ======================


class AvailabilityError(TradingError):
    """Venue is not available for this request."""

    pass


class NoLiquidityError(AvailabilityError):
    """No venue (or not the required venue) can serve the request."""

    def __init__(self, message: str = "No liquidity available"):
        super().__init__(message)


class QuoteUnavailableError(AvailabilityError):
    """Venue cannot price the requested pair."""

    def __init__(self, message: str = "Quote unavailable"):
        super().__init__(message)


class NoOffersAvailableError(AvailabilityError):
    """Market maker has no offers for the requested pair."""

    def __init__(self, message: str = "No offers available"):
        super().__init__(message)


class PriceFeedNotFoundError(AvailabilityError):
    """No price feeds are published for the network."""

    pass


class InvalidSymbolError(AvailabilityError):
    """Cross-chain access does not know the trading symbol."""

    def __init__(self, message: str = "Invalid symbol"):
        super().__init__(message)


class MarketClosedError(AvailabilityError):
    """Cross-chain access market is outside its trading window."""

    def __init__(self, message: str = "Market is closed"):
        super().__init__(message)


class AccountBlockedError(AvailabilityError):
    """Cross-chain access account may not trade or transfer."""

    def __init__(self, message: str = "Account is blocked"):
        super().__init__(message)


# ======================
# Execution
# ======================


class ExecutionError(TradingError):
    """Execution attempt failed."""

    pass


class TransactionRevertedError(ExecutionError):
    """Transaction was mined but reverted."""

    def __init__(self, reason: str = "Transaction reverted", tx_hash: Optional[str] = None):
        message = f"{reason} (tx: {tx_hash})" if tx_hash else reason
        super().__init__(message)
        self.reason = reason
        self.tx_hash = tx_hash


class InsufficientBalanceError(ExecutionError):
    """Wallet token balance is below the amount to transfer."""

    def __init__(self, required, available, token: str):
        super().__init__(
            f"Insufficient {token} balance: required {required}, available {available}"
        )
        self.required = required
        self.available = available
        self.token = token


class MarketMakerError(ExecutionError):
    """Market maker execution failed."""

    pass


class OfferNotFoundError(MarketMakerError):
    """Offer does not exist on-chain."""

    def __init__(self, message: str = "Offer not found"):
        super().__init__(message)


class OfferInactiveError(MarketMakerError):
    """Offer is fully taken or cancelled."""

    def __init__(self, message: str = "Offer is inactive"):
        super().__init__(message)


class InsufficientOfferBalanceError(MarketMakerError):
    """Offer has less available than the amount requested."""

    def __init__(self, message: str = "Insufficient offer balance"):
        super().__init__(message)


class OfferExpiredError(MarketMakerError):
    """Offer is past its expiry."""

    def __init__(self, message: str = "Offer has expired"):
        super().__init__(message)


class UnauthorizedError(MarketMakerError):
    """Caller is not authorized for the operation."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class CrossChainAccessError(ExecutionError):
    """Cross-chain access execution failed."""

    pass


class InsufficientFundsError(CrossChainAccessError):
    """Buying power or asset balance is too low."""

    def __init__(self, message: str = "Insufficient funds"):
        super().__init__(message)


class OrderFailedError(CrossChainAccessError):
    """Order submission was rejected."""

    def __init__(self, message: str = "Order failed"):
        super().__init__(message)


class SlippageExceededError(CrossChainAccessError):
    """Execution price moved too far from the quoted price."""

    pass


class PartialSettlementError(CrossChainAccessError):
    """Escrow transfer confirmed but the order was not recorded.

    Funds have moved. The pending settlement (including the transfer hash)
    is kept on the error for manual reconciliation.
    """

    def __init__(self, message: str, pending, error: Optional[BaseException] = None):
        super().__init__(f"{message} (transfer tx: {pending.tx_hash})")
        self.pending = pending
        self.error = error

    @property
    def tx_hash(self) -> str:
        return self.pending.tx_hash


class UnconfirmedSettlementError(PartialSettlementError):
    """Escrow transfer was broadcast but its confirmation timed out.

    The transfer may still land. Check the transaction before resubmitting.
    """


# ======================
# Timeouts / aggregate
# ======================


class ConfirmationTimeoutError(TradingError):
    """Transaction confirmation was not observed within the timeout."""

    def __init__(self, tx_hash: str, timeout: float, operation: str = "transaction"):
        super().__init__(
            f"{operation} not confirmed within {timeout:.0f}s (tx: {tx_hash})"
        )
        self.tx_hash = tx_hash
        self.timeout = timeout
        self.operation = operation


class AllVenuesFailedError(TradingError):
    """Both the primary and the fallback execution failed."""

    def __init__(
        self,
        primary_venue,
        primary_error: BaseException,
        fallback_venue,
        fallback_error: BaseException,
    ):
        super().__init__(
            f"Primary ({primary_venue.value}): {primary_error}. "
            f"Fallback ({fallback_venue.value}): {fallback_error}"
        )
        self.primary_venue = primary_venue
        self.primary_error = primary_error
        self.fallback_venue = fallback_venue
        self.fallback_error = fallback_error
