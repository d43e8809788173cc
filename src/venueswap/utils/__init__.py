"""Utility modules."""

from venueswap.utils.locks import (
    LockTimeoutError,
    clear_wallet_locks,
    get_wallet_lock,
    wallet_auth_lock,
)

__all__ = [
    "LockTimeoutError",
    "clear_wallet_locks",
    "get_wallet_lock",
    "wallet_auth_lock",
]
