"""Per-wallet locking for the authentication handshake.

Every handshake consumes a single-use, server-issued challenge tied to the
wallet address. Two handshakes for the same wallet running at once
invalidate each other's challenge, so they must be serialized.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

# Global lock registry: wallet address (lowercase) -> asyncio.Lock
_wallet_locks: dict[str, asyncio.Lock] = {}


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


def get_wallet_lock(address: str) -> asyncio.Lock:
    """Get or create the handshake lock for a wallet address."""
    key = address.lower()
    if key not in _wallet_locks:
        _wallet_locks[key] = asyncio.Lock()
    return _wallet_locks[key]


@asynccontextmanager
async def wallet_auth_lock(
    address: str,
    timeout: Optional[float] = 120.0,
    operation: str = "auth",
):
    """Hold the wallet's handshake lock for the duration of the block.

    Args:
        address: Wallet address
        timeout: Maximum time to wait for the lock (None = wait forever)
        operation: Description for logging

    Example:
        async with wallet_auth_lock(address, operation="market_maker"):
            tokens = await auth.verify(private_key)
    """
    lock = get_wallet_lock(address)

    try:
        if timeout:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        else:
            await lock.acquire()
    except asyncio.TimeoutError:
        logger.warning(f"Auth lock timeout for {address}: {operation}")
        raise LockTimeoutError(
            f"Could not acquire auth lock for {address} within {timeout}s"
        )

    logger.debug(f"Auth lock acquired for {address}: {operation}")
    try:
        yield
    finally:
        lock.release()
        logger.debug(f"Auth lock released for {address}: {operation}")


def clear_wallet_locks() -> None:
    """Clear all wallet locks (useful for testing)."""
    _wallet_locks.clear()
