"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment
os.environ["VENUESWAP_ENVIRONMENT"] = "dev"
os.environ["VENUESWAP_DEBUG"] = "true"
os.environ.pop("VENUESWAP_PRIVATE_KEY", None)

from venueswap.chain import clear_decimals_cache
from venueswap.models import Network
from venueswap.utils.locks import clear_wallet_locks

# Well-known throwaway key from the web3 documentation
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
WALLET_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"
ASSET_ADDRESS = "0x1111111111111111111111111111111111111111"
ESCROW_ADDRESS = "0x2222222222222222222222222222222222222222"
MANAGER_ADDRESS = "0x3333333333333333333333333333333333333333"
TX_HASH = "0x" + "ab" * 32

# Wednesday afternoon and Saturday afternoon, UTC
MARKET_OPEN_TIME = datetime(2025, 1, 15, 16, 0, tzinfo=timezone.utc)
MARKET_CLOSED_TIME = datetime(2025, 1, 18, 16, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def reset_module_state():
    """Clear process-wide caches between tests."""
    clear_wallet_locks()
    clear_decimals_cache()
    yield
    clear_wallet_locks()
    clear_decimals_cache()


@pytest.fixture
def usdc_address() -> str:
    return Network.POLYGON.usdc_address


@pytest.fixture
def mock_chain():
    """Chain client double with confirmed transfers and ample balances."""
    chain = MagicMock()
    chain.network = Network.POLYGON
    chain.chain_id = int(Network.POLYGON)
    chain.address = WALLET_ADDRESS
    chain.get_balance = AsyncMock(return_value=Decimal("1000"))
    chain.get_decimals = AsyncMock(return_value=6)
    chain.transfer = AsyncMock(return_value=TX_HASH)
    chain.ensure_allowance = AsyncMock(return_value=None)
    chain.send_transaction = AsyncMock(return_value=TX_HASH)
    chain.wait_for_receipt = AsyncMock(return_value={"status": 1, "blockNumber": 100})
    return chain
