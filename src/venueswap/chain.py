"""EVM chain client: ERC20 reads/writes, transaction signing and confirmation.

Amounts passed in and out are normalized ``Decimal`` values; conversion to
and from smallest units uses the token's on-chain decimals, cached per
process by ``(chain_id, token address)``.
"""

import logging
from decimal import ROUND_DOWN, Decimal
from typing import Any, Optional

from venueswap.exceptions import (
    ConfirmationTimeoutError,
    InsufficientBalanceError,
    TransactionRevertedError,
)
from venueswap.models import Network

logger = logging.getLogger(__name__)

GAS_BUFFER_MULTIPLIER = 1.2
DEFAULT_GAS_LIMIT = 100_000
DEFAULT_DECIMALS = 18

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "remaining", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
]

# (chain_id, lowercase token address) -> decimals
_decimals_cache: dict[tuple[int, str], int] = {}


def to_base_units(amount: Decimal, decimals: int) -> int:
    """Normalized amount -> smallest units (truncated)."""
    return int((Decimal(amount) * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN))


def from_base_units(value: int, decimals: int) -> Decimal:
    """Smallest units -> normalized amount."""
    return Decimal(int(value)) / (Decimal(10) ** decimals)


def clear_decimals_cache() -> None:
    _decimals_cache.clear()


class ChainClient:
    """Wallet-bound client for one EVM network."""

    def __init__(
        self,
        private_key: str,
        network: Network,
        rpc_url: Optional[str] = None,
        tx_timeout: float = 300.0,
        web3: Any = None,
    ):
        from eth_account import Account

        key = private_key if private_key.startswith("0x") else f"0x{private_key}"
        self._account = Account.from_key(key)
        self.network = network
        self.rpc_url = rpc_url or network.default_rpc_url
        self.tx_timeout = tx_timeout
        self._web3 = web3

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def chain_id(self) -> int:
        return int(self.network)

    @property
    def web3(self):
        """Lazy load async web3 instance."""
        if self._web3 is None:
            from web3 import AsyncHTTPProvider, AsyncWeb3

            self._web3 = AsyncWeb3(AsyncHTTPProvider(self.rpc_url))
        return self._web3

    def contract(self, address: str, abi: list):
        from web3 import Web3

        return self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def token(self, address: str):
        return self.contract(address, ERC20_ABI)

    async def get_decimals(self, token_address: str) -> int:
        """Token decimals, cached per process. Falls back to 18 on failure."""
        key = (self.chain_id, token_address.lower())
        if key in _decimals_cache:
            return _decimals_cache[key]

        try:
            decimals = int(await self.token(token_address).functions.decimals().call())
        except Exception as e:
            logger.warning(f"Failed to get decimals for {token_address}, using default 18: {e}")
            return DEFAULT_DECIMALS

        _decimals_cache[key] = decimals
        return decimals

    async def get_balance(self, token_address: str) -> Decimal:
        """Wallet balance of an ERC20 token (normalized)."""
        raw = await self.token(token_address).functions.balanceOf(self.address).call()
        return from_base_units(raw, await self.get_decimals(token_address))

    async def get_allowance_raw(self, token_address: str, spender: str) -> int:
        from web3 import Web3

        return int(
            await self.token(token_address)
            .functions.allowance(self.address, Web3.to_checksum_address(spender))
            .call()
        )

    async def get_allowance(self, token_address: str, spender: str) -> Decimal:
        raw = await self.get_allowance_raw(token_address, spender)
        return from_base_units(raw, await self.get_decimals(token_address))

    async def approve_raw(self, token_address: str, spender: str, amount: int) -> str:
        """Approve ``amount`` smallest units and wait for confirmation."""
        from web3 import Web3

        logger.info(f"Approving {amount} units of {token_address} for {spender}")
        fn = self.token(token_address).functions.approve(
            Web3.to_checksum_address(spender), int(amount)
        )
        tx_hash = await self.send_transaction(fn, operation="approve")
        await self.wait_for_receipt(tx_hash, operation="approve")
        return tx_hash

    async def ensure_allowance(self, token_address: str, spender: str, amount: int) -> Optional[str]:
        """Approve the spender if the current allowance is below ``amount``.

        Returns the approval tx hash, or None when no approval was needed.
        """
        allowance = await self.get_allowance_raw(token_address, spender)
        if allowance >= amount:
            logger.debug(f"Sufficient allowance for {spender} ({allowance} >= {amount})")
            return None
        return await self.approve_raw(token_address, spender, amount)

    async def transfer(self, token_address: str, to_address: str, amount: Decimal) -> str:
        """Transfer a normalized token amount and wait for confirmation.

        Raises:
            InsufficientBalanceError: wallet balance below amount
            TransactionRevertedError: transfer reverted
            ConfirmationTimeoutError: not confirmed within tx_timeout
        """
        from web3 import Web3

        balance = await self.get_balance(token_address)
        if balance < amount:
            raise InsufficientBalanceError(amount, balance, token_address)

        decimals = await self.get_decimals(token_address)
        raw_amount = to_base_units(amount, decimals)
        logger.info(f"Transferring {amount} ({raw_amount} units) of {token_address} to {to_address}")

        fn = self.token(token_address).functions.transfer(
            Web3.to_checksum_address(to_address), raw_amount
        )
        tx_hash = await self.send_transaction(fn, operation="transfer")
        await self.wait_for_receipt(tx_hash, operation="transfer")
        return tx_hash

    async def _estimate_gas(self, fn, operation: str) -> int:
        from web3.exceptions import ContractLogicError

        try:
            estimate = await fn.estimate_gas({"from": self.address})
        except ContractLogicError as e:
            raise TransactionRevertedError(_revert_message(e)) from e
        except Exception as e:
            logger.warning(f"Gas estimation for {operation} failed, using default: {e}")
            return DEFAULT_GAS_LIMIT
        return int(estimate * GAS_BUFFER_MULTIPLIER)

    async def send_transaction(self, fn, operation: str = "transaction") -> str:
        """Build, sign and broadcast a contract call. Returns the tx hash.

        A call that would revert is rejected at gas estimation with
        TransactionRevertedError, before anything is broadcast.
        """
        from web3 import Web3

        gas = await self._estimate_gas(fn, operation)
        nonce = await self.web3.eth.get_transaction_count(self.address, "pending")
        tx = await fn.build_transaction(
            {
                "from": self.address,
                "nonce": nonce,
                "chainId": self.chain_id,
                "gas": gas,
            }
        )

        signed_tx = self._account.sign_transaction(tx)
        tx_hash = Web3.to_hex(await self.web3.eth.send_raw_transaction(signed_tx.raw_transaction))
        logger.info(f"{operation} sent: {tx_hash}")
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str, operation: str = "transaction"):
        """Wait for a receipt, bounded by tx_timeout.

        Raises:
            ConfirmationTimeoutError: receipt not seen in time
            TransactionRevertedError: receipt status is 0
        """
        from web3.exceptions import TimeExhausted

        try:
            receipt = await self.web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.tx_timeout
            )
        except TimeExhausted:
            raise ConfirmationTimeoutError(tx_hash, self.tx_timeout, operation) from None

        if receipt["status"] == 0:
            reason = await self._revert_reason(tx_hash, receipt)
            raise TransactionRevertedError(reason or f"{operation} reverted", tx_hash)

        logger.info(f"{operation} confirmed in block {receipt['blockNumber']}: {tx_hash}")
        return receipt

    async def _revert_reason(self, tx_hash: str, receipt) -> Optional[str]:
        """Recover a revert reason by replaying the call at the receipt's block."""
        from web3.exceptions import ContractLogicError, Web3Exception

        try:
            tx = await self.web3.eth.get_transaction(tx_hash)
            await self.web3.eth.call(
                {
                    "from": tx["from"],
                    "to": tx["to"],
                    "data": tx["input"],
                    "value": tx.get("value", 0),
                },
                block_identifier=receipt["blockNumber"],
            )
        except ContractLogicError as e:
            return _revert_message(e)
        except Web3Exception as e:
            logger.debug(f"Could not recover revert reason for {tx_hash}: {e}")
        return None


def _revert_message(error: Exception) -> str:
    return getattr(error, "message", None) or str(error) or "execution reverted"
