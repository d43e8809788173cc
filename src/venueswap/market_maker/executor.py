"""On-chain offer execution against the market maker manager contract.

When taking an offer the taker pays the offer's withdrawal asset and
receives its deposit asset. The paid token is approved for the manager
contract first when the current allowance is short.
"""

import logging
from decimal import Decimal
from typing import Awaitable, Callable, Optional

from venueswap.chain import ChainClient, to_base_units
from venueswap.exceptions import (
    ConfigurationError,
    ConfirmationTimeoutError,
    ExecutionError,
    InsufficientBalanceError,
    InsufficientOfferBalanceError,
    MarketMakerError,
    OfferExpiredError,
    OfferInactiveError,
    OfferNotFoundError,
    TransactionRevertedError,
    UnauthorizedError,
    ValidationError,
)
from venueswap.market_maker.models import SelectedOffer

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

MARKET_MAKER_MANAGER_ABI = [
    {
        "inputs": [
            {"internalType": "uint256", "name": "offerId", "type": "uint256"},
            {"internalType": "uint256", "name": "withdrawalAmountPaid", "type": "uint256"},
            {"internalType": "address", "name": "affiliate", "type": "address"},
        ],
        "name": "takeOfferFixed",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "offerId", "type": "uint256"},
            {"internalType": "uint256", "name": "withdrawalAmountPaid", "type": "uint256"},
            {"internalType": "uint256", "name": "maximumDepositToWithdrawalRate", "type": "uint256"},
            {"internalType": "address", "name": "affiliate", "type": "address"},
        ],
        "name": "takeOfferDynamic",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "address", "name": "depositToken", "type": "address"},
            {"internalType": "uint256", "name": "depositAmount", "type": "uint256"},
            {"internalType": "address", "name": "withdrawToken", "type": "address"},
            {"internalType": "uint256", "name": "withdrawAmount", "type": "uint256"},
            {"internalType": "bool", "name": "isDynamic", "type": "bool"},
            {"internalType": "uint256", "name": "expiresAt", "type": "uint256"},
        ],
        "name": "makeOffer",
        "outputs": [{"internalType": "uint256", "name": "offerId", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "offerId", "type": "uint256"}],
        "name": "cancelOffer",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "maker", "type": "address"},
            {"indexed": True, "internalType": "uint256", "name": "offerId", "type": "uint256"},
        ],
        "name": "OfferCreated",
        "type": "event",
    },
]

# Revert markers (custom error name, require message) -> error class
_REVERT_MARKERS = [
    (("OfferNotFound", "offer does not exist"), OfferNotFoundError, "Offer not found"),
    (("OfferInactive", "offer is not active"), OfferInactiveError, "Offer is inactive"),
    (
        ("InsufficientBalance", "insufficient balance"),
        InsufficientOfferBalanceError,
        "Insufficient balance",
    ),
    (("OfferExpired", "offer has expired"), OfferExpiredError, "Offer expired"),
    (("Unauthorized", "not authorized"), UnauthorizedError, "Unauthorized"),
]

ManagerAddressProvider = Callable[[int], Awaitable[str]]


def map_contract_error(error: BaseException, operation: str) -> ExecutionError:
    """Translate a contract failure into the matching market maker error.

    A revert with an unrecognized reason stays a TransactionRevertedError.
    """
    message = getattr(error, "reason", None) or str(error)
    for markers, error_cls, label in _REVERT_MARKERS:
        if any(marker in message for marker in markers):
            mapped = error_cls(f"{label} during {operation}: {message}")
            break
    else:
        if isinstance(error, TransactionRevertedError):
            return error
        mapped = MarketMakerError(f"Failed to {operation}: {message}")
    mapped.error = error
    return mapped


def _raise_mapped(error: Exception, operation: str):
    mapped = map_contract_error(error, operation)
    if mapped is error:
        raise error
    raise mapped from error


def parse_offer_id(offer_id: str) -> int:
    """Offer ids arrive as decimal or 0x-prefixed hex strings."""
    value = str(offer_id).strip()
    try:
        if value.lower().startswith("0x"):
            return int(value, 16)
        return int(value)
    except ValueError:
        raise ValidationError(f"Invalid offer id: {offer_id!r}") from None


class OnChainOfferExecutor:
    """Takes, makes and cancels offers on the manager contract."""

    def __init__(
        self,
        chain: ChainClient,
        manager_address_provider: ManagerAddressProvider,
        affiliate: Optional[str] = None,
    ):
        self.chain = chain
        self._manager_address_provider = manager_address_provider
        self.affiliate = affiliate or ZERO_ADDRESS
        self._manager_address: Optional[str] = None

    async def manager_address(self) -> str:
        if self._manager_address is None:
            try:
                address = await self._manager_address_provider(self.chain.chain_id)
            except ConfigurationError as e:
                raise MarketMakerError(
                    f"Market Maker Manager contract not deployed on {self.chain.network.slug}: {e}",
                    error=e,
                ) from e
            if not address or address.lower() == ZERO_ADDRESS:
                raise MarketMakerError(
                    f"Market Maker Manager contract not deployed on {self.chain.network.slug}"
                )
            self._manager_address = address
            logger.info(f"Market Maker Manager contract: {address}")
        return self._manager_address

    async def _contract(self):
        return self.chain.contract(await self.manager_address(), MARKET_MAKER_MANAGER_ABI)

    async def ensure_allowance(self, token: str, amount: int) -> Optional[str]:
        """Approve the manager for ``amount`` smallest units of ``token`` if short."""
        return await self.chain.ensure_allowance(token, await self.manager_address(), amount)

    async def _submit(self, fn, operation: str):
        tx_hash = await self.chain.send_transaction(fn, operation=operation)
        receipt = await self.chain.wait_for_receipt(tx_hash, operation=operation)
        return tx_hash, receipt

    async def take_offer(self, offer: SelectedOffer, paid_asset: str) -> str:
        """
        Take an offer, paying ``offer.withdrawal_amount_paid`` of ``paid_asset``.

        Args:
            offer: Offer selected by the best-offers search
            paid_asset: Token the taker pays (the offer's withdrawal asset)

        Returns:
            Transaction hash of the confirmed take

        Raises:
            MarketMakerError (or a subclass) for contract failures
            ConfirmationTimeoutError if the take is not confirmed in time
        """
        from web3 import Web3

        offer_id = parse_offer_id(offer.id)
        if offer.is_dynamic and offer.deposit_to_withdrawal_rate is None:
            raise MarketMakerError(f"Dynamic offer {offer.id} missing depositToWithdrawalRate")

        kind = "dynamic" if offer.is_dynamic else "fixed"
        operation = f"take {kind} offer"
        affiliate = Web3.to_checksum_address(self.affiliate)

        try:
            await self.ensure_allowance(paid_asset, offer.withdrawal_amount_paid)
            contract = await self._contract()
            if offer.is_dynamic:
                logger.info(
                    f"Taking dynamic offer {offer.id} with {offer.withdrawal_amount_paid} units "
                    f"(max rate: {offer.deposit_to_withdrawal_rate})"
                )
                fn = contract.functions.takeOfferDynamic(
                    offer_id,
                    offer.withdrawal_amount_paid,
                    offer.deposit_to_withdrawal_rate,
                    affiliate,
                )
            else:
                logger.info(f"Taking fixed offer {offer.id} with {offer.withdrawal_amount_paid} units")
                fn = contract.functions.takeOfferFixed(
                    offer_id, offer.withdrawal_amount_paid, affiliate
                )
            tx_hash, _ = await self._submit(fn, operation)
        except (MarketMakerError, ConfirmationTimeoutError, InsufficientBalanceError):
            raise
        except Exception as e:
            _raise_mapped(e, operation)

        logger.info(f"Took {kind} offer {offer.id}: {tx_hash}")
        return tx_hash

    async def make_offer(
        self,
        deposit_asset: str,
        deposit_amount: Decimal,
        withdrawal_asset: str,
        withdrawal_amount: Decimal,
        is_dynamic: bool = False,
        expires_at: Optional[int] = None,
    ) -> tuple[str, str]:
        """
        Create an offer depositing ``deposit_amount`` of ``deposit_asset``.

        Returns:
            (tx_hash, offer_id); offer_id is "0" when the receipt carries no
            OfferCreated event
        """
        from web3 import Web3

        operation = "make offer"
        logger.info(
            f"Creating {'dynamic' if is_dynamic else 'fixed'} offer: "
            f"{deposit_amount} {deposit_asset} -> {withdrawal_amount} {withdrawal_asset}"
        )

        try:
            deposit_raw = to_base_units(deposit_amount, await self.chain.get_decimals(deposit_asset))
            withdrawal_raw = to_base_units(
                withdrawal_amount, await self.chain.get_decimals(withdrawal_asset)
            )
            await self.ensure_allowance(deposit_asset, deposit_raw)

            contract = await self._contract()
            fn = contract.functions.makeOffer(
                Web3.to_checksum_address(deposit_asset),
                deposit_raw,
                Web3.to_checksum_address(withdrawal_asset),
                withdrawal_raw,
                is_dynamic,
                int(expires_at or 0),
            )
            tx_hash, receipt = await self._submit(fn, operation)
        except (MarketMakerError, ConfirmationTimeoutError, InsufficientBalanceError):
            raise
        except Exception as e:
            _raise_mapped(e, operation)

        offer_id = self._created_offer_id(contract, receipt)
        logger.info(f"Created offer {offer_id}: {tx_hash}")
        return tx_hash, offer_id

    @staticmethod
    def _created_offer_id(contract, receipt) -> str:
        from web3.logs import DISCARD

        for event in contract.events.OfferCreated().process_receipt(receipt, errors=DISCARD):
            return str(event["args"]["offerId"])
        return "0"

    async def cancel_offer(self, offer_id: str) -> str:
        """Cancel an offer. Only its maker can do this."""
        operation = "cancel offer"
        parsed = parse_offer_id(offer_id)
        logger.info(f"Cancelling offer {offer_id}")

        try:
            contract = await self._contract()
            tx_hash, _ = await self._submit(contract.functions.cancelOffer(parsed), operation)
        except (MarketMakerError, ConfirmationTimeoutError):
            raise
        except Exception as e:
            _raise_mapped(e, operation)

        logger.info(f"Cancelled offer {offer_id}: {tx_hash}")
        return tx_hash
