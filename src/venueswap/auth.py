"""Wallet signature authentication.

Flow:
1. Check whether the wallet is registered
2. Request a nonce message (new wallets also accept the terms)
3. Sign the message with the wallet key
4. Log in (registered) or register (new)
5. Store the resulting tokens
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx

from venueswap.exceptions import APIError, AuthenticationError, SigningTimeoutError
from venueswap.http import BaseAPIClient
from venueswap.utils.locks import wallet_auth_lock

logger = logging.getLogger(__name__)

TERMS_HASH = "Terms and Conditions"


@dataclass
class AuthTokens:
    """Access and refresh tokens for one wallet."""

    access_token: str
    refresh_token: str
    expires_at: datetime
    refresh_expires_at: datetime
    address: str

    @property
    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) >= self.expires_at

    @property
    def is_refresh_expired(self) -> bool:
        return datetime.now(timezone.utc) >= self.refresh_expires_at


class InMemoryTokenStorage:
    """Token store keyed by wallet address. Not persistent."""

    def __init__(self):
        self._tokens: dict[str, AuthTokens] = {}

    def save(self, address: str, tokens: AuthTokens) -> None:
        self._tokens[address.lower()] = tokens

    def load(self, address: str) -> Optional[AuthTokens]:
        return self._tokens.get(address.lower())

    def clear(self, address: str) -> None:
        self._tokens.pop(address.lower(), None)


def normalize_private_key(private_key: str) -> str:
    """Ensure a hex private key carries the 0x prefix."""
    private_key = private_key.strip()
    return private_key if private_key.startswith("0x") else f"0x{private_key}"


def _sign_message(private_key: str, message: str) -> str:
    from eth_account import Account
    from eth_account.messages import encode_defunct

    signed = Account.sign_message(encode_defunct(text=message), private_key=private_key)
    signature = signed.signature.hex()
    return signature if signature.startswith("0x") else f"0x{signature}"


class WalletAuth(BaseAPIClient):
    """Authentication client for the venue services."""

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        storage: Optional[InMemoryTokenStorage] = None,
        signing_timeout: float = 60.0,
        **kwargs,
    ):
        super().__init__(base_url, client=client, **kwargs)
        self.storage = storage or InMemoryTokenStorage()
        self.signing_timeout = signing_timeout

    async def check_existence(self, address: str) -> bool:
        """Return True if the wallet is registered."""
        try:
            await self._request("GET", f"/addresses/{address}")
        except APIError as e:
            if e.status_code == 404:
                return False
            raise
        return True

    async def get_nonce(self, address: str, terms: Optional[str] = None) -> str:
        """Request the message to sign."""
        attributes = {"address": address}
        if terms:
            attributes["terms_hash"] = terms

        response = await self._request(
            "POST",
            "/nonce",
            json={"data": {"type": "auth_nonce_request", "attributes": attributes}},
        )
        message = _attributes(response).get("message")
        if not message:
            raise AuthenticationError(f"No nonce message returned for {address}")
        return message

    async def login(self, address: str, signed_message: str) -> dict:
        response = await self._request(
            "POST",
            "/login",
            json={
                "data": {
                    "type": "login_request",
                    "attributes": {
                        "auth_pair": {"address": address, "signed_message": signed_message}
                    },
                }
            },
        )
        return _attributes(response)

    async def register(self, address: str, signed_message: str) -> dict:
        response = await self._request(
            "POST",
            "/register",
            json={
                "data": {
                    "type": "register",
                    "attributes": {
                        "auth_pair": {"address": address, "signed_message": signed_message}
                    },
                }
            },
        )
        return _attributes(response)

    async def sign(self, private_key: str, message: str) -> str:
        """Sign a nonce message, bounded by the signing timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(_sign_message, private_key, message),
                timeout=self.signing_timeout,
            )
        except asyncio.TimeoutError:
            raise SigningTimeoutError(
                f"Signing took longer than {self.signing_timeout:.0f}s"
            ) from None
        except Exception as e:
            raise AuthenticationError(f"Failed to sign message: {e}", error=e) from e

    async def verify(self, private_key: str) -> AuthTokens:
        """
        Run the full handshake and store the tokens.

        Handshakes for the same wallet are serialized because every nonce
        can be used once.

        Args:
            private_key: Wallet private key (hex, with or without 0x)

        Returns:
            AuthTokens for the wallet
        """
        from eth_account import Account

        private_key = normalize_private_key(private_key)
        address = Account.from_key(private_key).address

        async with wallet_auth_lock(address, operation="verify"):
            logger.info(f"Authenticating wallet: {address}")

            exists = await self.check_existence(address)
            nonce = await self.get_nonce(address, None if exists else TERMS_HASH)
            signature = await self.sign(private_key, nonce)

            if exists:
                attrs = await self.login(address, signature)
            else:
                logger.info(f"Registering new wallet: {address}")
                attrs = await self.register(address, signature)

            access_token = attrs.get("access_token")
            if not access_token:
                raise AuthenticationError(f"No access token returned for {address}")

            now = datetime.now(timezone.utc)
            tokens = AuthTokens(
                access_token=access_token,
                refresh_token=attrs.get("refresh_token") or "",
                expires_at=now + timedelta(seconds=int(attrs.get("expires_in") or 0)),
                refresh_expires_at=now
                + timedelta(seconds=int(attrs.get("refresh_expires_in") or 0)),
                address=attrs.get("address") or address,
            )

        self.storage.save(address, tokens)
        logger.info(f"Authenticated {address}, token expires at {tokens.expires_at.isoformat()}")
        return tokens

    def load_tokens(self, address: str) -> Optional[AuthTokens]:
        return self.storage.load(address)

    def clear_tokens(self, address: str) -> None:
        self.storage.clear(address)


def _attributes(response: dict) -> dict:
    return (response.get("data") or {}).get("attributes") or {}
