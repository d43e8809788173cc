"""Base HTTP client with retry and exponential backoff.

Server errors (5xx), rate limiting (429) and transport failures are retried
up to ``max_attempts`` times. Everything else raises ``APIError`` at once.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from venueswap.exceptions import APIError

logger = logging.getLogger(__name__)


class BaseAPIClient:
    """JSON API client sharing one ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        max_attempts: int = 3,
        initial_delay: float = 2.0,
        max_delay: float = 10.0,
        multiplier: float = 2.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers: dict[str, str] = {"Content-Type": "application/json"}
        self.auth_token: Optional[str] = None
        self.max_attempts = max(1, max_attempts)
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.multiplier = multiplier

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def set_auth_token(self, token: str) -> None:
        """Set bearer token for subsequent requests."""
        self.auth_token = token
        self.headers["Authorization"] = f"Bearer {token}"

    def _delay(self, attempt: int) -> float:
        return min(self.initial_delay * (self.multiplier ** attempt), self.max_delay)

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[dict] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> dict:
        """
        Make an HTTP request and return the decoded JSON body.

        Raises:
            APIError: non-2xx response or exhausted retries
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        if params:
            params = {k: str(v) for k, v in params.items() if v is not None}

        for attempt in range(self.max_attempts):
            try:
                logger.debug(f"[API Request] {method} {url} params={params}")
                response = await self._client.request(
                    method,
                    url,
                    headers=self.headers,
                    params=params,
                    json=json if method != "GET" else None,
                )
                logger.debug(f"[API Response] {method} {url} -> {response.status_code}")

                if response.is_success:
                    return response.json()

                error = APIError(self._error_message(response), response.status_code)

            except httpx.TransportError as e:
                error = APIError(f"{type(e).__name__}: {e}")
                retryable = True
            else:
                retryable = error.is_retryable

            if retryable and attempt < self.max_attempts - 1:
                delay = self._delay(attempt)
                logger.warning(f"{method} {url} failed ({error}), retrying in {delay:.1f}s")
                await asyncio.sleep(delay)
                continue

            raise error

        raise APIError("Max retries exceeded")

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        message = f"Request failed with status {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            return message
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return message

    async def close(self) -> None:
        """Close the underlying client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
