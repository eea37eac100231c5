"""Storage network capability and its Arweave gateway client.

The pipeline talks to the storage network only through StorageNetwork.
ArweaveGateway implements it over HTTP with httpx; tests substitute fakes.

Gateway endpoints used:
    GET  /tx_anchor                 -> anchor for last_tx
    GET  /price/{size}              -> fee in winston for ``size`` data bytes
    POST /tx                        -> submit signed transaction
    GET  /{id}                      -> raw transaction data
    GET  /wallet/{address}/balance  -> balance in winston
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from elysium_notes.types import DEFAULT_GATEWAY_URL, FetchError
from elysium_notes.types.transaction import StorageTransaction

logger = logging.getLogger(__name__)


@dataclass
class PostResponse:
    """Gateway reply to a transaction post."""
    status: int
    id: str
    reason: str = ""


class StorageNetwork(Protocol):
    """Protocol for the durable storage network."""

    async def create_transaction(self, data: bytes) -> StorageTransaction:
        """Build an unsigned data transaction for ``data``."""
        ...

    async def post(self, signed: StorageTransaction) -> PostResponse:
        """Submit a signed transaction."""
        ...

    async def fetch(self, pointer: str) -> bytes:
        """Fetch the raw data stored under ``pointer``."""
        ...

    async def get_balance(self, address: str) -> int:
        """Balance of ``address`` in winston."""
        ...


class ArweaveGateway:
    """HTTP client for an Arweave gateway.

    Example:
        >>> async with ArweaveGateway("https://arweave.net") as gateway:
        ...     data = await gateway.fetch(pointer)
    """

    def __init__(
        self,
        base_url: str = DEFAULT_GATEWAY_URL,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize gateway client.

        Args:
            base_url: Gateway base URL
            timeout: HTTP timeout in seconds
            client: Preconfigured AsyncClient (the gateway then does not own it)
        """
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def create_transaction(self, data: bytes) -> StorageTransaction:
        """Build an unsigned transaction with a fresh anchor and price.

        Raises:
            httpx.HTTPError: If the gateway cannot be reached or refuses
        """
        anchor_response = await self._client.get("/tx_anchor")
        anchor_response.raise_for_status()
        price_response = await self._client.get(f"/price/{len(data)}")
        price_response.raise_for_status()

        tx = StorageTransaction(
            data=bytes(data),
            last_tx=anchor_response.text.strip(),
            reward=int(price_response.text.strip()),
        )
        logger.debug(f"Built transaction: {tx.data_size} bytes, reward {tx.reward} winston")
        return tx

    async def post(self, signed: StorageTransaction) -> PostResponse:
        response = await self._client.post("/tx", json=signed.to_dict())
        return PostResponse(
            status=response.status_code,
            id=signed.id,
            reason=response.reason_phrase or response.text[:200],
        )

    async def fetch(self, pointer: str) -> bytes:
        """Fetch transaction data.

        Raises:
            FetchError: On transport errors or non-200 responses
        """
        try:
            response = await self._client.get(f"/{pointer}")
        except httpx.HTTPError as e:
            raise FetchError(pointer, reason=str(e)) from e
        if response.status_code != 200:
            raise FetchError(pointer, status=response.status_code)
        return response.content

    async def get_balance(self, address: str) -> int:
        response = await self._client.get(f"/wallet/{address}/balance")
        response.raise_for_status()
        return int(response.text.strip())

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ArweaveGateway":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
