"""Ledger program capability and its Solana JSON-RPC client.

Reads go straight to the RPC node. Writes are built here as instructions and
handed to an injected LedgerSigner (the user's ledger wallet), which signs and
submits them; the resulting signature is then confirmed over RPC.
"""

from __future__ import annotations

import asyncio
import base64
import itertools
import logging
from typing import Any, Optional, Protocol, Sequence

import httpx
from solders.instruction import Instruction
from solders.pubkey import Pubkey

from elysium_notes.core.retry import RetryPolicy, call_with_retry
from elysium_notes.ledger.layout import (
    RECORD_DISCRIMINATOR,
    PubkeyLike,
    build_initialize_instruction,
    build_set_permanent_instruction,
    decode_record,
    to_pubkey,
)
from elysium_notes.types import (
    DEFAULT_RPC_URL,
    NOTE_PROGRAM_ID,
    OWNER_OFFSET,
    AnchorRecord,
    LedgerError,
    RecordLayoutError,
)

logger = logging.getLogger(__name__)


class LedgerSigner(Protocol):
    """Signs and submits ledger instructions on behalf of the owner."""

    @property
    def public_key(self) -> Pubkey:
        ...

    async def send(self, instructions: Sequence[Instruction]) -> str:
        """Sign, submit and return the transaction signature."""
        ...


class LedgerProgram(Protocol):
    """Protocol for the note program on the public ledger."""

    async def create_record(
        self, signer: LedgerSigner, note_id: int, pointer: str, timestamp: int
    ) -> str:
        ...

    async def set_permanent(self, signer: LedgerSigner, note_id: int) -> str:
        ...

    async def query_records(self, owner: str) -> list[AnchorRecord]:
        """All records owned by ``owner``, in no particular order."""
        ...

    async def get_record(self, address: str) -> Optional[AnchorRecord]:
        """The record stored at slot ``address``, or None if the slot is empty."""
        ...


class _PendingSignature(Exception):
    """Signature not yet confirmed."""


class SolanaRpcLedger:
    """LedgerProgram over Solana JSON-RPC.

    Example:
        >>> async with SolanaRpcLedger(DEVNET_RPC_URL) as ledger:
        ...     records = await ledger.query_records(owner_address)
    """

    CONFIRMED = frozenset({"confirmed", "finalized"})

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        program_id: PubkeyLike = NOTE_PROGRAM_ID,
        *,
        confirm_policy: RetryPolicy = RetryPolicy(max_attempts=10, base_delay=0.5, per_attempt_timeout=10.0, max_delay=4.0),
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._rpc_url = rpc_url
        self._program_id = to_pubkey(program_id)
        self._confirm_policy = confirm_policy
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._ids = itertools.count(1)

    @property
    def program_id(self) -> Pubkey:
        return self._program_id

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = await self._client.post(self._rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LedgerError(f"{method} request failed: {e}") from e

        if body.get("error"):
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise LedgerError(f"{method} failed: {message}")
        return body.get("result")

    @staticmethod
    def _account_bytes(account: dict) -> bytes:
        data = account.get("data")
        if isinstance(data, list) and data:
            return base64.b64decode(data[0])
        raise RecordLayoutError(f"unexpected account data encoding {data!r}")

    # =========================================================================
    # Reads
    # =========================================================================

    async def query_records(self, owner: str) -> list[AnchorRecord]:
        try:
            owner_key = to_pubkey(owner)
        except ValueError as e:
            raise LedgerError(f"invalid owner address {owner!r}: {e}", stage="query") from e
        filters = [
            {
                "memcmp": {
                    "offset": 0,
                    "bytes": base64.b64encode(RECORD_DISCRIMINATOR).decode("ascii"),
                    "encoding": "base64",
                }
            },
            {"memcmp": {"offset": OWNER_OFFSET, "bytes": str(owner_key)}},
        ]
        result = await self._rpc(
            "getProgramAccounts",
            [str(self._program_id), {"encoding": "base64", "filters": filters}],
        )

        records = []
        for entry in result or []:
            address = entry.get("pubkey")
            try:
                records.append(decode_record(self._account_bytes(entry["account"]), address))
            except RecordLayoutError as e:
                logger.warning(f"Ignoring malformed record {address}: {e}")
        logger.debug(f"Found {len(records)} records for {owner_key}")
        return records

    async def get_record(self, address: str) -> Optional[AnchorRecord]:
        result = await self._rpc(
            "getAccountInfo", [str(to_pubkey(address)), {"encoding": "base64"}]
        )
        account = (result or {}).get("value")
        if account is None:
            return None
        return decode_record(self._account_bytes(account), address)

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_record(
        self, signer: LedgerSigner, note_id: int, pointer: str, timestamp: int
    ) -> str:
        instruction = build_initialize_instruction(
            signer.public_key, note_id, pointer, timestamp, self._program_id
        )
        signature = await signer.send([instruction])
        await self.confirm(signature)
        return signature

    async def set_permanent(self, signer: LedgerSigner, note_id: int) -> str:
        instruction = build_set_permanent_instruction(signer.public_key, note_id, self._program_id)
        signature = await signer.send([instruction])
        await self.confirm(signature)
        return signature

    async def confirm(self, signature: str) -> None:
        """Wait until ``signature`` is confirmed.

        Raises:
            LedgerError: If the transaction failed or was never confirmed
        """

        async def poll() -> None:
            result = await self._rpc(
                "getSignatureStatuses", [[signature], {"searchTransactionHistory": True}]
            )
            status = ((result or {}).get("value") or [None])[0]
            if status is None:
                raise _PendingSignature(signature)
            if status.get("err") is not None:
                raise LedgerError(f"transaction {signature} failed: {status['err']}")
            if status.get("confirmationStatus") not in self.CONFIRMED:
                raise _PendingSignature(signature)

        try:
            await call_with_retry(
                poll,
                self._confirm_policy,
                retry_on=(_PendingSignature,),
                label=f"confirmation of {signature}",
            )
        except (_PendingSignature, asyncio.TimeoutError) as e:
            raise LedgerError(f"transaction {signature} was not confirmed") from e
        logger.debug(f"Confirmed {signature}")

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "SolanaRpcLedger":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
