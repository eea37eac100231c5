"""Storage Uploader state machine.

Flow:
    IDLE -> CHECK_WALLET -> (CONNECT) -> BUILD_TRANSACTION -> CHECK_BALANCE
         -> SIGN -> POST -> DONE

Any error moves the attempt to FAILED and propagates with its stage and
the note id / pointer filled in. Nothing is signed before the balance check
passes, and nothing is posted before signing succeeds.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from elysium_notes.core.retry import RetryPolicy, call_with_retry
from elysium_notes.storage.balance import BalanceGuard
from elysium_notes.storage.network import StorageNetwork
from elysium_notes.types import (
    APP_NAME,
    APP_VERSION,
    CONTENT_TYPE,
    POST_SUCCESS_STATUSES,
    ElysiumError,
    NetworkPostError,
    SigningError,
    TransactionBuildError,
    UploadReceipt,
    UploadStage,
    UserCancelledError,
)
from elysium_notes.types.transaction import StorageTransaction
from elysium_notes.wallet.base import WalletCapability, is_cancellation
from elysium_notes.wallet.session import WalletSessionManager

logger = logging.getLogger(__name__)


@dataclass
class UploadAttempt:
    """Trace of one pass through the state machine."""
    note_id: Optional[int] = None
    stage: UploadStage = UploadStage.IDLE
    stages: list[UploadStage] = field(default_factory=list)
    pointer: Optional[str] = None
    error: Optional[ElysiumError] = None

    def advance(self, stage: UploadStage) -> None:
        self.stage = stage
        self.stages.append(stage)

    @property
    def failed(self) -> bool:
        return self.stage is UploadStage.FAILED


class StorageUploader:
    """Uploads opaque envelope bytes to the storage network.

    Example:
        >>> uploader = StorageUploader(gateway, WalletSessionManager(wallet), BalanceGuard(gateway))
        >>> receipt = await uploader.upload(envelope.to_bytes(), note_id=7)
        >>> receipt.pointer
    """

    def __init__(
        self,
        storage: StorageNetwork,
        sessions: WalletSessionManager,
        balance: BalanceGuard,
        *,
        post_policy: RetryPolicy = RetryPolicy(max_attempts=3, base_delay=1.0, per_attempt_timeout=30.0),
        app_name: str = APP_NAME,
        app_version: str = APP_VERSION,
        content_type: str = CONTENT_TYPE,
    ):
        self._storage = storage
        self._sessions = sessions
        self._balance = balance
        self._post_policy = post_policy
        self._app_name = app_name
        self._app_version = app_version
        self._content_type = content_type
        self._last_attempt: Optional[UploadAttempt] = None

    @property
    def last_attempt(self) -> Optional[UploadAttempt]:
        return self._last_attempt

    async def upload(
        self,
        data: bytes,
        *,
        note_id: Optional[int] = None,
        on_stage: Optional[Callable[[UploadStage], None]] = None,
    ) -> UploadReceipt:
        """Run the full upload flow for ``data``.

        Args:
            data: Envelope bytes (nonce ++ ciphertext)
            note_id: Note the data belongs to, used for error context
            on_stage: Called on every stage transition

        Returns:
            UploadReceipt whose pointer is the transaction id

        Raises:
            WalletUnavailableError, PermissionDeniedError, UserCancelledError,
            TransactionBuildError, InsufficientFundsError, SigningError,
            NetworkPostError
        """
        attempt = UploadAttempt(note_id=note_id)
        self._last_attempt = attempt

        def enter(stage: UploadStage) -> None:
            attempt.advance(stage)
            logger.debug(f"Upload of note {note_id}: {stage.value}")
            if on_stage is not None:
                on_stage(stage)

        try:
            session = await self._sessions.acquire(on_stage=enter)

            enter(UploadStage.BUILD_TRANSACTION)
            tx = await self._build(data, session.address)

            enter(UploadStage.CHECK_BALANCE)
            required = self._balance.required_for(tx.reward)
            await self._balance.ensure_funded(session.address, required)

            enter(UploadStage.SIGN)
            signed = await self._sign(session.wallet, tx)
            attempt.pointer = signed.id

            enter(UploadStage.POST)
            await self._post(signed)
        except ElysiumError as e:
            e.with_context(stage=attempt.stage.value, note_id=note_id, pointer=attempt.pointer)
            attempt.error = e
            attempt.advance(UploadStage.FAILED)
            logger.warning(f"Upload of note {note_id} failed at {e.stage}: {e}")
            raise

        enter(UploadStage.DONE)
        logger.info(f"Uploaded note {note_id} as {signed.id} ({tx.data_size} bytes)")
        return UploadReceipt(
            pointer=signed.id,
            address=session.address,
            data_size=tx.data_size,
            reward_winston=tx.reward,
            stages=[stage.value for stage in attempt.stages],
        )

    async def _build(self, data: bytes, address: str) -> StorageTransaction:
        try:
            tx = await self._storage.create_transaction(data)
        except Exception as e:
            raise TransactionBuildError(str(e) or type(e).__name__) from e

        tx.add_tag("Content-Type", self._content_type)
        tx.add_tag("App-Name", self._app_name)
        tx.add_tag("App-Version", self._app_version)
        tx.add_tag("Uploaded-By", address)
        return tx

    async def _sign(self, wallet: WalletCapability, tx: StorageTransaction) -> StorageTransaction:
        try:
            return await wallet.sign(tx)
        except ElysiumError:
            raise
        except Exception as e:
            if is_cancellation(e):
                raise UserCancelledError(str(e)) from e
            raise SigningError(str(e) or type(e).__name__) from e

    async def _post(self, signed: StorageTransaction) -> None:
        async def post_once() -> None:
            try:
                response = await self._storage.post(signed)
            except ElysiumError:
                raise
            except Exception as e:
                raise NetworkPostError(reason=str(e) or type(e).__name__, pointer=signed.id) from e
            if response.status not in POST_SUCCESS_STATUSES:
                raise NetworkPostError(response.status, response.reason, pointer=signed.id)

        try:
            await call_with_retry(
                post_once,
                self._post_policy,
                retry_on=(NetworkPostError,),
                label=f"post of {signed.id}",
            )
        except asyncio.TimeoutError as e:
            raise NetworkPostError(reason="timed out", pointer=signed.id) from e
