"""High-level notes client with async and sync interfaces.

Wires the envelope codec, storage uploader, ledger anchor and retrieval
reconciler together behind three operations: upload a note, load an
owner's notes, and check a signing address's funding.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from elysium_notes.config import PipelineConfig
from elysium_notes.core.locks import NoteLockRegistry
from elysium_notes.crypto.envelope import EnvelopeCodec
from elysium_notes.ledger.anchor import LedgerAnchor
from elysium_notes.ledger.program import LedgerProgram, LedgerSigner, SolanaRpcLedger
from elysium_notes.retrieval.reconciler import RetrievalReconciler
from elysium_notes.retrieval.sync import PeriodicReconciler
from elysium_notes.storage.balance import BalanceGuard
from elysium_notes.storage.network import ArweaveGateway, StorageNetwork
from elysium_notes.storage.uploader import StorageUploader
from elysium_notes.types import (
    AnchorState,
    LedgerAnchorError,
    LoadReport,
    PlaintextNote,
    UploadResult,
    UploadStage,
)
from elysium_notes.wallet.base import WalletCapability
from elysium_notes.wallet.session import WalletSessionManager

logger = logging.getLogger(__name__)


class NotesVault:
    """Async notes client with context manager support.

    Basic Usage:
        >>> vault = NotesVault(config, wallet=wallet, ledger_signer=signer)
        >>> async with vault:
        ...     result = await vault.upload_note(note, owner_key, note_id=7)
        ...     notes = await vault.load_notes(owner_address)

    Injected Capabilities:
        >>> vault = NotesVault(TEST_CONFIG, wallet=fake_wallet, storage=fake_storage, ledger=fake_ledger)

    Upload errors propagate. A ledger failure after a successful upload does
    not: the result carries the pointer with ``anchored=False``.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        *,
        wallet: Optional[WalletCapability] = None,
        storage: Optional[StorageNetwork] = None,
        ledger: Optional[LedgerProgram] = None,
        ledger_signer: Optional[LedgerSigner] = None,
    ):
        """Initialize notes client.

        Args:
            config: Pipeline configuration (uses defaults if None)
            wallet: Storage-network signing wallet (None if not installed)
            storage: Storage network (an ArweaveGateway is created if None)
            ledger: Ledger program (a SolanaRpcLedger is created if None)
            ledger_signer: Owner's ledger signer (None disables anchoring)
        """
        self._config = config or PipelineConfig()
        self._config.validate()

        self._owned: list = []
        if storage is None:
            storage = ArweaveGateway(self._config.gateway_url, timeout=self._config.request_timeout)
            self._owned.append(storage)
        if ledger is None:
            ledger = SolanaRpcLedger(
                self._config.rpc_url,
                self._config.program_id,
                confirm_policy=self._config.confirm_policy,
                timeout=self._config.request_timeout,
            )
            self._owned.append(ledger)

        self._storage = storage
        self._ledger = ledger
        self._codec = EnvelopeCodec(self._config.passphrase, self._config.key_scheme)
        self._sessions = WalletSessionManager(wallet, self._config.connect_settle_seconds)
        self._balance = BalanceGuard(storage, self._config.balance_policy, self._config.min_balance_ar)
        self._uploader = StorageUploader(
            storage,
            self._sessions,
            self._balance,
            post_policy=self._config.post_policy,
            app_name=self._config.app_name,
            app_version=self._config.app_version,
            content_type=self._config.content_type,
        )
        self._anchor = LedgerAnchor(ledger, ledger_signer, self._config.program_id)
        self._reconciler = RetrievalReconciler(
            ledger,
            storage,
            self._codec,
            max_concurrent_fetches=self._config.max_concurrent_fetches,
        )
        self._locks = NoteLockRegistry()
        self._syncs: list[PeriodicReconciler] = []

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def uploader(self) -> StorageUploader:
        return self._uploader

    @property
    def anchor(self) -> LedgerAnchor:
        return self._anchor

    @property
    def reconciler(self) -> RetrievalReconciler:
        return self._reconciler

    # =========================================================================
    # Upload
    # =========================================================================

    async def upload_note(
        self,
        note: PlaintextNote,
        owner_public_key: bytes,
        *,
        note_id: Optional[int] = None,
        make_permanent: bool = False,
        on_stage: Optional[Callable[[UploadStage], None]] = None,
    ) -> UploadResult:
        """Encrypt, upload and anchor a note.

        Args:
            note: Note to store
            owner_public_key: Key the envelope is sealed with
            note_id: Ledger note id (defaults to note.note_id; None skips anchoring)
            make_permanent: Also flip the record's permanence flag
            on_stage: Called on every upload stage transition

        Returns:
            UploadResult with the pointer and the anchor outcome

        Raises:
            ElysiumError: Any upload failure (wallet, build, funds, sign, post)
        """
        note_id = note_id if note_id is not None else note.note_id
        if note_id is None:
            return await self._upload(note, owner_public_key, None, False, on_stage)
        async with self._locks.hold(note_id):
            return await self._upload(note, owner_public_key, note_id, make_permanent, on_stage)

    async def _upload(
        self,
        note: PlaintextNote,
        owner_public_key: bytes,
        note_id: Optional[int],
        make_permanent: bool,
        on_stage: Optional[Callable[[UploadStage], None]],
    ) -> UploadResult:
        envelope = self._codec.seal_note(note, owner_public_key)
        receipt = await self._uploader.upload(envelope.to_bytes(), note_id=note_id, on_stage=on_stage)
        if note_id is None:
            return UploadResult(
                pointer=receipt.pointer,
                anchored=False,
                note_id=None,
                anchor_error="no note id to anchor under",
            )
        if not self._anchor.can_write:
            return UploadResult(
                pointer=receipt.pointer,
                anchored=False,
                note_id=note_id,
                anchor_error="no ledger signer configured",
            )

        anchored = False
        anchor_error = None
        record_address = None
        try:
            record = await self._anchor.create_record(note_id, receipt.pointer)
            anchored = True
            record_address = record.address
            if make_permanent:
                await self._anchor.set_permanent(note_id)
        except LedgerAnchorError as e:
            anchor_error = str(e)
            logger.warning(f"Note {note_id} uploaded as {receipt.pointer} but not anchored: {e}")

        state = self._anchor.state_of(note_id)
        return UploadResult(
            pointer=receipt.pointer,
            anchored=anchored,
            note_id=note_id,
            permanent=state is AnchorState.PERMANENT,
            anchor_state=state,
            record_address=record_address,
            anchor_error=anchor_error,
        )

    # =========================================================================
    # Ledger
    # =========================================================================

    async def set_permanent(self, note_id: int) -> AnchorState:
        """Make an anchored note permanent.

        Raises:
            LedgerAnchorError: If the record is missing or the request fails
        """
        async with self._locks.hold(note_id):
            return await self._anchor.set_permanent(note_id)

    def anchor_state(self, note_id: int) -> AnchorState:
        return self._anchor.state_of(note_id)

    # =========================================================================
    # Retrieval
    # =========================================================================

    async def load_notes(
        self, owner_address: str, owner_public_key: Optional[bytes] = None
    ) -> list[PlaintextNote]:
        """Notes recoverable for ``owner_address``, ordered by note id."""
        return await self._reconciler.load_notes(owner_address, owner_public_key)

    async def reconcile(
        self, owner_address: str, owner_public_key: Optional[bytes] = None
    ) -> LoadReport:
        return await self._reconciler.reconcile(owner_address, owner_public_key)

    def start_sync(
        self,
        owner_address: str,
        on_report: Optional[Callable[[LoadReport], None]] = None,
        owner_public_key: Optional[bytes] = None,
    ) -> PeriodicReconciler:
        """Start background reconciliation for ``owner_address``.

        The task is stopped by close().
        """
        sync = PeriodicReconciler(
            self._reconciler,
            owner_address,
            self._config.sync_interval_seconds,
            on_report=on_report,
            owner_public_key=owner_public_key,
        )
        sync.start()
        self._syncs.append(sync)
        return sync

    # =========================================================================
    # Funding
    # =========================================================================

    async def check_funding(self, address: str) -> float:
        """Balance of ``address`` in AR (0.0 when it cannot be determined)."""
        return await self._balance.check_funding(address)

    async def close(self) -> None:
        """Stop background syncs and close owned network clients."""
        for sync in self._syncs:
            await sync.stop()
        self._syncs.clear()
        for resource in self._owned:
            await resource.close()
        self._owned.clear()

    async def __aenter__(self) -> "NotesVault":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class NotesVaultSync:
    """Synchronous wrapper around NotesVault.

    Basic Usage:
        >>> with NotesVaultSync(config, wallet=wallet) as vault:
        ...     result = vault.upload_note(note, owner_key, note_id=7)
        ...     balance = vault.check_funding(result_address)
    """

    def __init__(self, config: Optional[PipelineConfig] = None, **capabilities):
        """Initialize sync notes client.

        Args:
            config: Pipeline configuration (uses defaults if None)
            **capabilities: wallet, storage, ledger, ledger_signer as for NotesVault
        """
        self._vault = NotesVault(config, **capabilities)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._worker: Optional[ThreadPoolExecutor] = None

    @property
    def vault(self) -> NotesVault:
        """Get the underlying async client."""
        return self._vault

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        """Private event loop every vault call runs on."""
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()
        return self._loop

    def _run_sync(self, coro):
        """Run a vault coroutine to completion on the private loop.

        Inside a running loop the private loop is driven from a worker
        thread, so clients and locks stay bound to a single loop.
        """
        loop = self._get_loop()
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return loop.run_until_complete(coro)
        if self._worker is None:
            self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="elysium-sync")
        return self._worker.submit(loop.run_until_complete, coro).result()

    def upload_note(
        self,
        note: PlaintextNote,
        owner_public_key: bytes,
        *,
        note_id: Optional[int] = None,
        make_permanent: bool = False,
    ) -> UploadResult:
        return self._run_sync(
            self._vault.upload_note(
                note, owner_public_key, note_id=note_id, make_permanent=make_permanent
            )
        )

    def load_notes(self, owner_address: str, owner_public_key: Optional[bytes] = None) -> list[PlaintextNote]:
        return self._run_sync(self._vault.load_notes(owner_address, owner_public_key))

    def reconcile(self, owner_address: str, owner_public_key: Optional[bytes] = None) -> LoadReport:
        return self._run_sync(self._vault.reconcile(owner_address, owner_public_key))

    def check_funding(self, address: str) -> float:
        return self._run_sync(self._vault.check_funding(address))

    def set_permanent(self, note_id: int) -> AnchorState:
        return self._run_sync(self._vault.set_permanent(note_id))

    def anchor_state(self, note_id: int) -> AnchorState:
        return self._vault.anchor_state(note_id)

    def close(self) -> None:
        self._run_sync(self._vault.close())
        if self._worker is not None:
            self._worker.shutdown(wait=True)
            self._worker = None
        if self._loop is not None:
            self._loop.close()
        self._loop = None

    def __enter__(self) -> "NotesVaultSync":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
