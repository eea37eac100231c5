"""Ledger Anchor: the per-note record state machine.

States:
    ABSENT -> CREATED -> PERMANENT_REQUESTED -> PERMANENT

A failed permanence request drops back to CREATED. PERMANENT is terminal:
once observed for a note it is never replaced by a weaker state, even if a
lagging RPC node later reports the flag unset.

Record slots are write-once. Creating a record that already holds the same
pointer is a no-op; a different pointer is refused.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from elysium_notes.ledger.layout import PubkeyLike, derive_record_address, to_pubkey
from elysium_notes.ledger.program import LedgerProgram, LedgerSigner
from elysium_notes.types import (
    MAX_POINTER_BYTES,
    NOTE_PROGRAM_ID,
    AnchorRecord,
    AnchorState,
    LedgerAnchorError,
)

logger = logging.getLogger(__name__)

_RANK = {
    AnchorState.ABSENT: 0,
    AnchorState.CREATED: 1,
    AnchorState.PERMANENT_REQUESTED: 2,
    AnchorState.PERMANENT: 3,
}


class LedgerAnchor:
    """Creates records and drives them to permanence for one signer.

    Args:
        program: Ledger program capability
        signer: Owner's ledger signer (None disables writes)
        program_id: Program owning the record slots
    """

    def __init__(
        self,
        program: LedgerProgram,
        signer: Optional[LedgerSigner] = None,
        program_id: PubkeyLike = NOTE_PROGRAM_ID,
    ):
        self._program = program
        self._signer = signer
        self._program_id = to_pubkey(program_id)
        self._states: dict[int, AnchorState] = {}
        self._records: dict[int, AnchorRecord] = {}

    @property
    def can_write(self) -> bool:
        return self._signer is not None

    def state_of(self, note_id: int) -> AnchorState:
        """Last known state of ``note_id`` (ABSENT if never seen)."""
        return self._states.get(note_id, AnchorState.ABSENT)

    def record_of(self, note_id: int) -> Optional[AnchorRecord]:
        return self._records.get(note_id)

    def record_address(self, note_id: int) -> str:
        signer = self._require_signer(note_id)
        address, _ = derive_record_address(signer.public_key, note_id, self._program_id)
        return str(address)

    def _require_signer(self, note_id: int) -> LedgerSigner:
        if self._signer is None:
            raise LedgerAnchorError(note_id, "no ledger signer configured")
        return self._signer

    def _track(self, note_id: int, state: AnchorState) -> None:
        current = self.state_of(note_id)
        if current is AnchorState.PERMANENT and state is not AnchorState.PERMANENT:
            logger.warning(f"Ignoring {state.value} for note {note_id}: already permanent")
            return
        self._states[note_id] = state

    def _remember(self, record: AnchorRecord) -> None:
        self._records[record.note_id] = record
        self._track(record.note_id, record.state)

    async def refresh(self, note_id: int) -> AnchorState:
        """Re-read the record slot and return the merged state.

        Raises:
            LedgerAnchorError: If the slot cannot be read
        """
        address = self.record_address(note_id)
        try:
            record = await self._program.get_record(address)
        except Exception as e:
            raise LedgerAnchorError(note_id, f"cannot read record {address}: {e}", stage="refresh") from e

        if record is not None:
            if _RANK[record.state] >= _RANK[self.state_of(note_id)]:
                self._remember(record)
        return self.state_of(note_id)

    async def create_record(
        self,
        note_id: int,
        pointer: str,
        created_at: Optional[int] = None,
    ) -> AnchorRecord:
        """Create the record for ``note_id`` pointing at ``pointer``.

        Returns:
            The record (existing or newly created)

        Raises:
            LedgerAnchorError: No signer, pointer too long, slot already holds
                another pointer, or the program call failed
        """
        signer = self._require_signer(note_id)
        if not pointer:
            raise LedgerAnchorError(note_id, "empty content pointer", stage="create_record")
        if len(pointer.encode("utf-8")) > MAX_POINTER_BYTES:
            raise LedgerAnchorError(
                note_id, f"pointer exceeds {MAX_POINTER_BYTES} bytes", stage="create_record"
            )

        known = self._records.get(note_id)
        if known is None and self.state_of(note_id) is AnchorState.ABSENT:
            await self.refresh(note_id)
            known = self._records.get(note_id)

        if known is not None:
            if known.content_pointer == pointer:
                logger.debug(f"Record for note {note_id} already points at {pointer}")
                return known
            raise LedgerAnchorError(
                note_id,
                f"slot already holds pointer {known.content_pointer}",
                stage="create_record",
            )

        timestamp = int(time.time()) if created_at is None else created_at
        try:
            signature = await self._program.create_record(signer, note_id, pointer, timestamp)
        except Exception as e:
            raise LedgerAnchorError(note_id, str(e) or type(e).__name__, stage="create_record") from e

        record = AnchorRecord(
            owner_address=str(signer.public_key),
            note_id=note_id,
            content_pointer=pointer,
            permanent=False,
            created_at=timestamp,
            address=self.record_address(note_id),
        )
        self._remember(record)
        logger.info(f"Anchored note {note_id} -> {pointer} ({signature})")
        return record

    async def set_permanent(self, note_id: int) -> AnchorState:
        """Mark the record for ``note_id`` permanent.

        Already-permanent records return without sending a transaction.

        Raises:
            LedgerAnchorError: No record exists, a request is already in
                flight, or the program call failed (state reverts to CREATED)
        """
        signer = self._require_signer(note_id)
        state = self.state_of(note_id)
        if state is AnchorState.ABSENT:
            state = await self.refresh(note_id)

        if state is AnchorState.PERMANENT:
            logger.debug(f"Note {note_id} is already permanent")
            return state
        if state is AnchorState.ABSENT:
            raise LedgerAnchorError(note_id, "no record to make permanent", stage="set_permanent")
        if state is AnchorState.PERMANENT_REQUESTED:
            raise LedgerAnchorError(note_id, "permanence request already in flight", stage="set_permanent")

        self._track(note_id, AnchorState.PERMANENT_REQUESTED)
        try:
            signature = await self._program.set_permanent(signer, note_id)
        except Exception as e:
            self._states[note_id] = AnchorState.CREATED
            raise LedgerAnchorError(note_id, str(e) or type(e).__name__, stage="set_permanent") from e

        record = self._records.get(note_id)
        if record is not None:
            record.permanent = True
        self._track(note_id, AnchorState.PERMANENT)
        logger.info(f"Note {note_id} made permanent ({signature})")
        return AnchorState.PERMANENT
