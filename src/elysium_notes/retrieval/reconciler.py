"""Retrieval Reconciler.

Rebuilds an owner's notes from the ledger:

    1. query the owner's anchor records
    2. fetch each record's envelope from the storage network
    3. split nonce / ciphertext and open the envelope with the owner key
    4. attach the record metadata (note id, pointer, permanence, timestamp)

A record that fails at any step is skipped and reported; it never aborts
the batch. Records without a pointer come back as placeholder notes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Union

from elysium_notes.crypto.envelope import EnvelopeCodec
from elysium_notes.ledger.layout import to_pubkey
from elysium_notes.ledger.program import LedgerProgram
from elysium_notes.storage.network import StorageNetwork
from elysium_notes.types import (
    AnchorRecord,
    ElysiumError,
    Envelope,
    FetchError,
    LedgerError,
    LoadReport,
    PlaintextNote,
    SkippedRecord,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_TITLE = "Untitled note #{note_id}"


def placeholder_note(record: AnchorRecord) -> PlaintextNote:
    """Stand-in note for a record whose content was never uploaded."""
    return PlaintextNote(
        title=PLACEHOLDER_TITLE.format(note_id=record.note_id),
        content="",
        note_id=record.note_id,
        content_pointer=None,
        permanent=record.permanent,
        created_at=record.created_at,
        placeholder=True,
    )


def owner_key_from_address(owner_address: str) -> bytes:
    """Raw 32-byte public key behind a base58 ledger address.

    Raises:
        LedgerError: If the address is not a valid ledger address
    """
    try:
        return bytes(to_pubkey(owner_address))
    except ValueError as e:
        raise LedgerError(f"invalid owner address {owner_address!r}: {e}", stage="query") from e


class RetrievalReconciler:
    """Walks ledger records and decrypts their content.

    Args:
        program: Ledger program queried for the owner's records
        storage: Storage network the envelopes are fetched from
        codec: Envelope codec with the owner's key options
        max_concurrent_fetches: Upper bound on in-flight fetches
    """

    def __init__(
        self,
        program: LedgerProgram,
        storage: StorageNetwork,
        codec: Optional[EnvelopeCodec] = None,
        *,
        max_concurrent_fetches: int = 8,
    ):
        self._program = program
        self._storage = storage
        self._codec = codec or EnvelopeCodec()
        self._max_concurrent_fetches = max(1, max_concurrent_fetches)

    async def load_notes(
        self, owner_address: str, owner_public_key: Optional[bytes] = None
    ) -> list[PlaintextNote]:
        """Notes for ``owner_address``, ordered by note id. Failed records are omitted."""
        report = await self.reconcile(owner_address, owner_public_key)
        return report.notes

    async def reconcile(
        self, owner_address: str, owner_public_key: Optional[bytes] = None
    ) -> LoadReport:
        """Rebuild notes and report what was skipped.

        Args:
            owner_address: Owner's base58 ledger address
            owner_public_key: Key the envelopes were sealed with
                (defaults to the key behind owner_address)

        Raises:
            LedgerError: If the record query itself fails
        """
        public_key = owner_public_key or owner_key_from_address(owner_address)
        records = await self._program.query_records(owner_address)
        logger.debug(f"Reconciling {len(records)} records for {owner_address}")

        semaphore = asyncio.Semaphore(self._max_concurrent_fetches)

        async def resolve(record: AnchorRecord) -> Union[PlaintextNote, SkippedRecord]:
            if not record.content_pointer:
                return placeholder_note(record)
            async with semaphore:
                return await self._open_record(record, public_key)

        outcomes = await asyncio.gather(*(resolve(record) for record in records))

        report = LoadReport(owner_address=owner_address)
        for outcome in outcomes:
            if isinstance(outcome, SkippedRecord):
                report.skipped.append(outcome)
            else:
                report.notes.append(outcome)
        report.notes.sort(key=lambda note: note.note_id if note.note_id is not None else -1)

        logger.info(
            f"Loaded {len(report.notes)} notes for {owner_address} "
            f"({len(report.skipped)} skipped)"
        )
        return report

    async def _open_record(
        self, record: AnchorRecord, public_key: bytes
    ) -> Union[PlaintextNote, SkippedRecord]:
        pointer = record.content_pointer
        try:
            try:
                data = await self._storage.fetch(pointer)
            except ElysiumError:
                raise
            except Exception as e:
                raise FetchError(pointer, reason=str(e) or type(e).__name__) from e

            note = self._codec.open_note(Envelope.from_bytes(data), public_key)
        except ElysiumError as e:
            e.with_context(note_id=record.note_id, pointer=pointer)
            logger.warning(f"Skipping note {record.note_id} ({pointer}) at {e.stage}: {e}")
            return SkippedRecord(
                note_id=record.note_id, pointer=pointer, stage=e.stage, reason=str(e)
            )
        except Exception as e:
            logger.error(f"Unexpected failure opening note {record.note_id} ({pointer})", exc_info=True)
            return SkippedRecord(
                note_id=record.note_id, pointer=pointer, stage="unknown", reason=repr(e)
            )

        note.note_id = record.note_id
        note.content_pointer = pointer
        note.permanent = record.permanent
        note.created_at = record.created_at
        return note
