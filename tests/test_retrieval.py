"""Tests for the retrieval reconciler and background sync."""

import asyncio

import pytest

from conftest import OWNER_ADDRESS, OWNER_KEY
from elysium_notes import (
    AnchorRecord,
    EnvelopeCodec,
    LedgerError,
    PeriodicReconciler,
    PlaintextNote,
    RetrievalReconciler,
)
from elysium_notes.retrieval import owner_key_from_address, placeholder_note


def store_note(storage, ledger, note_id: int, title: str, codec=None, permanent=False) -> str:
    """Seal a note into storage and anchor it in the ledger."""
    codec = codec or EnvelopeCodec()
    pointer = f"pointer-{note_id}"
    storage.blobs[pointer] = codec.seal_note(PlaintextNote(title, f"body of {title}"), OWNER_KEY).to_bytes()
    ledger.put(
        AnchorRecord(
            owner_address=OWNER_ADDRESS,
            note_id=note_id,
            content_pointer=pointer,
            permanent=permanent,
            created_at=1000 + note_id,
        )
    )
    return pointer


class TestOwnerKey:
    """Test owner_key_from_address."""

    def test_base58_address(self):
        assert owner_key_from_address(OWNER_ADDRESS) == OWNER_KEY

    def test_invalid_address(self):
        with pytest.raises(LedgerError):
            owner_key_from_address("0OIl")


class TestRetrievalReconciler:
    """Test RetrievalReconciler."""

    @pytest.mark.asyncio
    async def test_loads_notes_in_note_id_order(self, storage, ledger):
        for note_id, title in [(3, "c"), (1, "a"), (2, "b")]:
            store_note(storage, ledger, note_id, title, permanent=note_id == 2)

        notes = await RetrievalReconciler(ledger, storage).load_notes(OWNER_ADDRESS)

        assert [n.note_id for n in notes] == [1, 2, 3]
        assert [n.title for n in notes] == ["a", "b", "c"]
        assert notes[0].content == "body of a"
        assert notes[0].content_pointer == "pointer-1"
        assert notes[0].created_at == 1001
        assert [n.permanent for n in notes] == [False, True, False]

    @pytest.mark.asyncio
    async def test_corrupted_record_is_skipped(self, storage, ledger):
        """Test one corrupted envelope out of N gives N-1 notes and one skip."""
        for note_id in range(1, 5):
            store_note(storage, ledger, note_id, f"note {note_id}")
        tampered = bytearray(storage.blobs["pointer-3"])
        tampered[-1] ^= 0x01
        storage.blobs["pointer-3"] = bytes(tampered)

        report = await RetrievalReconciler(ledger, storage).reconcile(OWNER_ADDRESS)

        assert [n.note_id for n in report.notes] == [1, 2, 4]
        assert len(report.skipped) == 1
        skipped = report.skipped[0]
        assert skipped.note_id == 3
        assert skipped.pointer == "pointer-3"
        assert skipped.stage in ("decrypt", "decompress")
        assert report.total_records == 4

    @pytest.mark.asyncio
    async def test_missing_content_is_skipped(self, storage, ledger):
        store_note(storage, ledger, 1, "kept")
        store_note(storage, ledger, 2, "lost")
        del storage.blobs["pointer-2"]

        report = await RetrievalReconciler(ledger, storage).reconcile(OWNER_ADDRESS)

        assert [n.title for n in report.notes] == ["kept"]
        assert report.skipped[0].stage == "fetch"

    @pytest.mark.asyncio
    async def test_envelope_for_other_key_is_skipped(self, storage, ledger):
        store_note(storage, ledger, 1, "mine")
        foreign = EnvelopeCodec().seal_note(PlaintextNote("x", "y"), b"\x09" * 32)
        storage.blobs["pointer-1"] = foreign.to_bytes()

        report = await RetrievalReconciler(ledger, storage).reconcile(OWNER_ADDRESS)
        assert report.notes == []
        assert report.skipped[0].note_id == 1

    @pytest.mark.asyncio
    async def test_unexpected_fetch_failure_is_skipped(self, storage, ledger):
        store_note(storage, ledger, 1, "a")

        async def broken(pointer):
            raise ConnectionResetError("peer reset")

        storage.fetch = broken
        report = await RetrievalReconciler(ledger, storage).reconcile(OWNER_ADDRESS)
        assert report.skipped[0].stage == "fetch"

    @pytest.mark.asyncio
    async def test_pointerless_record_is_placeholder(self, storage, ledger):
        store_note(storage, ledger, 1, "real")
        ledger.put(AnchorRecord(owner_address=OWNER_ADDRESS, note_id=2, created_at=5))

        notes = await RetrievalReconciler(ledger, storage).load_notes(OWNER_ADDRESS)

        assert len(notes) == 2
        placeholder = notes[1]
        assert placeholder.placeholder
        assert placeholder.title == "Untitled note #2"
        assert placeholder.content == ""
        assert placeholder.content_pointer is None

    @pytest.mark.asyncio
    async def test_permanent_pointerless_record_is_permanent_placeholder(self, storage, ledger):
        ledger.put(AnchorRecord(owner_address=OWNER_ADDRESS, note_id=4, permanent=True, created_at=9))

        report = await RetrievalReconciler(ledger, storage).reconcile(OWNER_ADDRESS)

        assert report.skipped == []
        assert len(report.notes) == 1
        assert report.notes[0].placeholder
        assert report.notes[0].permanent
        assert report.notes[0].note_id == 4

    @pytest.mark.asyncio
    async def test_passphrase_codec(self, storage, ledger):
        codec = EnvelopeCodec(passphrase="hunter2")
        store_note(storage, ledger, 1, "guarded", codec=codec)

        with_phrase = await RetrievalReconciler(ledger, storage, codec).load_notes(OWNER_ADDRESS)
        without = await RetrievalReconciler(ledger, storage).reconcile(OWNER_ADDRESS)

        assert with_phrase[0].title == "guarded"
        assert without.notes == []
        assert len(without.skipped) == 1

    @pytest.mark.asyncio
    async def test_query_failure_propagates(self, storage, ledger):
        ledger.query_error = LedgerError("rpc unreachable", stage="query")
        with pytest.raises(LedgerError):
            await RetrievalReconciler(ledger, storage).reconcile(OWNER_ADDRESS)

    @pytest.mark.asyncio
    async def test_no_records(self, storage, ledger):
        report = await RetrievalReconciler(ledger, storage).reconcile(OWNER_ADDRESS)
        assert report.notes == []
        assert report.skipped == []

    def test_placeholder_note(self):
        note = placeholder_note(AnchorRecord(owner_address=OWNER_ADDRESS, note_id=11))
        assert note.note_id == 11
        assert note.placeholder


class TestPeriodicReconciler:
    """Test PeriodicReconciler."""

    @pytest.mark.asyncio
    async def test_run_once(self, storage, ledger):
        store_note(storage, ledger, 1, "a")
        reports = []
        sync = PeriodicReconciler(RetrievalReconciler(ledger, storage), OWNER_ADDRESS, on_report=reports.append)

        report = await sync.run_once()

        assert sync.runs == 1
        assert sync.last_report is report
        assert reports == [report]

    @pytest.mark.asyncio
    async def test_start_and_stop(self, storage, ledger):
        store_note(storage, ledger, 1, "a")
        sync = PeriodicReconciler(RetrievalReconciler(ledger, storage), OWNER_ADDRESS, interval_seconds=0.01)

        sync.start()
        assert sync.running
        await asyncio.sleep(0.1)
        await sync.stop()

        assert not sync.running
        assert sync.runs >= 1
        assert sync.last_report.notes[0].title == "a"

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_the_loop(self, storage, ledger):
        """Test a failing pass is logged and the next one still runs."""
        ledger.query_error = LedgerError("down")
        async with PeriodicReconciler(
            RetrievalReconciler(ledger, storage), OWNER_ADDRESS, interval_seconds=0.01
        ) as sync:
            await asyncio.sleep(0.05)
            assert sync.running
            assert sync.runs == 0
            ledger.query_error = None
            await asyncio.sleep(0.05)
        assert sync.runs >= 1
        assert not sync.running
