"""Test configuration for elysium-notes."""
import hashlib
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from solders.pubkey import Pubkey

from elysium_notes.ledger.layout import derive_record_address
from elysium_notes.storage.network import PostResponse
from elysium_notes.types import (
    NOTE_PROGRAM_ID,
    AnchorRecord,
    FetchError,
    PermissionDeniedError,
    PlaintextNote,
    UserCancelledError,
    WalletScope,
)
from elysium_notes.types.transaction import StorageTransaction, b64url_encode

OWNER_KEY = bytes(range(1, 33))
OWNER_PUBKEY = Pubkey.from_bytes(OWNER_KEY)
OWNER_ADDRESS = str(OWNER_PUBKEY)
STORAGE_ADDRESS = "storage-address-0001"


class FakeWallet:
    """In-memory storage-network wallet."""

    name = "FakeWallet"
    install_url = "https://wallet.example"

    def __init__(
        self,
        connected: bool = True,
        address: str = STORAGE_ADDRESS,
        public_key: bytes = OWNER_KEY,
        deny_connect: bool = False,
        cancel_sign: bool = False,
        sign_error: Optional[Exception] = None,
    ):
        self.connected = connected
        self.address = address
        self.public_key = public_key
        self.deny_connect = deny_connect
        self.cancel_sign = cancel_sign
        self.sign_error = sign_error
        self.connect_calls: list[tuple[WalletScope, ...]] = []
        self.signed: list[StorageTransaction] = []

    async def connect(self, scopes: Sequence[WalletScope]) -> tuple[WalletScope, ...]:
        self.connect_calls.append(tuple(scopes))
        if self.deny_connect:
            raise PermissionDeniedError("user declined", scopes=[s.value for s in scopes])
        self.connected = True
        return tuple(scopes)

    async def get_active_address(self) -> str:
        if not self.connected:
            raise PermissionDeniedError("not connected", stage="check_wallet")
        return self.address

    async def get_active_public_key(self) -> bytes:
        return self.public_key

    async def sign(self, tx: StorageTransaction) -> StorageTransaction:
        if self.cancel_sign:
            raise UserCancelledError()
        if self.sign_error is not None:
            raise self.sign_error
        tx_id = b64url_encode(hashlib.sha256(tx.data + str(len(self.signed)).encode()).digest())
        signed = replace(tx, id=tx_id, signature="c2ln", owner="b3duZXI")
        self.signed.append(signed)
        return signed


class FakeStorage:
    """In-memory storage network."""

    def __init__(self, balance_winston: int = 10**12, reward: int = 1000):
        self.blobs: dict[str, bytes] = {}
        self.balance_winston = balance_winston
        self.balance_error: Optional[Exception] = None
        self.create_error: Optional[Exception] = None
        self.post_statuses: list[int] = []
        self.reward = reward
        self.posted: list[StorageTransaction] = []
        self.balance_calls = 0

    async def create_transaction(self, data: bytes) -> StorageTransaction:
        if self.create_error is not None:
            raise self.create_error
        return StorageTransaction(data=bytes(data), last_tx="anchor", reward=self.reward)

    async def post(self, signed: StorageTransaction) -> PostResponse:
        self.posted.append(signed)
        status = self.post_statuses.pop(0) if self.post_statuses else 200
        if status in (200, 208):
            self.blobs[signed.id] = signed.data
        return PostResponse(status=status, id=signed.id, reason="" if status == 200 else "rejected")

    async def fetch(self, pointer: str) -> bytes:
        if pointer not in self.blobs:
            raise FetchError(pointer, status=404)
        return self.blobs[pointer]

    async def get_balance(self, address: str) -> int:
        self.balance_calls += 1
        if self.balance_error is not None:
            raise self.balance_error
        return self.balance_winston


class FakeSigner:
    """Ledger signer that records the instructions it is asked to send."""

    def __init__(self, public_key: Pubkey = OWNER_PUBKEY):
        self._public_key = public_key
        self.sent: list = []

    @property
    def public_key(self) -> Pubkey:
        return self._public_key

    async def send(self, instructions) -> str:
        self.sent.append(list(instructions))
        return f"signature-{len(self.sent)}"


class FakeLedger:
    """In-memory note program keyed by record slot address."""

    def __init__(self):
        self.records: dict[str, AnchorRecord] = {}
        self.create_error: Optional[Exception] = None
        self.permanent_error: Optional[Exception] = None
        self.query_error: Optional[Exception] = None
        self.create_calls = 0
        self.permanent_calls = 0

    def address_for(self, owner, note_id: int) -> str:
        address, _ = derive_record_address(owner, note_id, NOTE_PROGRAM_ID)
        return str(address)

    def put(self, record: AnchorRecord) -> AnchorRecord:
        record.address = self.address_for(record.owner_address, record.note_id)
        self.records[record.address] = record
        return record

    async def create_record(self, signer, note_id: int, pointer: str, timestamp: int) -> str:
        self.create_calls += 1
        if self.create_error is not None:
            raise self.create_error
        self.put(
            AnchorRecord(
                owner_address=str(signer.public_key),
                note_id=note_id,
                content_pointer=pointer,
                created_at=timestamp,
            )
        )
        return f"create-{note_id}"

    async def set_permanent(self, signer, note_id: int) -> str:
        self.permanent_calls += 1
        if self.permanent_error is not None:
            raise self.permanent_error
        self.records[self.address_for(signer.public_key, note_id)].permanent = True
        return f"permanent-{note_id}"

    async def query_records(self, owner: str) -> list[AnchorRecord]:
        if self.query_error is not None:
            raise self.query_error
        return [r for r in self.records.values() if r.owner_address == owner]

    async def get_record(self, address: str) -> Optional[AnchorRecord]:
        return self.records.get(address)


@pytest.fixture
def owner_key():
    return OWNER_KEY


@pytest.fixture
def owner_address():
    return OWNER_ADDRESS


@pytest.fixture
def wallet():
    return FakeWallet()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def sample_note():
    """Sample note for testing."""
    return PlaintextNote(
        title="Groceries",
        content="milk\neggs\nbread",
        template="Checklist",
        completion_timestamps={0: "2024-05-01T10:00:00Z"},
    )
