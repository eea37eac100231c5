"""Elysium Types - Data Models.

This module defines the data structures that flow through the pipeline:
plaintext notes, encrypted envelopes, ledger anchor records, wallet sessions
and the results returned to callers.

Serialization:
    PlaintextNote serializes only its payload fields (title, content,
    template, completionTimestamps) into the encrypted JSON payload.
    Reconciler metadata (note_id, pointer, permanence) never leaves the
    process in plaintext form.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from .config import NONCE_LENGTH, AnchorState, WalletScope
from .exceptions import DecryptionError, NoteFormatError

if TYPE_CHECKING:
    from elysium_notes.wallet.base import WalletCapability


@dataclass
class PlaintextNote:
    """A decrypted note as seen by the caller.

    Attributes:
        title: Note title
        content: Note body
        template: Template name ("Plain", "To-Do List", "Checklist", "List")
        completion_timestamps: Line index -> ISO timestamp for completed items
        note_id: Ledger note id (set by the reconciler)
        content_pointer: Storage pointer the note was fetched from
        permanent: Permanence flag of the anchor record
        created_at: Anchor record timestamp (unix seconds)
        placeholder: True when the record had no content to fetch
    """
    title: str
    content: str
    template: str = "Plain"
    completion_timestamps: dict[int, str] = field(default_factory=dict)
    note_id: Optional[int] = None
    content_pointer: Optional[str] = None
    permanent: bool = False
    created_at: Optional[int] = None
    placeholder: bool = False

    def to_payload(self) -> dict[str, Any]:
        """Fields that are encrypted into the envelope."""
        return {
            "title": self.title,
            "content": self.content,
            "template": self.template,
            "completionTimestamps": {
                str(index): stamp for index, stamp in self.completion_timestamps.items()
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_payload(cls, data: Any) -> PlaintextNote:
        """Create from a decrypted payload dict.

        Raises:
            NoteFormatError: If required fields are missing or mistyped
        """
        if not isinstance(data, dict):
            raise NoteFormatError(f"expected object, got {type(data).__name__}")
        title = data.get("title")
        content = data.get("content")
        if not isinstance(title, str) or not isinstance(content, str):
            raise NoteFormatError("title and content must be strings")
        template = data.get("template") or "Plain"
        if not isinstance(template, str):
            raise NoteFormatError("template must be a string")

        raw_stamps = data.get("completionTimestamps") or {}
        if not isinstance(raw_stamps, dict):
            raise NoteFormatError("completionTimestamps must be an object")
        try:
            stamps = {int(index): stamp for index, stamp in raw_stamps.items()}
        except ValueError as e:
            raise NoteFormatError(f"bad completion index: {e}") from e
        if not all(isinstance(stamp, str) for stamp in stamps.values()):
            raise NoteFormatError("completion timestamps must be strings")

        return cls(
            title=title,
            content=content,
            template=template,
            completion_timestamps=stamps,
        )

    @classmethod
    def from_json(cls, text: str) -> PlaintextNote:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise NoteFormatError(str(e)) from e
        return cls.from_payload(data)


@dataclass(frozen=True)
class Envelope:
    """Nonce plus compressed ciphertext of one encryption call.

    Wire format is ``nonce[24] ++ ciphertext``.
    """
    nonce: bytes
    ciphertext: bytes

    def __post_init__(self) -> None:
        if len(self.nonce) != NONCE_LENGTH:
            raise ValueError(
                f"nonce must be {NONCE_LENGTH} bytes, got {len(self.nonce)}"
            )

    def to_bytes(self) -> bytes:
        return self.nonce + self.ciphertext

    @classmethod
    def from_bytes(cls, data: bytes) -> Envelope:
        """Split fetched bytes into nonce and ciphertext.

        Raises:
            DecryptionError: If there is no ciphertext after the nonce
        """
        if len(data) <= NONCE_LENGTH:
            raise DecryptionError(f"envelope too short ({len(data)} bytes)")
        return cls(nonce=bytes(data[:NONCE_LENGTH]), ciphertext=bytes(data[NONCE_LENGTH:]))

    def to_base64(self) -> str:
        return base64.b64encode(self.to_bytes()).decode("ascii")

    @classmethod
    def from_base64(cls, text: str) -> Envelope:
        try:
            raw = base64.b64decode(text, validate=True)
        except ValueError as e:
            raise DecryptionError(f"invalid base64 envelope: {e}") from e
        return cls.from_bytes(raw)


@dataclass
class AnchorRecord:
    """On-ledger metadata record binding an owner, note id and pointer.

    Attributes:
        owner_address: Owner's base58 ledger address
        note_id: Caller-assigned note id (unique per owner)
        content_pointer: Storage pointer, None until an upload succeeded
        permanent: Permanence flag (monotonic false → true)
        created_at: Record timestamp (unix seconds)
        address: The record's slot (program-derived address), if known
    """
    owner_address: str
    note_id: int
    content_pointer: Optional[str] = None
    permanent: bool = False
    created_at: int = 0
    address: Optional[str] = None

    @property
    def state(self) -> AnchorState:
        return AnchorState.PERMANENT if self.permanent else AnchorState.CREATED

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "owner_address": self.owner_address,
            "note_id": self.note_id,
            "content_pointer": self.content_pointer,
            "permanent": self.permanent,
            "created_at": self.created_at,
            "address": self.address,
        }

    @classmethod
    def from_dict(cls, data: dict) -> AnchorRecord:
        """Create from dictionary (JSON deserialization)."""
        return cls(
            owner_address=data["owner_address"],
            note_id=int(data["note_id"]),
            content_pointer=data.get("content_pointer") or None,
            permanent=bool(data.get("permanent", False)),
            created_at=int(data.get("created_at", 0)),
            address=data.get("address"),
        )


@dataclass
class WalletSession:
    """An acquired wallet connection. Ephemeral, never persisted."""
    address: str
    public_key: bytes
    wallet: "WalletCapability"
    scopes: tuple[WalletScope, ...] = ()

    def has_scope(self, scope: WalletScope) -> bool:
        return scope in self.scopes


@dataclass
class UploadReceipt:
    """Result of a successful Storage Uploader run."""
    pointer: str
    address: str
    data_size: int
    reward_winston: int = 0
    stages: list[str] = field(default_factory=list)


@dataclass
class UploadResult:
    """Result of NotesVault.upload_note.

    Attributes:
        pointer: Content pointer assigned by the storage network
        anchored: Whether the ledger record was created
        note_id: Note id the upload was anchored under
        permanent: Whether the record was made permanent
        anchor_state: Final anchor state
        record_address: Ledger slot of the record
        anchor_error: Message of the anchor failure, if any
    """
    pointer: str
    anchored: bool
    note_id: Optional[int]
    permanent: bool = False
    anchor_state: AnchorState = AnchorState.ABSENT
    record_address: Optional[str] = None
    anchor_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "pointer": self.pointer,
            "anchored": self.anchored,
            "note_id": self.note_id,
            "permanent": self.permanent,
            "anchor_state": self.anchor_state.value,
            "record_address": self.record_address,
            "anchor_error": self.anchor_error,
        }


@dataclass
class SkippedRecord:
    """A record the reconciler could not reconstruct."""
    note_id: int
    pointer: Optional[str]
    stage: str
    reason: str


@dataclass
class LoadReport:
    """Outcome of one reconciliation pass."""
    owner_address: str
    notes: list[PlaintextNote] = field(default_factory=list)
    skipped: list[SkippedRecord] = field(default_factory=list)

    @property
    def total_records(self) -> int:
        return len(self.notes) + len(self.skipped)
