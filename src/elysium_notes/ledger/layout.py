"""On-ledger record layout and instruction encoding for the note program.

Record account (Anchor, little-endian, Borsh):

    offset  size  field
    0       8     discriminator  sha256("account:NoteAccount")[:8]
    8       32    owner
    40      8     note_id        u64
    48      4+n   pointer        u32 length + UTF-8 (n <= 60)
    ...     8     timestamp      i64
    ...     1     permanent      bool

Record slots are program-derived addresses from
``[b"note", owner, note_id.to_bytes(8, "little")]``.
"""

from __future__ import annotations

import hashlib
import struct
from typing import Optional, Union

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from elysium_notes.types import (
    MAX_POINTER_BYTES,
    NOTE_PROGRAM_ID,
    OWNER_OFFSET,
    RECORD_ACCOUNT_NAME,
    RECORD_SEED,
    RECORD_SPACE,
    AnchorRecord,
    RecordLayoutError,
)

PubkeyLike = Union[Pubkey, str]

_U64_MAX = 2**64 - 1


def account_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"account:{name}".encode()).digest()[:8]


def instruction_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


RECORD_DISCRIMINATOR = account_discriminator(RECORD_ACCOUNT_NAME)
INITIALIZE_NOTE = instruction_discriminator("initialize_note")
SET_PERMANENT = instruction_discriminator("set_permanent")


def to_pubkey(value: PubkeyLike) -> Pubkey:
    """Parse a base58 address (or pass a Pubkey through).

    Raises:
        ValueError: If ``value`` is not a valid 32-byte address
    """
    if isinstance(value, Pubkey):
        return value
    return Pubkey.from_string(value)


def _note_id_bytes(note_id: int) -> bytes:
    if not 0 <= note_id <= _U64_MAX:
        raise ValueError(f"note id out of u64 range: {note_id}")
    return struct.pack("<Q", note_id)


def _pointer_bytes(pointer: str) -> bytes:
    encoded = pointer.encode("utf-8")
    if len(encoded) > MAX_POINTER_BYTES:
        raise ValueError(
            f"content pointer is {len(encoded)} bytes, at most {MAX_POINTER_BYTES} fit a record"
        )
    return struct.pack("<I", len(encoded)) + encoded


def derive_record_address(
    owner: PubkeyLike,
    note_id: int,
    program_id: PubkeyLike = NOTE_PROGRAM_ID,
) -> tuple[Pubkey, int]:
    """Program-derived address (and bump) of the record slot for ``note_id``."""
    seeds = [RECORD_SEED, bytes(to_pubkey(owner)), _note_id_bytes(note_id)]
    return Pubkey.find_program_address(seeds, to_pubkey(program_id))


# =============================================================================
# Record accounts
# =============================================================================


def encode_record(record: AnchorRecord) -> bytes:
    """Serialize a record into its allocated account space."""
    body = b"".join(
        [
            RECORD_DISCRIMINATOR,
            bytes(to_pubkey(record.owner_address)),
            _note_id_bytes(record.note_id),
            _pointer_bytes(record.content_pointer or ""),
            struct.pack("<q", record.created_at),
            struct.pack("<?", record.permanent),
        ]
    )
    return body.ljust(RECORD_SPACE, b"\x00")


def decode_record(data: bytes, address: Optional[str] = None) -> AnchorRecord:
    """Parse record account bytes.

    Raises:
        RecordLayoutError: Wrong discriminator, truncated data, bad UTF-8
            or an invalid permanent flag
    """
    if len(data) < 8 or data[:8] != RECORD_DISCRIMINATOR:
        raise RecordLayoutError("account discriminator mismatch")

    try:
        owner = Pubkey.from_bytes(data[OWNER_OFFSET:OWNER_OFFSET + 32])
        offset = OWNER_OFFSET + 32
        (note_id,) = struct.unpack_from("<Q", data, offset)
        offset += 8
        (length,) = struct.unpack_from("<I", data, offset)
        offset += 4
        if length > MAX_POINTER_BYTES or offset + length > len(data):
            raise RecordLayoutError(f"pointer length {length} out of bounds")
        pointer = data[offset:offset + length].decode("utf-8")
        offset += length
        (created_at,) = struct.unpack_from("<q", data, offset)
        offset += 8
        flag = data[offset]
    except RecordLayoutError:
        raise
    except (struct.error, IndexError, ValueError) as e:
        raise RecordLayoutError(str(e)) from e

    if flag not in (0, 1):
        raise RecordLayoutError(f"invalid permanent flag {flag}")

    return AnchorRecord(
        owner_address=str(owner),
        note_id=note_id,
        content_pointer=pointer or None,
        permanent=bool(flag),
        created_at=created_at,
        address=address,
    )


# =============================================================================
# Instructions
# =============================================================================


def initialize_note_data(note_id: int, pointer: str, timestamp: int) -> bytes:
    return INITIALIZE_NOTE + _note_id_bytes(note_id) + _pointer_bytes(pointer) + struct.pack("<q", timestamp)


def set_permanent_data(note_id: int) -> bytes:
    return SET_PERMANENT + _note_id_bytes(note_id)


def build_initialize_instruction(
    owner: PubkeyLike,
    note_id: int,
    pointer: str,
    timestamp: int,
    program_id: PubkeyLike = NOTE_PROGRAM_ID,
) -> Instruction:
    """``initialize_note`` creating the record slot for ``note_id``."""
    owner_key = to_pubkey(owner)
    record, _ = derive_record_address(owner_key, note_id, program_id)
    accounts = [
        AccountMeta(record, is_signer=False, is_writable=True),
        AccountMeta(owner_key, is_signer=True, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(
        to_pubkey(program_id), initialize_note_data(note_id, pointer, timestamp), accounts
    )


def build_set_permanent_instruction(
    owner: PubkeyLike,
    note_id: int,
    program_id: PubkeyLike = NOTE_PROGRAM_ID,
) -> Instruction:
    """``set_permanent`` flipping the record's permanence flag."""
    owner_key = to_pubkey(owner)
    record, _ = derive_record_address(owner_key, note_id, program_id)
    accounts = [
        AccountMeta(record, is_signer=False, is_writable=True),
        AccountMeta(owner_key, is_signer=True, is_writable=False),
    ]
    return Instruction(to_pubkey(program_id), set_permanent_data(note_id), accounts)
