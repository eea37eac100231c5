"""Ledger anchoring: record layout, program client and the anchor state machine."""

from elysium_notes.ledger.anchor import LedgerAnchor
from elysium_notes.ledger.layout import (
    RECORD_DISCRIMINATOR,
    build_initialize_instruction,
    build_set_permanent_instruction,
    decode_record,
    derive_record_address,
    encode_record,
)
from elysium_notes.ledger.program import LedgerProgram, LedgerSigner, SolanaRpcLedger

__all__ = [
    "RECORD_DISCRIMINATOR",
    "LedgerAnchor",
    "LedgerProgram",
    "LedgerSigner",
    "SolanaRpcLedger",
    "build_initialize_instruction",
    "build_set_permanent_instruction",
    "decode_record",
    "derive_record_address",
    "encode_record",
]
