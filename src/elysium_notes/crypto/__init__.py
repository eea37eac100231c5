"""Key derivation and envelope sealing.

This module provides:
- derive_secret / derive_box_keys: Owner key material for the box
- encrypt_note / decrypt_note: Compressed authenticated encryption
- generate_nonce: Fresh 24-byte nonces
- EnvelopeCodec: Envelope sealing with bound key options
"""

from elysium_notes.crypto.envelope import (
    EnvelopeCodec,
    decrypt_note,
    encrypt_note,
    generate_nonce,
)
from elysium_notes.crypto.keys import BoxKeys, derive_box_keys, derive_secret

__all__ = [
    "BoxKeys",
    "EnvelopeCodec",
    "decrypt_note",
    "derive_box_keys",
    "derive_secret",
    "encrypt_note",
    "generate_nonce",
]
