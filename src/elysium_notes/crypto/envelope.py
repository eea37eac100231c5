"""Envelope Codec.

Seals note payloads into ``nonce ++ snappy(box(payload))`` envelopes and opens
them again. Opening is all-or-nothing: a failed authentication tag raises
DecryptionError and never yields partial plaintext.
"""

from __future__ import annotations

import logging
from typing import Optional

import nacl.utils
import snappy
from nacl.exceptions import CryptoError
from nacl.public import Box

from elysium_notes.types import (
    NONCE_LENGTH,
    CompressionError,
    DecryptionError,
    EncryptionError,
    Envelope,
    KeyScheme,
    PlaintextNote,
)

from .keys import derive_box_keys

logger = logging.getLogger(__name__)


def generate_nonce() -> bytes:
    """Return 24 fresh random bytes for one encryption call."""
    return nacl.utils.random(NONCE_LENGTH)


def _box_for(
    public_key: bytes,
    passphrase: Optional[str],
    scheme: KeyScheme,
) -> Box:
    keys = derive_box_keys(public_key, passphrase=passphrase, scheme=scheme)
    return Box(keys.secret_key, keys.peer_public_key)


def encrypt_note(
    content: str,
    public_key: bytes,
    nonce: bytes,
    *,
    passphrase: Optional[str] = None,
    scheme: KeyScheme = KeyScheme.SELF_SEALED,
) -> bytes:
    """Encrypt and compress content.

    Args:
        content: Plaintext to seal
        public_key: Owner public key
        nonce: 24-byte nonce supplied by the caller
        passphrase: Optional owner passphrase
        scheme: Box key scheme

    Returns:
        Compressed ciphertext (without the nonce)

    Raises:
        EncryptionError: If the crypto library rejects the key material
        ValueError: If the nonce has the wrong length
    """
    if len(nonce) != NONCE_LENGTH:
        raise ValueError(f"nonce must be {NONCE_LENGTH} bytes, got {len(nonce)}")
    try:
        box = _box_for(public_key, passphrase, scheme)
        sealed = box.encrypt(content.encode("utf-8"), nonce)
    except CryptoError as e:
        raise EncryptionError(str(e)) from e
    return snappy.compress(sealed.ciphertext)


def decrypt_note(
    envelope_bytes: bytes,
    public_key: bytes,
    nonce: bytes,
    *,
    passphrase: Optional[str] = None,
    scheme: KeyScheme = KeyScheme.SELF_SEALED,
) -> str:
    """Decompress and decrypt content sealed by encrypt_note.

    Raises:
        CompressionError: If the bytes are not valid snappy data
        DecryptionError: If authentication fails (wrong key, nonce or corrupted bytes)
    """
    if len(nonce) != NONCE_LENGTH:
        raise DecryptionError(f"nonce must be {NONCE_LENGTH} bytes, got {len(nonce)}")
    try:
        ciphertext = snappy.uncompress(envelope_bytes)
    except Exception as e:
        raise CompressionError(str(e) or type(e).__name__) from e

    try:
        box = _box_for(public_key, passphrase, scheme)
        plaintext = box.decrypt(ciphertext, nonce)
    except CryptoError as e:
        raise DecryptionError("authentication failed") from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("payload is not UTF-8") from e


class EnvelopeCodec:
    """Seals and opens envelopes with fixed key options.

    Example:
        >>> codec = EnvelopeCodec()
        >>> envelope = codec.seal_note(note, owner_key)
        >>> codec.open_note(envelope, owner_key).title
        'Groceries'
    """

    def __init__(
        self,
        passphrase: Optional[str] = None,
        scheme: KeyScheme = KeyScheme.SELF_SEALED,
    ):
        self._passphrase = passphrase
        self._scheme = scheme

    @property
    def scheme(self) -> KeyScheme:
        return self._scheme

    def seal(self, text: str, public_key: bytes) -> Envelope:
        """Encrypt text under a fresh nonce."""
        nonce = generate_nonce()
        ciphertext = encrypt_note(
            text, public_key, nonce, passphrase=self._passphrase, scheme=self._scheme
        )
        return Envelope(nonce=nonce, ciphertext=ciphertext)

    def open(self, envelope: Envelope, public_key: bytes) -> str:
        """Decrypt with the configured scheme, then with the other one.

        Envelopes sealed under either key scheme open with the same codec.
        Decompression failures are not retried.
        """
        try:
            return self._open_with(envelope, public_key, self._scheme)
        except CompressionError:
            raise
        except DecryptionError as e:
            first_error = e

        other = (
            KeyScheme.OWNER_PEER if self._scheme is KeyScheme.SELF_SEALED else KeyScheme.SELF_SEALED
        )
        try:
            text = self._open_with(envelope, public_key, other)
        except (DecryptionError, ValueError):
            raise first_error
        logger.debug(f"Envelope opened with the {other.value} key scheme")
        return text

    def _open_with(self, envelope: Envelope, public_key: bytes, scheme: KeyScheme) -> str:
        return decrypt_note(
            envelope.ciphertext,
            public_key,
            envelope.nonce,
            passphrase=self._passphrase,
            scheme=scheme,
        )

    def seal_note(self, note: PlaintextNote, public_key: bytes) -> Envelope:
        return self.seal(note.to_json(), public_key)

    def open_note(self, envelope: Envelope, public_key: bytes) -> PlaintextNote:
        """Decrypt an envelope and parse the note fields.

        Raises:
            DecryptionError: On authentication or decompression failure
            NoteFormatError: If the plaintext is not a note payload
        """
        return PlaintextNote.from_json(self.open(envelope, public_key))
