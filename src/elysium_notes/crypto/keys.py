"""Key Derivation.

Derives the box key material used to seal note envelopes from an owner's
public key::

    secret = SHA512(SHA512(public_key)[0:32] ++ public_key)[0:32]

WARNING: this derivation uses nothing the owner actually controls. Anyone who
knows the owner's public key (which is their ledger address) can recompute
the same secret, so on its own it provides obfuscation, not confidentiality.
Pass a ``passphrase`` to layer owner-only material on top: its Argon2id
stretch is mixed into the secret, and envelopes sealed that way can only be
opened by someone who knows the passphrase.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from nacl.pwhash import argon2id
from nacl.public import PrivateKey, PublicKey

from elysium_notes.types import SECRET_LENGTH, KeyScheme

logger = logging.getLogger(__name__)

_weak_derivation_warned = False


@dataclass(frozen=True)
class BoxKeys:
    """Key pair handed to the authenticated box.

    Attributes:
        secret_key: Our side of the box (derived secret)
        peer_public_key: The other side of the box
    """
    secret_key: PrivateKey
    peer_public_key: PublicKey


def derive_secret(public_key: bytes) -> bytes:
    """Derive the 32-byte box secret from an owner public key.

    Args:
        public_key: Owner public key bytes (any non-zero length)

    Returns:
        32-byte secret

    Raises:
        ValueError: If public_key is empty
    """
    if not public_key:
        raise ValueError("public key must not be empty")
    seed = hashlib.sha512(public_key).digest()[:SECRET_LENGTH]
    return hashlib.sha512(seed + public_key).digest()[:SECRET_LENGTH]


@lru_cache(maxsize=32)
def _stretch_passphrase(passphrase: str, public_key: bytes) -> bytes:
    salt = hashlib.sha512(public_key).digest()[: argon2id.SALTBYTES]
    return argon2id.kdf(
        SECRET_LENGTH,
        passphrase.encode("utf-8"),
        salt,
        opslimit=argon2id.OPSLIMIT_INTERACTIVE,
        memlimit=argon2id.MEMLIMIT_INTERACTIVE,
    )


def derive_box_keys(
    public_key: bytes,
    passphrase: Optional[str] = None,
    scheme: KeyScheme = KeyScheme.SELF_SEALED,
) -> BoxKeys:
    """Derive the box key pair for an owner.

    Args:
        public_key: Owner public key bytes
        passphrase: Optional owner-only passphrase mixed into the secret
        scheme: Which key the box is sealed to (see KeyScheme)

    Returns:
        BoxKeys for sealing and opening envelopes
    """
    global _weak_derivation_warned

    secret = derive_secret(public_key)
    if passphrase:
        stretched = _stretch_passphrase(passphrase, bytes(public_key))
        secret = hashlib.sha512(secret + stretched).digest()[:SECRET_LENGTH]
    elif not _weak_derivation_warned:
        _weak_derivation_warned = True
        logger.warning(
            "Envelope keys derived from the public key alone; notes are obfuscated, "
            "not confidential. Configure a passphrase for real confidentiality."
        )

    secret_key = PrivateKey(secret)
    if scheme is KeyScheme.OWNER_PEER:
        if len(public_key) != PublicKey.SIZE:
            raise ValueError(
                f"owner-peer scheme needs a {PublicKey.SIZE}-byte public key, "
                f"got {len(public_key)}"
            )
        peer = PublicKey(bytes(public_key))
    else:
        peer = secret_key.public_key

    return BoxKeys(secret_key=secret_key, peer_public_key=peer)
