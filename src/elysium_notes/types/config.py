"""Elysium Types - Enums and Protocol Constants.

This module defines the enums and fixed constants shared by every stage of
the permanent-storage pipeline: wallet scopes, upload stages, anchor states,
network defaults and the on-ledger program identity.
"""

from __future__ import annotations

from enum import Enum


class Platform(Enum):
    """Platform family used to select a wallet variant.

    Attributes:
        DESKTOP: Browser extension wallet (ArConnect)
        MOBILE: Mobile wallet (Wander)
    """
    DESKTOP = "desktop"
    MOBILE = "mobile"


class WalletScope(Enum):
    """Permission scopes requested from the wallet capability."""
    ACCESS_ADDRESS = "ACCESS_ADDRESS"
    ACCESS_PUBLIC_KEY = "ACCESS_PUBLIC_KEY"
    SIGN_TRANSACTION = "SIGN_TRANSACTION"
    ACCESS_ARWEAVE_CONFIG = "ACCESS_ARWEAVE_CONFIG"


class UploadStage(Enum):
    """Storage Uploader state machine stages.

    IDLE → CHECK_WALLET → (CONNECT) → BUILD_TRANSACTION → CHECK_BALANCE
         → SIGN → POST → DONE | FAILED
    """
    IDLE = "idle"
    CHECK_WALLET = "check_wallet"
    CONNECT = "connect"
    BUILD_TRANSACTION = "build_transaction"
    CHECK_BALANCE = "check_balance"
    SIGN = "sign"
    POST = "post"
    DONE = "done"
    FAILED = "failed"


class AnchorState(Enum):
    """Two-phase ledger commit state of a note's anchor record.

    Attributes:
        ABSENT: No record exists in the note's slot
        CREATED: Record exists with permanent = false
        PERMANENT_REQUESTED: set_permanent transaction in flight
        PERMANENT: Record exists with permanent = true (terminal)
    """
    ABSENT = "absent"
    CREATED = "created"
    PERMANENT_REQUESTED = "permanent_requested"
    PERMANENT = "permanent"


class KeyScheme(Enum):
    """Which Curve25519 key the envelope box is sealed to.

    Attributes:
        SELF_SEALED: Peer key is the public half of the derived secret
        OWNER_PEER: Peer key is the owner's raw public key (web client format)
    """
    SELF_SEALED = "self_sealed"
    OWNER_PEER = "owner_peer"


# =============================================================================
# Envelope
# =============================================================================

NONCE_LENGTH = 24
SECRET_LENGTH = 32

# =============================================================================
# Storage network (Arweave)
# =============================================================================

WINSTON_PER_AR = 10**12
DEFAULT_GATEWAY_URL = "https://arweave.net"
CONTENT_TYPE = "application/octet-stream"
APP_NAME = "Elysium-Notes"
APP_VERSION = "1.0.0"
MIN_BALANCE_AR = 0.001
# Gateway statuses that mean the transaction was accepted
POST_SUCCESS_STATUSES = frozenset({200, 208})

REQUIRED_SCOPES: tuple[WalletScope, ...] = (
    WalletScope.ACCESS_ADDRESS,
    WalletScope.ACCESS_PUBLIC_KEY,
    WalletScope.SIGN_TRANSACTION,
    WalletScope.ACCESS_ARWEAVE_CONFIG,
)

DESKTOP_WALLET_NAME = "ArConnect"
DESKTOP_WALLET_URL = "https://arconnect.io"
MOBILE_WALLET_NAME = "Wander"
MOBILE_WALLET_URL = "https://wander.app"

# =============================================================================
# Ledger (Solana program)
# =============================================================================

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEVNET_RPC_URL = "https://api.devnet.solana.com"
NOTE_PROGRAM_ID = "9qTuVAyYyTuoLTWSRLXmrbQycKKbAMCjwFhUV9LPSMdR"
RECORD_SEED = b"note"
RECORD_ACCOUNT_NAME = "NoteAccount"
# Allocated account space: discriminator + owner + note_id + pointer + timestamp + flag
RECORD_SPACE = 8 + 32 + 8 + 64 + 8 + 1
MAX_POINTER_BYTES = 64 - 4
OWNER_OFFSET = 8

DEFAULT_SYNC_INTERVAL_SECONDS = 15 * 60
