"""Elysium Types - Shared type definitions for the permanent-storage pipeline.

Package Structure:
    - config.py: Enums (UploadStage, AnchorState, WalletScope, ...) and constants
    - models.py: Data models (PlaintextNote, Envelope, AnchorRecord, ...)
    - exceptions.py: Exception classes (ElysiumError and subclasses)
    - transaction.py: Storage transaction model (StorageTransaction, Tag)

Usage:
    >>> from elysium_notes.types import PlaintextNote, Envelope, AnchorState
    >>> from elysium_notes.types import ElysiumError, DecryptionError
"""

from .config import (
    APP_NAME,
    APP_VERSION,
    CONTENT_TYPE,
    DEFAULT_GATEWAY_URL,
    DEFAULT_RPC_URL,
    DEFAULT_SYNC_INTERVAL_SECONDS,
    DESKTOP_WALLET_NAME,
    DESKTOP_WALLET_URL,
    DEVNET_RPC_URL,
    MAX_POINTER_BYTES,
    MIN_BALANCE_AR,
    MOBILE_WALLET_NAME,
    MOBILE_WALLET_URL,
    NONCE_LENGTH,
    NOTE_PROGRAM_ID,
    OWNER_OFFSET,
    POST_SUCCESS_STATUSES,
    RECORD_ACCOUNT_NAME,
    RECORD_SEED,
    RECORD_SPACE,
    REQUIRED_SCOPES,
    SECRET_LENGTH,
    WINSTON_PER_AR,
    AnchorState,
    KeyScheme,
    Platform,
    UploadStage,
    WalletScope,
)
from .exceptions import (
    CompressionError,
    DecryptionError,
    ElysiumError,
    EncryptionError,
    FetchError,
    InsufficientFundsError,
    InvalidConfigError,
    LedgerAnchorError,
    LedgerError,
    NetworkPostError,
    NoteFormatError,
    PermissionDeniedError,
    RecordLayoutError,
    SigningError,
    TransactionBuildError,
    UserCancelledError,
    WalletUnavailableError,
)
from .models import (
    AnchorRecord,
    Envelope,
    LoadReport,
    PlaintextNote,
    SkippedRecord,
    UploadReceipt,
    UploadResult,
    WalletSession,
)
from .transaction import StorageTransaction, Tag, compute_data_root

__all__ = [
    # Enums
    "AnchorState",
    "KeyScheme",
    "Platform",
    "UploadStage",
    "WalletScope",
    # Constants
    "APP_NAME",
    "APP_VERSION",
    "CONTENT_TYPE",
    "DEFAULT_GATEWAY_URL",
    "DEFAULT_RPC_URL",
    "DEFAULT_SYNC_INTERVAL_SECONDS",
    "DESKTOP_WALLET_NAME",
    "DESKTOP_WALLET_URL",
    "DEVNET_RPC_URL",
    "MAX_POINTER_BYTES",
    "MIN_BALANCE_AR",
    "MOBILE_WALLET_NAME",
    "MOBILE_WALLET_URL",
    "NONCE_LENGTH",
    "NOTE_PROGRAM_ID",
    "OWNER_OFFSET",
    "POST_SUCCESS_STATUSES",
    "RECORD_ACCOUNT_NAME",
    "RECORD_SEED",
    "RECORD_SPACE",
    "REQUIRED_SCOPES",
    "SECRET_LENGTH",
    "WINSTON_PER_AR",
    # Data models
    "AnchorRecord",
    "Envelope",
    "LoadReport",
    "PlaintextNote",
    "SkippedRecord",
    "UploadReceipt",
    "UploadResult",
    "WalletSession",
    # Storage transaction
    "StorageTransaction",
    "Tag",
    "compute_data_root",
    # Exceptions
    "ElysiumError",
    "WalletUnavailableError",
    "PermissionDeniedError",
    "UserCancelledError",
    "SigningError",
    "TransactionBuildError",
    "NetworkPostError",
    "InsufficientFundsError",
    "EncryptionError",
    "DecryptionError",
    "CompressionError",
    "NoteFormatError",
    "FetchError",
    "LedgerError",
    "LedgerAnchorError",
    "RecordLayoutError",
    "InvalidConfigError",
]
