"""Encrypted permanent storage for notes.

This package seals notes into compressed authenticated envelopes, stores them
on the Arweave storage network, anchors a metadata record per note on a
Solana program, and rebuilds an owner's notes from those records.

Package Dependencies:
    - pynacl: Envelope encryption (Curve25519 box, Argon2id)
    - python-snappy: Envelope compression
    - httpx / tenacity: Gateway and RPC clients, retries
    - solders: Ledger addresses and instructions

Basic Usage (Async):
    >>> from elysium_notes import NotesVault, PlaintextNote, DesktopWallet
    >>> async with NotesVault(wallet=DesktopWallet(bridge), ledger_signer=signer) as vault:
    ...     result = await vault.upload_note(PlaintextNote("Groceries", "milk"), owner_key, note_id=1)
    ...     notes = await vault.load_notes(owner_address)

Basic Usage (Sync):
    >>> from elysium_notes import NotesVaultSync
    >>> with NotesVaultSync(wallet=wallet) as vault:
    ...     balance = vault.check_funding(address)

Envelopes Only:
    >>> from elysium_notes import EnvelopeCodec
    >>> codec = EnvelopeCodec(passphrase="correct horse")
    >>> envelope = codec.seal("Hello", owner_key)
    >>> codec.open(envelope, owner_key)
    'Hello'

Presets:
    >>> from elysium_notes import DEVNET_CONFIG, TEST_CONFIG
    >>> vault = NotesVault(DEVNET_CONFIG.with_passphrase("correct horse"))
"""

__version__ = "1.0.0"

from elysium_notes.types import (
    # Enums
    AnchorState,
    KeyScheme,
    Platform,
    UploadStage,
    WalletScope,
    # Data models
    AnchorRecord,
    Envelope,
    LoadReport,
    PlaintextNote,
    SkippedRecord,
    StorageTransaction,
    UploadReceipt,
    UploadResult,
    WalletSession,
    # Exceptions
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

from elysium_notes.client import NotesVault, NotesVaultSync
from elysium_notes.config import DEVNET_CONFIG, MAINNET_CONFIG, TEST_CONFIG, PipelineConfig
from elysium_notes.core import NoteLockRegistry, RetryPolicy, call_with_retry
from elysium_notes.crypto import (
    EnvelopeCodec,
    decrypt_note,
    derive_box_keys,
    derive_secret,
    encrypt_note,
    generate_nonce,
)
from elysium_notes.guidance import Guidance, funding_guide, install_guide
from elysium_notes.ledger import LedgerAnchor, LedgerProgram, LedgerSigner, SolanaRpcLedger
from elysium_notes.retrieval import PeriodicReconciler, RetrievalReconciler
from elysium_notes.storage import ArweaveGateway, BalanceGuard, StorageNetwork, StorageUploader
from elysium_notes.wallet import (
    DesktopWallet,
    FixedPlatform,
    MobileWallet,
    UserAgentPlatform,
    WalletCapability,
    WalletSessionManager,
    select_wallet,
)

__all__ = [
    "__version__",
    # Clients
    "NotesVault",
    "NotesVaultSync",
    # Config
    "PipelineConfig",
    "MAINNET_CONFIG",
    "DEVNET_CONFIG",
    "TEST_CONFIG",
    # Enums
    "AnchorState",
    "KeyScheme",
    "Platform",
    "UploadStage",
    "WalletScope",
    # Data models
    "AnchorRecord",
    "Envelope",
    "LoadReport",
    "PlaintextNote",
    "SkippedRecord",
    "StorageTransaction",
    "UploadReceipt",
    "UploadResult",
    "WalletSession",
    # Crypto
    "EnvelopeCodec",
    "decrypt_note",
    "derive_box_keys",
    "derive_secret",
    "encrypt_note",
    "generate_nonce",
    # Components
    "ArweaveGateway",
    "BalanceGuard",
    "LedgerAnchor",
    "LedgerProgram",
    "LedgerSigner",
    "NoteLockRegistry",
    "PeriodicReconciler",
    "RetrievalReconciler",
    "RetryPolicy",
    "SolanaRpcLedger",
    "StorageNetwork",
    "StorageUploader",
    "call_with_retry",
    # Wallets
    "DesktopWallet",
    "FixedPlatform",
    "MobileWallet",
    "UserAgentPlatform",
    "WalletCapability",
    "WalletSessionManager",
    "select_wallet",
    # Guidance
    "Guidance",
    "funding_guide",
    "install_guide",
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
