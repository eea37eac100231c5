"""Elysium Types - Exception Classes.

This module defines all exceptions raised by the permanent-storage pipeline.
All exceptions inherit from ElysiumError for easy catching.

Every error carries the pipeline stage it was raised from and, when known,
the note id and content pointer involved, so callers can decide whether to
re-prompt, retry the whole flow, or show a guidance dialog.

Usage:
    try:
        result = await vault.upload_note(note, owner_key, note_id=7)
    except InsufficientFundsError as e:
        show_dialog(e.guidance)
    except ElysiumError as e:
        print(f"Upload failed at {e.stage}: {e}")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from elysium_notes.guidance import Guidance


class ElysiumError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        stage: Pipeline stage the error was raised from (e.g. "sign", "post")
        note_id: Note id involved, if known
        pointer: Content pointer involved, if known
        recoverable: Whether re-prompting or retrying can succeed
    """

    recoverable: bool = False

    def __init__(
        self,
        message: str,
        *,
        stage: str = "",
        note_id: Optional[int] = None,
        pointer: Optional[str] = None,
    ):
        self.stage = stage
        self.note_id = note_id
        self.pointer = pointer
        super().__init__(message)

    def with_context(
        self,
        *,
        stage: Optional[str] = None,
        note_id: Optional[int] = None,
        pointer: Optional[str] = None,
    ) -> "ElysiumError":
        """Fill in missing context fields and return self."""
        if stage and not self.stage:
            self.stage = stage
        if note_id is not None and self.note_id is None:
            self.note_id = note_id
        if pointer and not self.pointer:
            self.pointer = pointer
        return self


# Wallet errors
class WalletUnavailableError(ElysiumError):
    """Raised when no wallet capability is installed for the platform.

    Fatal: the caller should show the attached install guidance.
    """

    def __init__(self, wallet_name: str = "wallet", guidance: Optional["Guidance"] = None):
        self.wallet_name = wallet_name
        self.guidance = guidance
        super().__init__(
            f"{wallet_name} wallet not found. Please install it and try again.",
            stage="check_wallet",
        )


class PermissionDeniedError(ElysiumError):
    """Raised when the user declines a wallet permission request."""

    recoverable = True

    def __init__(self, reason: str = "", scopes: Optional[list[str]] = None, stage: str = "connect"):
        self.reason = reason
        self.scopes = scopes or []
        msg = "Wallet permission denied"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, stage=stage)


class UserCancelledError(PermissionDeniedError):
    """Raised when the user cancels a wallet prompt."""

    def __init__(self, reason: str = "Cancelled by user", stage: str = "sign"):
        super().__init__(reason, stage=stage)


class SigningError(ElysiumError):
    """Raised when the wallet fails to sign for a reason other than cancellation."""

    recoverable = True

    def __init__(self, reason: str = ""):
        self.reason = reason
        msg = "Transaction signing failed"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, stage="sign")


# Upload errors
class TransactionBuildError(ElysiumError):
    """Raised when the storage transaction cannot be built.

    Fatal for the attempt: the whole upload must be retried from the start.
    """

    def __init__(self, reason: str = ""):
        self.reason = reason
        msg = "Failed to create storage transaction"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, stage="build_transaction")


class NetworkPostError(ElysiumError):
    """Raised when posting a signed transaction fails."""

    recoverable = True

    def __init__(self, status: Optional[int] = None, reason: str = "", pointer: Optional[str] = None):
        self.status = status
        self.reason = reason
        msg = "Failed to post transaction"
        if status is not None:
            msg += f" (status {status})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, stage="post", pointer=pointer)


class InsufficientFundsError(ElysiumError):
    """Raised when the signing address cannot pay for the upload."""

    def __init__(
        self,
        address: str,
        balance: float,
        required: float,
        guidance: Optional["Guidance"] = None,
    ):
        self.address = address
        self.balance = balance
        self.required = required
        self.guidance = guidance
        super().__init__(
            f"Insufficient balance for {address}: {balance} AR available, "
            f"{required} AR required",
            stage="check_balance",
        )


# Envelope errors
class EncryptionError(ElysiumError):
    """Raised when the crypto library refuses to seal a payload."""

    def __init__(self, reason: str = ""):
        msg = "Encryption failed"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, stage="encrypt")


class DecryptionError(ElysiumError):
    """Raised when an envelope fails authentication.

    Never accompanied by partial plaintext.
    """

    label = "Decryption failed"
    stage_name = "decrypt"

    def __init__(self, reason: str = "", pointer: Optional[str] = None):
        self.reason = reason
        msg = self.label
        if reason:
            msg += f": {reason}"
        super().__init__(msg, stage=self.stage_name, pointer=pointer)


class CompressionError(DecryptionError):
    """Raised when envelope bytes cannot be decompressed."""

    label = "Decompression failed"
    stage_name = "decompress"


class NoteFormatError(ElysiumError):
    """Raised when a decrypted payload is not a valid note."""

    def __init__(self, reason: str = "", pointer: Optional[str] = None):
        msg = "Invalid note payload"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, stage="parse", pointer=pointer)


class FetchError(ElysiumError):
    """Raised when content cannot be fetched from the storage network."""

    recoverable = True

    def __init__(self, pointer: str, status: Optional[int] = None, reason: str = ""):
        self.status = status
        msg = f"Failed to fetch {pointer}"
        if status is not None:
            msg += f" (status {status})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, stage="fetch", pointer=pointer)


# Ledger errors
class LedgerError(ElysiumError):
    """Raised when the ledger RPC or program call fails."""

    def __init__(self, message: str, *, stage: str = "ledger", note_id: Optional[int] = None):
        super().__init__(message, stage=stage, note_id=note_id)


class LedgerAnchorError(LedgerError):
    """Raised when a record cannot be created or made permanent."""

    def __init__(self, note_id: int, reason: str = "", stage: str = "anchor"):
        self.reason = reason
        msg = f"Ledger anchor failed for note {note_id}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, stage=stage, note_id=note_id)


class RecordLayoutError(LedgerError):
    """Raised when on-ledger record bytes do not match the expected layout."""

    def __init__(self, reason: str):
        super().__init__(f"Malformed anchor record: {reason}", stage="decode_record")


class InvalidConfigError(ElysiumError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str):
        super().__init__(f"Invalid configuration: {message}", stage="config")
