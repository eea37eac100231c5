"""Tests for the StorageUploader state machine."""

import httpx
import pytest

from conftest import STORAGE_ADDRESS, FakeStorage, FakeWallet
from elysium_notes import (
    BalanceGuard,
    InsufficientFundsError,
    NetworkPostError,
    PermissionDeniedError,
    RetryPolicy,
    SigningError,
    StorageUploader,
    TransactionBuildError,
    UploadStage,
    UserCancelledError,
    WalletSessionManager,
    WalletUnavailableError,
)

FAST = RetryPolicy(max_attempts=3, base_delay=0.0, per_attempt_timeout=1.0)


class RawErrorWallet(FakeWallet):
    """Wallet extension that raises plain runtime errors instead of typed ones."""

    def __init__(self, connect_error=None, **kwargs):
        super().__init__(connected=False, **kwargs)
        self.connect_error = connect_error

    async def connect(self, scopes):
        self.connect_calls.append(tuple(scopes))
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True
        return tuple(scopes)

    async def get_active_address(self):
        if not self.connected:
            raise RuntimeError("Not connected")
        return self.address


def make_uploader(wallet, storage, min_balance_ar=0.001) -> StorageUploader:
    return StorageUploader(
        storage,
        WalletSessionManager(wallet, settle_seconds=0),
        BalanceGuard(storage, FAST, min_balance_ar),
        post_policy=FAST,
    )


class TestUploadFlow:
    """Test the happy path."""

    @pytest.mark.asyncio
    async def test_upload_returns_pointer(self, wallet, storage):
        uploader = make_uploader(wallet, storage)
        receipt = await uploader.upload(b"\x01" * 24 + b"ciphertext", note_id=3)
        assert receipt.pointer == wallet.signed[0].id
        assert receipt.address == STORAGE_ADDRESS
        assert storage.blobs[receipt.pointer] == b"\x01" * 24 + b"ciphertext"
        assert receipt.stages == [
            "check_wallet",
            "build_transaction",
            "check_balance",
            "sign",
            "post",
            "done",
        ]

    @pytest.mark.asyncio
    async def test_tags_added(self, wallet, storage):
        await make_uploader(wallet, storage).upload(b"data", note_id=1)
        tx = storage.posted[0]
        assert tx.get_tag("Content-Type") == "application/octet-stream"
        assert tx.get_tag("App-Name") == "Elysium-Notes"
        assert tx.get_tag("App-Version") == "1.0.0"
        assert tx.get_tag("Uploaded-By") == STORAGE_ADDRESS

    @pytest.mark.asyncio
    async def test_connect_stage_when_disconnected(self, storage):
        wallet = FakeWallet(connected=False)
        stages = []
        await make_uploader(wallet, storage).upload(b"data", on_stage=stages.append)
        assert stages[:3] == [UploadStage.CHECK_WALLET, UploadStage.CONNECT, UploadStage.BUILD_TRANSACTION]

    @pytest.mark.asyncio
    async def test_raw_not_connected_error_triggers_connect(self, storage):
        wallet = RawErrorWallet()
        stages = []
        receipt = await make_uploader(wallet, storage).upload(b"data", on_stage=stages.append)
        assert len(wallet.connect_calls) == 1
        assert UploadStage.CONNECT in stages
        assert receipt.pointer in storage.blobs

    @pytest.mark.asyncio
    async def test_already_posted_is_success(self, wallet, storage):
        storage.post_statuses = [208]
        receipt = await make_uploader(wallet, storage).upload(b"data")
        assert receipt.pointer in storage.blobs


class TestUploadFailures:
    """Test failure classification at each stage."""

    @pytest.mark.asyncio
    async def test_no_wallet(self, storage):
        uploader = make_uploader(None, storage)
        with pytest.raises(WalletUnavailableError):
            await uploader.upload(b"data", note_id=1)
        assert uploader.last_attempt.failed
        assert storage.posted == []

    @pytest.mark.asyncio
    async def test_build_failure(self, wallet, storage):
        storage.create_error = httpx.ConnectError("gateway down")
        with pytest.raises(TransactionBuildError) as exc_info:
            await make_uploader(wallet, storage).upload(b"data", note_id=5)
        assert exc_info.value.stage == "build_transaction"
        assert exc_info.value.note_id == 5

    @pytest.mark.asyncio
    async def test_insufficient_funds_never_signs_or_posts(self, wallet):
        """Test an underfunded address is refused before signing."""
        storage = FakeStorage(balance_winston=0)
        with pytest.raises(InsufficientFundsError) as exc_info:
            await make_uploader(wallet, storage).upload(b"data", note_id=2)
        assert exc_info.value.guidance is not None
        assert wallet.signed == []
        assert storage.posted == []

    @pytest.mark.asyncio
    async def test_unreachable_balance_blocks_upload(self, wallet, storage):
        """Test a balance that cannot be fetched blocks the upload."""
        storage.balance_error = httpx.ConnectError("down")
        with pytest.raises(InsufficientFundsError) as exc_info:
            await make_uploader(wallet, storage).upload(b"data")
        assert exc_info.value.balance == 0.0
        assert storage.balance_calls == 3
        assert storage.posted == []

    @pytest.mark.asyncio
    async def test_reward_above_minimum_is_required(self, wallet):
        storage = FakeStorage(balance_winston=10**10, reward=2 * 10**10)
        with pytest.raises(InsufficientFundsError) as exc_info:
            await make_uploader(wallet, storage).upload(b"data")
        assert exc_info.value.required == 0.02

    @pytest.mark.asyncio
    async def test_user_cancels_signing(self, storage):
        wallet = FakeWallet(cancel_sign=True)
        with pytest.raises(UserCancelledError) as exc_info:
            await make_uploader(wallet, storage).upload(b"data", note_id=4)
        assert exc_info.value.recoverable
        assert exc_info.value.stage == "sign"
        assert storage.posted == []

    @pytest.mark.asyncio
    async def test_raw_connect_rejection_is_cancellation(self, storage):
        uploader = make_uploader(RawErrorWallet(connect_error=RuntimeError("User rejected the request")), storage)
        with pytest.raises(UserCancelledError) as exc_info:
            await uploader.upload(b"data", note_id=2)
        assert exc_info.value.stage == "connect"
        assert uploader.last_attempt.failed
        assert storage.posted == []

    @pytest.mark.asyncio
    async def test_raw_connect_failure_is_permission_error(self, storage):
        uploader = make_uploader(RawErrorWallet(connect_error=RuntimeError("extension crashed")), storage)
        with pytest.raises(PermissionDeniedError) as exc_info:
            await uploader.upload(b"data")
        assert exc_info.value.stage == "connect"
        assert uploader.last_attempt.failed

    @pytest.mark.asyncio
    async def test_raw_signing_failure(self, storage):
        wallet = FakeWallet(sign_error=RuntimeError("hardware wallet unplugged"))
        with pytest.raises(SigningError):
            await make_uploader(wallet, storage).upload(b"data")

    @pytest.mark.asyncio
    async def test_post_retried_then_succeeds(self, wallet, storage):
        storage.post_statuses = [500, 502, 200]
        receipt = await make_uploader(wallet, storage).upload(b"data")
        assert len(storage.posted) == 3
        assert receipt.pointer in storage.blobs

    @pytest.mark.asyncio
    async def test_post_gives_up(self, wallet, storage):
        storage.post_statuses = [500, 500, 500]
        uploader = make_uploader(wallet, storage)
        with pytest.raises(NetworkPostError) as exc_info:
            await uploader.upload(b"data", note_id=9)
        error = exc_info.value
        assert error.status == 500
        assert error.stage == "post"
        assert error.note_id == 9
        assert error.pointer == wallet.signed[0].id
        assert uploader.last_attempt.stage is UploadStage.FAILED
        assert len(storage.posted) == 3
