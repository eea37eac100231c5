"""Tests for the storage transaction model, gateway client and balance guard."""

import asyncio
import hashlib
import json

import httpx
import pytest

from conftest import FakeStorage
from elysium_notes import (
    ArweaveGateway,
    BalanceGuard,
    FetchError,
    InsufficientFundsError,
    RetryPolicy,
    StorageTransaction,
)
from elysium_notes.storage import winston_to_ar
from elysium_notes.types.transaction import (
    MAX_CHUNK_SIZE,
    Tag,
    _chunk_boundaries,
    b64url_decode,
    b64url_encode,
    compute_data_root,
)

FAST = RetryPolicy(max_attempts=3, base_delay=0.0, per_attempt_timeout=1.0)


def sha(*parts: bytes) -> bytes:
    return hashlib.sha256(b"".join(parts)).digest()


def note(value: int) -> bytes:
    return value.to_bytes(32, "big")


class TestTransactionModel:
    """Test StorageTransaction and its data root."""

    def test_single_chunk_root(self):
        """Test a small payload's root is its single leaf."""
        data = b"envelope bytes"
        expected = sha(sha(sha(data)), sha(note(len(data))))
        assert compute_data_root(data) == expected

    def test_two_chunk_root(self):
        """Test a two-chunk payload's root is the branch over both leaves."""
        data = bytes(MAX_CHUNK_SIZE + 40_000)
        first = sha(sha(sha(data[:MAX_CHUNK_SIZE])), sha(note(MAX_CHUNK_SIZE)))
        second = sha(sha(sha(data[MAX_CHUNK_SIZE:])), sha(note(len(data))))
        expected = sha(sha(first), sha(second), sha(note(MAX_CHUNK_SIZE)))
        assert compute_data_root(data) == expected

    def test_short_tail_is_balanced(self):
        """Test a tail under the minimum chunk size is split evenly with its predecessor."""
        size = MAX_CHUNK_SIZE + 1000
        assert _chunk_boundaries(size) == [(0, 131572), (131572, size)]

    def test_empty_payload_has_one_chunk(self):
        assert _chunk_boundaries(0) == [(0, 0)]

    def test_b64url(self):
        assert b64url_encode(b"\xfb\xff") == "-_8"
        assert b64url_decode("-_8") == b"\xfb\xff"

    def test_tags_encoded(self):
        tx = StorageTransaction(data=b"x")
        tx.add_tag("App-Name", "Elysium-Notes")
        body = tx.to_dict()
        assert body["tags"] == [Tag("App-Name", "Elysium-Notes").to_dict()]
        assert tx.get_tag("App-Name") == "Elysium-Notes"
        assert tx.get_tag("Missing") is None

    def test_dict_round_trip_keeps_signature(self):
        tx = StorageTransaction(data=b"payload", last_tx="a", reward=12, id="id", signature="sig")
        tx.add_tag("Uploaded-By", "addr")
        restored = StorageTransaction.from_dict(tx.to_dict())
        assert restored.is_signed
        assert restored.data == b"payload"
        assert restored.reward == 12
        assert restored.data_root == tx.data_root
        assert restored.get_tag("Uploaded-By") == "addr"


def gateway_with(handler) -> ArweaveGateway:
    client = httpx.AsyncClient(base_url="https://gateway.test", transport=httpx.MockTransport(handler))
    return ArweaveGateway("https://gateway.test", client=client)


class TestArweaveGateway:
    """Test ArweaveGateway over a mock transport."""

    @pytest.mark.asyncio
    async def test_create_transaction(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/tx_anchor":
                return httpx.Response(200, text="anchor-value")
            if request.url.path == "/price/5":
                return httpx.Response(200, text="123456")
            return httpx.Response(404)

        tx = await gateway_with(handler).create_transaction(b"hello")
        assert tx.last_tx == "anchor-value"
        assert tx.reward == 123456
        assert tx.data == b"hello"

    @pytest.mark.asyncio
    async def test_create_transaction_http_error(self):
        gateway = gateway_with(lambda request: httpx.Response(503))
        with pytest.raises(httpx.HTTPStatusError):
            await gateway.create_transaction(b"hello")

    @pytest.mark.asyncio
    async def test_post_sends_gateway_json(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200)

        tx = StorageTransaction(data=b"hello", id="tx-1", signature="sig")
        response = await gateway_with(handler).post(tx)
        assert response.status == 200
        assert response.id == "tx-1"
        assert seen["path"] == "/tx"
        assert seen["body"]["data"] == b64url_encode(b"hello")
        assert seen["body"]["data_size"] == "5"

    @pytest.mark.asyncio
    async def test_fetch(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/tx-1":
                return httpx.Response(200, content=b"\x01\x02")
            return httpx.Response(404)

        gateway = gateway_with(handler)
        assert await gateway.fetch("tx-1") == b"\x01\x02"
        with pytest.raises(FetchError) as exc_info:
            await gateway.fetch("missing")
        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_fetch_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable")

        with pytest.raises(FetchError):
            await gateway_with(handler).fetch("tx-1")

    @pytest.mark.asyncio
    async def test_balance(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/wallet/addr/balance"
            return httpx.Response(200, text="2500000000000")

        assert await gateway_with(handler).get_balance("addr") == 2_500_000_000_000

    @pytest.mark.asyncio
    async def test_context_manager_closes_owned_client(self):
        async with ArweaveGateway("https://gateway.test") as gateway:
            assert gateway.base_url == "https://gateway.test"
        assert gateway._client.is_closed


class TestBalanceGuard:
    """Test BalanceGuard."""

    def test_winston_conversion(self):
        assert winston_to_ar(10**12) == 1.0
        assert winston_to_ar(10**9) == 0.001

    @pytest.mark.asyncio
    async def test_check_funding(self):
        storage = FakeStorage(balance_winston=2 * 10**12)
        assert await BalanceGuard(storage, FAST).check_funding("addr") == 2.0

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        storage = FakeStorage(balance_winston=10**12)
        calls = {"n": 0}
        original = storage.get_balance

        async def flaky(address):
            calls["n"] += 1
            if calls["n"] < 3:
                raise httpx.ConnectError("down")
            return await original(address)

        storage.get_balance = flaky
        assert await BalanceGuard(storage, FAST).check_funding("addr") == 1.0
        assert calls["n"] == 3

    @pytest.mark.asyncio
    async def test_fails_closed(self):
        """Test an unreachable network reports a zero balance after every attempt."""
        storage = FakeStorage()
        storage.balance_error = httpx.ConnectError("down")
        assert await BalanceGuard(storage, FAST).check_funding("addr") == 0.0
        assert storage.balance_calls == 3

    @pytest.mark.asyncio
    async def test_timeouts_fail_closed(self):
        """Test attempts that all time out resolve to 0.0."""
        storage = FakeStorage()

        async def hang(address):
            storage.balance_calls += 1
            await asyncio.sleep(10)

        storage.get_balance = hang
        policy = RetryPolicy(max_attempts=3, base_delay=0.0, per_attempt_timeout=0.01)
        assert await BalanceGuard(storage, policy).check_funding("addr") == 0.0
        assert storage.balance_calls == 3

    def test_required_for(self):
        guard = BalanceGuard(FakeStorage(), FAST, min_balance_ar=0.001)
        assert guard.required_for(0) == 0.001
        assert guard.required_for(5 * 10**12) == 5.0

    @pytest.mark.asyncio
    async def test_ensure_funded_raises_with_guidance(self):
        guard = BalanceGuard(FakeStorage(balance_winston=10**6), FAST)
        with pytest.raises(InsufficientFundsError) as exc_info:
            await guard.ensure_funded("addr", 0.001)
        error = exc_info.value
        assert error.address == "addr"
        assert error.required == 0.001
        assert error.guidance.title == "Insufficient AR Balance"
        assert error.stage == "check_balance"
