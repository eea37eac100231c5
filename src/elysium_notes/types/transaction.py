"""Storage network transaction model.

A format-2 Arweave data transaction: the envelope bytes travel as opaque
transaction data, identified by a merkle ``data_root`` over 256 KiB chunks.
Owner, id and signature are filled in by the wallet when it signs.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass, field
from typing import Any, Optional

MAX_CHUNK_SIZE = 256 * 1024
MIN_CHUNK_SIZE = 32 * 1024
NOTE_SIZE = 32


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def _sha256(*parts: bytes) -> bytes:
    return hashlib.sha256(b"".join(parts)).digest()


def _note(value: int) -> bytes:
    return value.to_bytes(NOTE_SIZE, "big")


@dataclass
class _Node:
    id: bytes
    max_byte_range: int


def _chunk_boundaries(size: int) -> list[tuple[int, int]]:
    """Chunk (start, end) ranges; a short tail is balanced with its predecessor."""
    ranges = []
    cursor = 0
    rest = size
    while rest >= MAX_CHUNK_SIZE:
        chunk_size = MAX_CHUNK_SIZE
        next_size = rest - MAX_CHUNK_SIZE
        if 0 < next_size < MIN_CHUNK_SIZE:
            chunk_size = -(-rest // 2)
        ranges.append((cursor, cursor + chunk_size))
        cursor += chunk_size
        rest -= chunk_size
    ranges.append((cursor, size))
    return ranges


def compute_data_root(data: bytes) -> bytes:
    """Merkle root of ``data`` as computed by the storage network."""
    layer = []
    for start, end in _chunk_boundaries(len(data)):
        data_hash = _sha256(data[start:end])
        leaf_id = _sha256(_sha256(data_hash), _sha256(_note(end)))
        layer.append(_Node(id=leaf_id, max_byte_range=end))

    while len(layer) > 1:
        next_layer = []
        for i in range(0, len(layer), 2):
            left = layer[i]
            if i + 1 == len(layer):
                next_layer.append(left)
                continue
            right = layer[i + 1]
            branch_id = _sha256(
                _sha256(left.id),
                _sha256(right.id),
                _sha256(_note(left.max_byte_range)),
            )
            next_layer.append(_Node(id=branch_id, max_byte_range=right.max_byte_range))
        layer = next_layer

    return layer[0].id


@dataclass
class Tag:
    name: str
    value: str

    def to_dict(self) -> dict:
        return {
            "name": b64url_encode(self.name.encode("utf-8")),
            "value": b64url_encode(self.value.encode("utf-8")),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Tag:
        return cls(
            name=b64url_decode(data["name"]).decode("utf-8"),
            value=b64url_decode(data["value"]).decode("utf-8"),
        )


@dataclass
class StorageTransaction:
    """Unsigned or signed data transaction.

    Attributes:
        data: Opaque payload (the packed envelope)
        last_tx: Anchor returned by the gateway (replay protection)
        reward: Fee in winston
        tags: Metadata tags
        owner: Signer's public key (base64url), set when signed
        id: Transaction id (the content pointer), set when signed
        signature: Wallet signature (base64url), set when signed
    """
    data: bytes
    last_tx: str = ""
    reward: int = 0
    tags: list[Tag] = field(default_factory=list)
    owner: str = ""
    target: str = ""
    quantity: str = "0"
    id: str = ""
    signature: str = ""
    format: int = 2
    _data_root: Optional[bytes] = field(default=None, repr=False)

    @property
    def data_size(self) -> int:
        return len(self.data)

    @property
    def data_root(self) -> bytes:
        if self._data_root is None:
            self._data_root = compute_data_root(self.data)
        return self._data_root

    @property
    def is_signed(self) -> bool:
        return bool(self.id and self.signature)

    def add_tag(self, name: str, value: str) -> None:
        self.tags.append(Tag(name, value))

    def get_tag(self, name: str) -> Optional[str]:
        for tag in self.tags:
            if tag.name == name:
                return tag.value
        return None

    def to_dict(self) -> dict[str, Any]:
        """JSON body accepted by the gateway's /tx endpoint."""
        return {
            "format": self.format,
            "id": self.id,
            "last_tx": self.last_tx,
            "owner": self.owner,
            "tags": [tag.to_dict() for tag in self.tags],
            "target": self.target,
            "quantity": self.quantity,
            "data": b64url_encode(self.data),
            "data_size": str(self.data_size),
            "data_root": b64url_encode(self.data_root),
            "reward": str(self.reward),
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StorageTransaction:
        raw = b64url_decode(data.get("data", ""))
        root = data.get("data_root")
        return cls(
            data=raw,
            last_tx=data.get("last_tx", ""),
            reward=int(data.get("reward", 0) or 0),
            tags=[Tag.from_dict(t) for t in data.get("tags", [])],
            owner=data.get("owner", ""),
            target=data.get("target", ""),
            quantity=str(data.get("quantity", "0")),
            id=data.get("id", ""),
            signature=data.get("signature", ""),
            format=int(data.get("format", 2)),
            _data_root=b64url_decode(root) if root else None,
        )
