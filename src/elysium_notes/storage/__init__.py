"""Durable storage: gateway client, balance guard and the upload state machine."""

from elysium_notes.storage.balance import BalanceGuard, winston_to_ar
from elysium_notes.storage.network import ArweaveGateway, PostResponse, StorageNetwork
from elysium_notes.storage.uploader import StorageUploader, UploadAttempt

__all__ = [
    "ArweaveGateway",
    "BalanceGuard",
    "PostResponse",
    "StorageNetwork",
    "StorageUploader",
    "UploadAttempt",
    "winston_to_ar",
]
