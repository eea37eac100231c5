"""Note retrieval from ledger records and storage content."""

from elysium_notes.retrieval.reconciler import (
    RetrievalReconciler,
    owner_key_from_address,
    placeholder_note,
)
from elysium_notes.retrieval.sync import PeriodicReconciler

__all__ = [
    "PeriodicReconciler",
    "RetrievalReconciler",
    "owner_key_from_address",
    "placeholder_note",
]
