"""Core utilities shared across pipeline stages."""

from elysium_notes.core.locks import NoteLockRegistry
from elysium_notes.core.retry import RetryPolicy, call_with_retry

__all__ = [
    "NoteLockRegistry",
    "RetryPolicy",
    "call_with_retry",
]
