"""Elysium Notes Configuration.

This module defines the PipelineConfig class and preset configurations.
All enums and constants are imported from elysium_notes.types.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from elysium_notes.core.retry import RetryPolicy
from elysium_notes.ledger.layout import to_pubkey
from elysium_notes.types import (
    APP_NAME,
    APP_VERSION,
    CONTENT_TYPE,
    DEFAULT_GATEWAY_URL,
    DEFAULT_RPC_URL,
    DEFAULT_SYNC_INTERVAL_SECONDS,
    DEVNET_RPC_URL,
    MIN_BALANCE_AR,
    NOTE_PROGRAM_ID,
    InvalidConfigError,
    KeyScheme,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "ELYSIUM_"


@dataclass
class PipelineConfig:
    """Configuration for the permanent-storage pipeline.

    Attributes:
        gateway_url: Storage network gateway
        rpc_url: Ledger JSON-RPC endpoint
        program_id: Note program owning the record slots
        app_name: App-Name tag on uploads
        app_version: App-Version tag on uploads
        content_type: Content-Type tag on uploads
        min_balance_ar: Minimum balance required before signing
        balance_policy: Retry bounds for balance queries
        post_policy: Retry bounds for transaction posts
        confirm_policy: Retry bounds for ledger signature confirmation
        request_timeout: HTTP timeout for gateway and RPC clients
        connect_settle_seconds: Pause after a wallet connect before re-querying
        max_concurrent_fetches: Parallel content fetches during retrieval
        sync_interval_seconds: Background reconciliation interval
        key_scheme: Which key the envelope box is sealed to
        passphrase: Optional owner passphrase mixed into the envelope key

    Example:
        >>> config = PipelineConfig(rpc_url=DEVNET_RPC_URL, passphrase="correct horse")
        >>> config.validate()

        >>> config = PipelineConfig.from_env(".env")
    """
    gateway_url: str = DEFAULT_GATEWAY_URL
    rpc_url: str = DEFAULT_RPC_URL
    program_id: str = NOTE_PROGRAM_ID
    app_name: str = APP_NAME
    app_version: str = APP_VERSION
    content_type: str = CONTENT_TYPE
    min_balance_ar: float = MIN_BALANCE_AR
    balance_policy: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=3, base_delay=1.0, per_attempt_timeout=10.0)
    )
    post_policy: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=3, base_delay=1.0, per_attempt_timeout=30.0)
    )
    confirm_policy: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(
            max_attempts=10, base_delay=0.5, per_attempt_timeout=10.0, max_delay=4.0
        )
    )
    request_timeout: float = 30.0
    connect_settle_seconds: float = 0.5
    max_concurrent_fetches: int = 8
    sync_interval_seconds: float = DEFAULT_SYNC_INTERVAL_SECONDS
    key_scheme: KeyScheme = KeyScheme.SELF_SEALED
    passphrase: Optional[str] = field(default=None, repr=False)

    def validate(self) -> None:
        """Check field values.

        Raises:
            InvalidConfigError: On the first invalid field
        """
        for name in ("gateway_url", "rpc_url"):
            url = getattr(self, name)
            if not url.startswith(("http://", "https://")):
                raise InvalidConfigError(f"{name} must be an http(s) URL, got {url!r}")

        try:
            to_pubkey(self.program_id)
        except ValueError as e:
            raise InvalidConfigError(f"program_id {self.program_id!r} is not a valid address") from e

        if not self.app_name:
            raise InvalidConfigError("app_name must not be empty")
        if self.min_balance_ar < 0:
            raise InvalidConfigError("min_balance_ar must be >= 0")
        if self.request_timeout <= 0:
            raise InvalidConfigError("request_timeout must be > 0")
        if self.connect_settle_seconds < 0:
            raise InvalidConfigError("connect_settle_seconds must be >= 0")
        if self.max_concurrent_fetches < 1:
            raise InvalidConfigError("max_concurrent_fetches must be >= 1")
        if self.sync_interval_seconds <= 0:
            raise InvalidConfigError("sync_interval_seconds must be > 0")
        for name in ("balance_policy", "post_policy", "confirm_policy"):
            policy = getattr(self, name)
            if policy.max_attempts < 1:
                raise InvalidConfigError(f"{name}.max_attempts must be >= 1")
            if policy.base_delay < 0:
                raise InvalidConfigError(f"{name}.base_delay must be >= 0")
        if self.passphrase is not None and not self.passphrase:
            raise InvalidConfigError("passphrase must not be empty when set")

    def with_passphrase(self, passphrase: Optional[str]) -> PipelineConfig:
        """Return a new config with a different passphrase."""
        return replace(self, passphrase=passphrase)

    def with_rpc_url(self, rpc_url: str) -> PipelineConfig:
        """Return a new config with a different ledger endpoint."""
        return replace(self, rpc_url=rpc_url)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, base: Optional[PipelineConfig] = None) -> PipelineConfig:
        """Build a config from ``ELYSIUM_*`` variables.

        Values in ``env_file`` are read first; process environment variables
        override them.

        Raises:
            InvalidConfigError: If a numeric or enum value cannot be parsed
        """
        values: dict[str, str] = {}
        if env_file:
            values.update(_read_env_file(env_file))
        values.update({k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)})

        config = base or cls()
        overrides: dict[str, object] = {}
        for attr, caster in _ENV_FIELDS.items():
            raw = values.get(ENV_PREFIX + attr.upper())
            if raw is None or raw == "":
                continue
            try:
                overrides[attr] = caster(raw)
            except (ValueError, KeyError) as e:
                raise InvalidConfigError(f"{ENV_PREFIX}{attr.upper()}={raw!r}: {e}") from e

        if overrides:
            logger.debug(f"Config overrides from environment: {sorted(overrides)}")
        return replace(config, **overrides)


def _parse_key_scheme(raw: str) -> KeyScheme:
    return KeyScheme(raw.strip().lower())


_ENV_FIELDS = {
    "gateway_url": str,
    "rpc_url": str,
    "program_id": str,
    "app_name": str,
    "app_version": str,
    "min_balance_ar": float,
    "request_timeout": float,
    "connect_settle_seconds": float,
    "max_concurrent_fetches": int,
    "sync_interval_seconds": float,
    "key_scheme": _parse_key_scheme,
    "passphrase": str,
}


def _read_env_file(env_file: str) -> dict[str, str]:
    """Parse KEY=VALUE lines from a .env file. Missing files yield nothing."""
    env_path = Path(env_file)
    if not env_path.exists():
        return {}

    values: dict[str, str] = {}
    try:
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" in line:
                    key, value = line.split("=", 1)
                    values[key.strip()] = value.strip().strip('"').strip("'")
    except (IOError, OSError) as e:
        logger.warning(f"Failed to read .env file {env_file}: {e}")
    return values


# =============================================================================
# Preset Configurations
# =============================================================================

MAINNET_CONFIG = PipelineConfig()

DEVNET_CONFIG = PipelineConfig(rpc_url=DEVNET_RPC_URL)

# No waits or backoff; for tests and local fakes
TEST_CONFIG = PipelineConfig(
    rpc_url=DEVNET_RPC_URL,
    balance_policy=RetryPolicy(max_attempts=3, base_delay=0.0, per_attempt_timeout=1.0),
    post_policy=RetryPolicy(max_attempts=3, base_delay=0.0, per_attempt_timeout=1.0),
    confirm_policy=RetryPolicy(max_attempts=3, base_delay=0.0, per_attempt_timeout=1.0),
    request_timeout=5.0,
    connect_settle_seconds=0.0,
)


# =============================================================================
# Public API
# =============================================================================

__all__ = [
    "PipelineConfig",
    "MAINNET_CONFIG",
    "DEVNET_CONFIG",
    "TEST_CONFIG",
]
