"""Wallet session acquisition (CHECK_WALLET and CONNECT stages).

A session is acquired per operation and never persisted. When the wallet
already exposes an active address the connect prompt is skipped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from elysium_notes.guidance import install_guide
from elysium_notes.types import (
    DESKTOP_WALLET_NAME,
    DESKTOP_WALLET_URL,
    REQUIRED_SCOPES,
    ElysiumError,
    PermissionDeniedError,
    UploadStage,
    UserCancelledError,
    WalletSession,
    WalletUnavailableError,
)
from elysium_notes.wallet.base import WalletCapability, is_cancellation

logger = logging.getLogger(__name__)

T = TypeVar("T")

StageCallback = Callable[[UploadStage], None]


async def _reclassified(call: Awaitable[T], stage: str) -> T:
    """Await a wallet call, turning raw failures into permission errors."""
    try:
        return await call
    except ElysiumError:
        raise
    except Exception as e:
        if is_cancellation(e):
            raise UserCancelledError(str(e), stage=stage) from e
        raise PermissionDeniedError(str(e) or type(e).__name__, stage=stage) from e


class WalletSessionManager:
    """Acquires a WalletSession from an injected wallet capability.

    Args:
        wallet: Signing capability, or None when the platform has none
        settle_seconds: Pause after a connect before re-querying the wallet
        wallet_name: Name used in install guidance when wallet is None
        install_url: Install link used in that guidance
    """

    def __init__(
        self,
        wallet: Optional[WalletCapability],
        settle_seconds: float = 0.5,
        *,
        wallet_name: str = DESKTOP_WALLET_NAME,
        install_url: str = DESKTOP_WALLET_URL,
    ):
        self._wallet = wallet
        self._settle_seconds = settle_seconds
        self._wallet_name = wallet_name
        self._install_url = install_url
        self._session: Optional[WalletSession] = None

    @property
    def wallet(self) -> Optional[WalletCapability]:
        return self._wallet

    @property
    def session(self) -> Optional[WalletSession]:
        return self._session

    def reset(self) -> None:
        """Forget the current session so the next acquire re-checks the wallet."""
        self._session = None

    async def acquire(self, on_stage: Optional[StageCallback] = None) -> WalletSession:
        """Return a connected session, prompting the user only if needed.

        Raises:
            WalletUnavailableError: No wallet capability
            PermissionDeniedError: The user declined the connect prompt
            UserCancelledError: The user dismissed the connect prompt
        """
        notify = on_stage or (lambda stage: None)

        notify(UploadStage.CHECK_WALLET)
        if self._wallet is None:
            raise WalletUnavailableError(
                self._wallet_name, install_guide(self._wallet_name, self._install_url)
            )
        wallet = self._wallet

        scopes = self._session.scopes if self._session else ()
        try:
            address = await wallet.get_active_address()
        except Exception as e:
            logger.info(f"{wallet.name} not connected ({e}), requesting permissions")
            notify(UploadStage.CONNECT)
            scopes = await _reclassified(wallet.connect(REQUIRED_SCOPES), "connect")
            if self._settle_seconds > 0:
                await asyncio.sleep(self._settle_seconds)
            address = await _reclassified(wallet.get_active_address(), "check_wallet")

        public_key = await _reclassified(wallet.get_active_public_key(), "check_wallet")
        if not public_key:
            raise PermissionDeniedError("wallet returned no public key", stage="check_wallet")

        self._session = WalletSession(
            address=address,
            public_key=public_key,
            wallet=wallet,
            scopes=tuple(scopes),
        )
        logger.debug(f"Wallet session ready for {address}")
        return self._session
