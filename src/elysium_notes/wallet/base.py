"""Wallet capability interface and platform variants.

The pipeline never discovers a wallet by probing globals. Callers inject a
WalletCapability, usually picked with select_wallet() from the bridges the
host platform exposes and an explicit PlatformStrategy.

Variants:
    - DesktopWallet: browser-extension bridge with one awaitable per method
      (connect, getActiveAddress, getActivePublicKey, sign)
    - MobileWallet: request-based bridge, ``request({"method": ..., "params": [...]})``

Both reclassify raw bridge failures into the pipeline's error taxonomy.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional, Protocol, Sequence

from elysium_notes.guidance import install_guide
from elysium_notes.types import (
    DESKTOP_WALLET_NAME,
    DESKTOP_WALLET_URL,
    MOBILE_WALLET_NAME,
    MOBILE_WALLET_URL,
    PermissionDeniedError,
    Platform,
    SigningError,
    UserCancelledError,
    WalletScope,
    WalletUnavailableError,
)
from elysium_notes.types.transaction import StorageTransaction, b64url_decode

logger = logging.getLogger(__name__)

_CANCEL_PATTERN = re.compile(r"cancel|reject|denied|declin", re.IGNORECASE)
_MOBILE_UA_PATTERN = re.compile(
    r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE
)


def is_cancellation(error: BaseException) -> bool:
    """Whether a raw wallet error means the user dismissed the prompt."""
    return bool(_CANCEL_PATTERN.search(str(error)))


class WalletCapability(Protocol):
    """Protocol for a signing wallet.

    Implementations raise PermissionDeniedError / UserCancelledError when the
    user declines, SigningError for other signing failures.
    """

    name: str
    install_url: str

    async def connect(self, scopes: Sequence[WalletScope]) -> tuple[WalletScope, ...]:
        """Request permission scopes; returns the granted scopes."""
        ...

    async def get_active_address(self) -> str:
        ...

    async def get_active_public_key(self) -> bytes:
        ...

    async def sign(self, tx: StorageTransaction) -> StorageTransaction:
        ...


class BaseWallet(ABC):
    """Shared reclassification logic for bridge-backed wallets.

    Subclasses implement _invoke() for their bridge's calling convention.
    """

    name: str = "wallet"
    install_url: str = ""
    PLATFORM: Platform

    def __init__(self, bridge: Any):
        """Initialize wallet.

        Args:
            bridge: Platform object exposing the wallet API

        Raises:
            WalletUnavailableError: If bridge is None
        """
        if bridge is None:
            raise WalletUnavailableError(self.name, install_guide(self.name, self.install_url))
        self._bridge = bridge

    @abstractmethod
    async def _invoke(self, method: str, *params: Any) -> Any:
        """Call a bridge method by its wallet-API name."""
        pass

    async def connect(self, scopes: Sequence[WalletScope]) -> tuple[WalletScope, ...]:
        requested = [scope.value for scope in scopes]
        try:
            granted = await self._invoke("connect", requested)
        except Exception as e:
            if is_cancellation(e):
                raise UserCancelledError(str(e), stage="connect") from e
            raise PermissionDeniedError(
                f"Please unlock {self.name} and try again ({e})", scopes=requested
            ) from e

        if isinstance(granted, (list, tuple)):
            values = set(granted)
            missing = [s for s in requested if s not in values]
            if missing:
                raise PermissionDeniedError(
                    f"missing scopes {', '.join(missing)}", scopes=missing
                )
        return tuple(scopes)

    async def get_active_address(self) -> str:
        try:
            address = await self._invoke("getActiveAddress")
        except Exception as e:
            raise PermissionDeniedError(f"address not available: {e}", stage="check_wallet") from e
        if not address:
            raise PermissionDeniedError("wallet returned no address", stage="check_wallet")
        return str(address)

    async def get_active_public_key(self) -> bytes:
        try:
            raw = await self._invoke("getActivePublicKey")
        except Exception as e:
            raise PermissionDeniedError(f"public key not available: {e}", stage="check_wallet") from e
        return self._decode_public_key(raw)

    async def sign(self, tx: StorageTransaction) -> StorageTransaction:
        try:
            signed = await self._invoke("sign", tx.to_dict())
        except Exception as e:
            if is_cancellation(e):
                raise UserCancelledError(str(e)) from e
            raise SigningError(
                f"approve the transaction in {self.name} and try again ({e})"
            ) from e

        if isinstance(signed, StorageTransaction):
            result = signed
        elif isinstance(signed, dict):
            result = StorageTransaction.from_dict(signed)
        else:
            raise SigningError(f"unexpected sign result {type(signed).__name__}")
        if not result.is_signed:
            raise SigningError("wallet returned an unsigned transaction")
        return result

    @staticmethod
    def _decode_public_key(raw: Any) -> bytes:
        if isinstance(raw, (bytes, bytearray)):
            return bytes(raw)
        if isinstance(raw, (list, tuple)):
            return bytes(raw)
        if isinstance(raw, str):
            return b64url_decode(raw)
        raise PermissionDeniedError(
            f"unsupported public key type {type(raw).__name__}", stage="check_wallet"
        )


class DesktopWallet(BaseWallet):
    """Browser-extension wallet (ArConnect)."""

    name = DESKTOP_WALLET_NAME
    install_url = DESKTOP_WALLET_URL
    PLATFORM = Platform.DESKTOP

    async def _invoke(self, method: str, *params: Any) -> Any:
        return await getattr(self._bridge, method)(*params)


class MobileWallet(BaseWallet):
    """Mobile wallet (Wander) reached through a request-based bridge."""

    name = MOBILE_WALLET_NAME
    install_url = MOBILE_WALLET_URL
    PLATFORM = Platform.MOBILE

    async def _invoke(self, method: str, *params: Any) -> Any:
        response = await self._bridge.request({"method": method, "params": list(params)})
        if isinstance(response, dict) and response.get("error"):
            error = response["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise RuntimeError(message)
        if isinstance(response, dict) and "result" in response:
            return response["result"]
        return response


# =============================================================================
# Platform detection
# =============================================================================


class PlatformStrategy(Protocol):
    """Decides which wallet variant applies to the current host."""

    def detect(self) -> Platform:
        ...


class FixedPlatform:
    """Strategy that always answers the same platform."""

    def __init__(self, platform: Platform):
        self._platform = platform

    def detect(self) -> Platform:
        return self._platform


class UserAgentPlatform:
    """Strategy that classifies a user-agent string."""

    def __init__(self, user_agent: str):
        self._user_agent = user_agent or ""

    def detect(self) -> Platform:
        if _MOBILE_UA_PATTERN.search(self._user_agent):
            return Platform.MOBILE
        return Platform.DESKTOP


WALLET_CLASSES: dict[Platform, type[BaseWallet]] = {
    Platform.DESKTOP: DesktopWallet,
    Platform.MOBILE: MobileWallet,
}


def select_wallet(
    strategy: PlatformStrategy,
    *,
    desktop_bridge: Optional[Any] = None,
    mobile_bridge: Optional[Any] = None,
) -> BaseWallet:
    """Create the wallet variant for the detected platform.

    Raises:
        WalletUnavailableError: If the platform's bridge is missing
    """
    platform = strategy.detect()
    bridge = desktop_bridge if platform is Platform.DESKTOP else mobile_bridge
    wallet_class = WALLET_CLASSES[platform]
    logger.debug(f"Selected {wallet_class.name} wallet for {platform.value} platform")
    return wallet_class(bridge)
