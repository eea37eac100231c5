"""Wallet capability variants and session acquisition.

    >>> from elysium_notes.wallet import select_wallet, UserAgentPlatform
    >>> wallet = select_wallet(UserAgentPlatform(ua), desktop_bridge=bridge)
"""

from elysium_notes.wallet.base import (
    WALLET_CLASSES,
    BaseWallet,
    DesktopWallet,
    FixedPlatform,
    MobileWallet,
    PlatformStrategy,
    UserAgentPlatform,
    WalletCapability,
    is_cancellation,
    select_wallet,
)
from elysium_notes.wallet.session import WalletSessionManager

__all__ = [
    "WALLET_CLASSES",
    "BaseWallet",
    "DesktopWallet",
    "FixedPlatform",
    "MobileWallet",
    "PlatformStrategy",
    "UserAgentPlatform",
    "WalletCapability",
    "WalletSessionManager",
    "is_cancellation",
    "select_wallet",
]
