"""User-facing guidance for fatal pipeline errors.

WalletUnavailableError and InsufficientFundsError carry one of these so the
caller can show an install or funding dialog without knowing pipeline details.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from elysium_notes.types import MIN_BALANCE_AR


@dataclass(frozen=True)
class Guidance:
    """Dialog content for the caller to render."""
    title: str
    message: str
    action_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "message": self.message,
            "action_url": self.action_url,
        }


def install_guide(wallet_name: str, install_url: str) -> Guidance:
    """Guidance for a missing wallet capability."""
    message = (
        f"To permanently store your notes you need the {wallet_name} wallet.\n\n"
        f"1. Visit {install_url}\n"
        f"2. Install {wallet_name} and create or import a wallet\n"
        f"3. Fund it with AR tokens\n"
        f"4. Return here and try publishing again"
    )
    return Guidance(
        title=f"{wallet_name} Wallet Required",
        message=message,
        action_url=install_url,
    )


def funding_guide(required_ar: float = MIN_BALANCE_AR, balance_ar: float = 0.0) -> Guidance:
    """Guidance for an underfunded signing address."""
    message = (
        f"You need at least {required_ar:g} AR to store this note "
        f"(current balance: {balance_ar:g} AR).\n\n"
        "Buy AR on an exchange that lists it and send it to your wallet "
        "address, then try publishing again."
    )
    if balance_ar == 0.0:
        message += (
            "\n\nIf you already hold AR, the balance check may have failed to "
            "reach the network; check your connection and retry."
        )
    return Guidance(title="Insufficient AR Balance", message=message)
