"""Balance Guard.

Fails closed: when the balance cannot be determined after every retry it is
reported as zero, so an unreachable network never lets an upload through to
the signing prompt.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from elysium_notes.core.retry import RetryPolicy, call_with_retry
from elysium_notes.guidance import funding_guide
from elysium_notes.storage.network import StorageNetwork
from elysium_notes.types import MIN_BALANCE_AR, WINSTON_PER_AR, InsufficientFundsError

logger = logging.getLogger(__name__)


def winston_to_ar(winston: int) -> float:
    return float(Decimal(int(winston)) / Decimal(WINSTON_PER_AR))


class BalanceGuard:
    """Checks that a signing address can pay for an upload.

    Args:
        storage: Storage network queried for balances
        policy: Retry bounds for the balance query
        min_balance_ar: Floor applied to every requirement
    """

    def __init__(
        self,
        storage: StorageNetwork,
        policy: RetryPolicy = RetryPolicy(max_attempts=3, base_delay=1.0, per_attempt_timeout=10.0),
        min_balance_ar: float = MIN_BALANCE_AR,
    ):
        self._storage = storage
        self._policy = policy
        self._min_balance_ar = min_balance_ar

    @property
    def min_balance_ar(self) -> float:
        return self._min_balance_ar

    async def check_funding(self, address: str) -> float:
        """Balance of ``address`` in AR, or 0.0 if it cannot be determined."""
        try:
            winston = await call_with_retry(
                lambda: self._storage.get_balance(address),
                self._policy,
                label=f"balance query for {address}",
            )
        except Exception as e:
            logger.error(f"Balance check failed for {address}, treating as 0 AR: {e!r}")
            return 0.0

        balance = winston_to_ar(winston)
        logger.debug(f"Balance for {address}: {balance} AR")
        return balance

    def required_for(self, reward_winston: int = 0) -> float:
        """AR needed to pay ``reward_winston``, never below the configured minimum."""
        return max(self._min_balance_ar, winston_to_ar(reward_winston))

    async def ensure_funded(self, address: str, required_ar: float) -> float:
        """Return the balance if it covers ``required_ar``.

        Raises:
            InsufficientFundsError: With funding guidance attached
        """
        balance = await self.check_funding(address)
        if balance < required_ar:
            logger.warning(
                f"Insufficient balance for {address}: {balance} AR < {required_ar} AR"
            )
            raise InsufficientFundsError(
                address,
                balance,
                required_ar,
                guidance=funding_guide(required_ar, balance),
            )
        return balance
