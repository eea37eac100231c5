"""Periodic background reconciliation.

Advisory only: it does not coordinate with in-flight uploads, so a report may
miss a note whose record is being created at that moment.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from elysium_notes.retrieval.reconciler import RetrievalReconciler
from elysium_notes.types import DEFAULT_SYNC_INTERVAL_SECONDS, LoadReport

logger = logging.getLogger(__name__)


class PeriodicReconciler:
    """Re-runs reconcile() for one owner on a fixed interval.

    Example:
        >>> async with PeriodicReconciler(reconciler, owner, on_report=refresh_ui):
        ...     await app.run()
    """

    def __init__(
        self,
        reconciler: RetrievalReconciler,
        owner_address: str,
        interval_seconds: float = DEFAULT_SYNC_INTERVAL_SECONDS,
        on_report: Optional[Callable[[LoadReport], None]] = None,
        owner_public_key: Optional[bytes] = None,
    ):
        self._reconciler = reconciler
        self._owner_address = owner_address
        self._interval_seconds = interval_seconds
        self._on_report = on_report
        self._owner_public_key = owner_public_key
        self._task: Optional[asyncio.Task] = None
        self.last_report: Optional[LoadReport] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> LoadReport:
        report = await self._reconciler.reconcile(self._owner_address, self._owner_public_key)
        self.runs += 1
        self.last_report = report
        if self._on_report is not None:
            self._on_report(report)
        return report

    async def _periodic_sync(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._interval_seconds)
                await self.run_once()
            except asyncio.CancelledError:
                logger.debug("Sync task cancelled")
                break
            except Exception as e:
                logger.warning(f"Background sync for {self._owner_address} failed: {e}")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._periodic_sync())
        logger.debug(f"Started sync task (interval={self._interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def __aenter__(self) -> "PeriodicReconciler":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
