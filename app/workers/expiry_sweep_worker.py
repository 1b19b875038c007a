"""
In-process daily scheduler for the verification expiry sweep.

Enabled with SWEEP_SCHEDULER_ENABLED. Checks once a minute and runs the sweep
once the clock is past SWEEP_HOUR_UTC:SWEEP_MINUTE_UTC, at most once per day.
Deployments that trigger the sweep from an external cron leave it disabled.
"""

import logging
from datetime import date, datetime
from typing import Callable, Optional

from app.core.config import settings
from app.firestore.client import DocumentStore, get_firestore_client
from app.verification.sweeper import VerificationExpirySweeper
from app.verification.timestamps import utcnow
from app.workers.base_worker import BaseWorker

logger = logging.getLogger(__name__)


class ExpirySweepWorker(BaseWorker):
    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        hour_utc: Optional[int] = None,
        minute_utc: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__("verification_expiry_sweep", poll_interval_seconds=60)
        self.store = store
        self.hour_utc = settings.SWEEP_HOUR_UTC if hour_utc is None else hour_utc
        self.minute_utc = settings.SWEEP_MINUTE_UTC if minute_utc is None else minute_utc
        self.clock = clock
        self._last_sweep_date: Optional[date] = None

    def scheduled_at(self, now: datetime) -> datetime:
        return now.replace(
            hour=self.hour_utc, minute=self.minute_utc, second=0, microsecond=0
        )

    def is_due(self, now: datetime) -> bool:
        """
        True once today's scheduled time has passed, unless today's sweep
        already ran. A missed minute (slow tick, restart) is caught up on the
        next tick.
        """
        return (
            now >= self.scheduled_at(now)
            and self._last_sweep_date != now.date()
        )

    async def tick(self):
        now = self.clock()
        if not self.is_due(now):
            return

        logger.info("Triggering daily verification expiry sweep...")
        self._last_sweep_date = now.date()

        store = self.store or get_firestore_client()
        result = await VerificationExpirySweeper(store).run()

        if result.success:
            logger.info(
                f"Daily verification sweep finished: {result.cleaned}/{result.total} expired"
            )
        else:
            logger.error(f"Daily verification sweep failed: {result.error}")
