"""
Background scheduler for the booking engine.

Runs three jobs:
1. Expire unpaid bookings (every minute), freeing their slots
2. Pull-sync external calendars that are due (every 15 minutes)
3. Renew push-notification channels close to expiry (hourly)
"""

import asyncio
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore
from apscheduler.triggers.cron import CronTrigger  # type: ignore
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore

from core.constants import (
    BOOKING_EXPIRY_INTERVAL_MINUTES,
    CALENDAR_SYNC_INTERVAL_MINUTES,
    SCHEDULER_MAX_INSTANCES,
)
from core.database import get_db_context
from services.booking_service import BookingService
from services.calendar_sync_service import CalendarSyncService

logger = logging.getLogger(__name__)

# Global singleton instance
_booking_scheduler: Optional['BookingScheduler'] = None


class BookingScheduler:
    """
    Scheduler for booking expiry and calendar sync jobs.

    Database sessions are created fresh for each job run, and blocking work
    is offloaded to a thread so the event loop keeps serving requests.
    """

    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self._is_started = False

    async def start_scheduler(self) -> None:
        """
        Start the background scheduler.

        This should be called during application startup.
        """
        if self._is_started:
            logger.warning("Booking scheduler is already started")
            return

        self.scheduler.add_job(  # type: ignore
            self._run_booking_expiry,
            IntervalTrigger(minutes=BOOKING_EXPIRY_INTERVAL_MINUTES),
            id="expire_pending_bookings",
            name="Expire pending-payment bookings",
            replace_existing=True,
            max_instances=SCHEDULER_MAX_INSTANCES,
            coalesce=True,
        )
        self.scheduler.add_job(  # type: ignore
            self._run_calendar_sync,
            IntervalTrigger(minutes=CALENDAR_SYNC_INTERVAL_MINUTES),
            id="sync_external_calendars",
            name="Pull-sync external calendars",
            replace_existing=True,
            max_instances=SCHEDULER_MAX_INSTANCES,
            coalesce=True,
        )
        self.scheduler.add_job(  # type: ignore
            self._run_channel_renewal,
            CronTrigger(minute=5),  # Every hour at :05
            id="renew_calendar_channels",
            name="Renew calendar push channels",
            replace_existing=True,
            max_instances=SCHEDULER_MAX_INSTANCES,
            misfire_grace_time=1800,
        )

        self.scheduler.start()
        self._is_started = True
        logger.info("Booking scheduler started")

    async def stop_scheduler(self) -> None:
        """
        Stop the background scheduler.

        This should be called during application shutdown.
        """
        if self._is_started:
            self.scheduler.shutdown(wait=True)
            self._is_started = False
            logger.info("Booking scheduler stopped")

    async def _run_booking_expiry(self) -> None:
        await asyncio.to_thread(self._expire_bookings)

    async def _run_calendar_sync(self) -> None:
        await asyncio.to_thread(self._sync_calendars)

    async def _run_channel_renewal(self) -> None:
        await asyncio.to_thread(self._renew_channels)

    def _expire_bookings(self) -> None:
        try:
            with get_db_context() as db:
                result = BookingService.expire_pending_bookings(db)
            if result["expired_count"]:
                logger.info(f"Booking expiry job removed {result['expired_count']} bookings")
        except Exception as e:
            # Don't re-raise - allow scheduler to continue
            logger.exception(f"Error during booking expiry job: {e}")

    def _sync_calendars(self) -> None:
        try:
            CalendarSyncService.sync_all_connections()
        except Exception as e:
            logger.exception(f"Error during calendar sync job: {e}")

    def _renew_channels(self) -> None:
        try:
            CalendarSyncService.renew_expiring_channels()
        except Exception as e:
            logger.exception(f"Error during calendar channel renewal job: {e}")


def get_booking_scheduler() -> BookingScheduler:
    """
    Get the global booking scheduler instance.

    Returns:
        BookingScheduler: The global scheduler instance
    """
    global _booking_scheduler
    if _booking_scheduler is None:
        _booking_scheduler = BookingScheduler()
    return _booking_scheduler


async def start_booking_scheduler() -> None:
    """Start the global booking scheduler."""
    scheduler = get_booking_scheduler()
    await scheduler.start_scheduler()


async def stop_booking_scheduler() -> None:
    """Stop the global booking scheduler."""
    global _booking_scheduler
    if _booking_scheduler:
        await _booking_scheduler.stop_scheduler()
