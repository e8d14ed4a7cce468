"""
Background task scheduler for periodic jobs.
Uses APScheduler to run the pool status sweep and the personal account
expiry sweep inside the API process.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from api.services.personal_account_service import PersonalAccountService
from api.services.pool_lifecycle_service import PoolLifecycleService
from core.config import settings
from core.database import get_background_session

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def refresh_pool_status_job():
    """
    Background job recomputing pool status from end dates.
    Runs every INVENTORY_STATUS_REFRESH_INTERVAL_MINUTES via APScheduler.
    """
    logger.debug("Running scheduled pool status sweep...")

    try:
        async with get_background_session() as db:
            result = await PoolLifecycleService.refresh_pool_status(db)

        if result.total > 0:
            logger.info(
                f"Scheduled pool sweep completed: {result.expired} expired, "
                f"{result.overdue} overdue, {result.reactivated} reactivated"
            )
        else:
            logger.debug("Scheduled pool sweep: no status changes")

    except Exception as e:
        logger.error(f"Scheduled pool status sweep failed: {str(e)}", exc_info=True)


async def refresh_personal_accounts_job():
    """
    Background job expiring personal accounts past their expiry date.
    Runs every INVENTORY_PERSONAL_ACCOUNT_REFRESH_INTERVAL_MINUTES via APScheduler.
    """
    logger.debug("Running scheduled personal account expiry sweep...")

    try:
        async with get_background_session() as db:
            result = await PersonalAccountService.refresh_personal_account_status(db)

        if result.expired > 0:
            logger.info(f"Scheduled account sweep completed: {result.expired} expired")

    except Exception as e:
        logger.error(
            f"Scheduled personal account sweep failed: {str(e)}", exc_info=True
        )


def start_scheduler():
    """
    Register the periodic jobs and start the scheduler.
    Called during application startup.
    """
    inventory = settings.inventory

    scheduler.add_job(
        refresh_pool_status_job,
        trigger=IntervalTrigger(minutes=inventory.status_refresh_interval_minutes),
        id="refresh_pool_status",
        name="Refresh resource pool status",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        refresh_personal_accounts_job,
        trigger=IntervalTrigger(
            minutes=inventory.personal_account_refresh_interval_minutes
        ),
        id="refresh_personal_accounts",
        name="Expire personal accounts",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(
        f"Background scheduler started | Pool sweep every "
        f"{inventory.status_refresh_interval_minutes} min | Account sweep every "
        f"{inventory.personal_account_refresh_interval_minutes} min"
    )


def shutdown_scheduler():
    """
    Shutdown the scheduler gracefully.
    Called during application shutdown.
    """
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler shut down")
