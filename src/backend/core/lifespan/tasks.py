"""
Lifespan startup and shutdown task functions.

This module contains individual task functions for application startup
and shutdown sequences. Each function handles a specific responsibility.
"""

import logging


async def initialize_logging(settings, log_config):
    """Setup logging configuration."""
    from core.logging_config import setup_logging

    logger = logging.getLogger("main")
    setup_logging(log_config)
    logger.info(f"Starting {settings.api.app_name} v{settings.api.app_version}...")


async def log_cors_configuration(settings, logger):
    """Log CORS configuration for debugging."""
    logger.info(f"CORS Allowed Origins: {settings.cors.origins}")


async def initialize_database():
    """Initialize database tables."""
    from core.database import init_db

    logger = logging.getLogger("main")
    await init_db()
    logger.info("Database initialized")


async def refresh_statuses_on_startup():
    """Bring pool and account statuses up to date before serving requests."""
    from api.services.personal_account_service import PersonalAccountService
    from api.services.pool_lifecycle_service import PoolLifecycleService
    from core.database import get_background_session

    logger = logging.getLogger("main")
    try:
        async with get_background_session() as db:
            pools = await PoolLifecycleService.refresh_pool_status(db)
            accounts = await PersonalAccountService.refresh_personal_account_status(db)
        logger.info(
            f"Startup sweep: {pools.total} pool status changes, "
            f"{accounts.expired} accounts expired"
        )
    except Exception as e:
        logger.warning(f"Startup status sweep failed: {e}", exc_info=True)


async def start_background_scheduler(settings):
    """Start the periodic sweep scheduler."""
    from core.scheduler import start_scheduler

    logger = logging.getLogger("main")
    if not settings.inventory.scheduler_enabled:
        logger.info("Background scheduler disabled (INVENTORY_SCHEDULER_ENABLED=false)")
        return

    try:
        start_scheduler()
        logger.info("Background scheduler started")
    except Exception as e:
        logger.warning(f"Scheduler initialization failed: {e}", exc_info=True)


async def shutdown_scheduler_task():
    """Shutdown the background scheduler."""
    from core.scheduler import shutdown_scheduler

    logger = logging.getLogger("main")
    try:
        shutdown_scheduler()
    except Exception as e:
        logger.warning(f"Scheduler shutdown error: {e}")


async def shutdown_database():
    """Close database connections."""
    from core.database import close_db

    logger = logging.getLogger("main")
    await close_db()
    logger.info("Database connections closed")
