"""
Logging configuration for the Resource Pool Inventory service.
Provides structured logging with different levels and formats.

PERFORMANCE:
- Uses QueueHandler to prevent log writes from blocking the event loop
- QueueListener handles file I/O in a separate thread
"""

import atexit
import logging
import logging.handlers
import queue
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from core.middleware.correlation import get_correlation_id


# Global queue listener for cleanup
_queue_listener: Optional[logging.handlers.QueueListener] = None


class LogConfig(BaseModel):
    """Logging configuration settings."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    enable_file_logging: bool = True
    log_dir: str = "logs"
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    enable_console: bool = True


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    # Color codes
    grey = "\x1b[38;21m"
    yellow = "\x1b[33;21m"
    red = "\x1b[31;21m"
    bold_red = "\x1b[31;1m"
    blue = "\x1b[34;21m"
    reset = "\x1b[0m"

    COLORS = {
        logging.DEBUG: grey,
        logging.INFO: blue,
        logging.WARNING: yellow,
        logging.ERROR: red,
        logging.CRITICAL: bold_red,
    }

    def format(self, record):
        # Color a copy so file handlers sharing the record stay plain
        color = self.COLORS.get(record.levelno, self.grey)
        original_levelname = record.levelname
        record.levelname = f"{color}{record.levelname}{self.reset}"
        try:
            formatted = super().format(record)
        finally:
            record.levelname = original_levelname
        return f"{formatted}{self.reset}"


class CorrelationIdFilter(logging.Filter):
    """Attach the request correlation id (or '-') to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "-"
        return True


def setup_logging(config: Optional[LogConfig] = None) -> None:
    """Setup application logging with configuration.

    - Console handler writes directly (stdout is non-blocking)
    - File handlers sit behind a QueueListener thread
    - inventory.log receives only the inventory engine loggers
    """
    global _queue_listener

    if config is None:
        config = LogConfig()

    level = getattr(logging, config.level.upper())

    # Stop existing listener if running
    if _queue_listener:
        _queue_listener.stop()
        _queue_listener = None

    if config.enable_file_logging:
        Path(config.log_dir).mkdir(exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    correlation_filter = CorrelationIdFilter()

    if config.enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.addFilter(correlation_filter)
        console_handler.setFormatter(
            ColoredFormatter(
                fmt="%(asctime)s | %(name)s | %(levelname)s | %(correlation_id)s | %(message)s",
                datefmt=config.date_format,
            )
        )
        root_logger.addHandler(console_handler)

    file_handlers = []

    if config.enable_file_logging:
        file_formatter = logging.Formatter(
            fmt="%(asctime)s | %(name)s | %(levelname)s | %(correlation_id)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt=config.date_format,
        )

        # Main application log handler
        app_handler = logging.handlers.RotatingFileHandler(
            Path(config.log_dir) / "app.log",
            maxBytes=config.max_file_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        app_handler.setLevel(level)
        app_handler.setFormatter(file_formatter)
        file_handlers.append(app_handler)

        # Inventory engine log handler (allocation, sweeps, links)
        inventory_handler = logging.handlers.RotatingFileHandler(
            Path(config.log_dir) / "inventory.log",
            maxBytes=config.max_file_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        inventory_handler.setLevel(level)
        inventory_handler.setFormatter(file_formatter)
        inventory_handler.addFilter(logging.Filter("inventory"))
        file_handlers.append(inventory_handler)

    if file_handlers:
        log_queue = queue.Queue(-1)

        queue_handler = logging.handlers.QueueHandler(log_queue)
        # Resolve the correlation id on the request's task, not the listener thread
        queue_handler.addFilter(correlation_filter)
        root_logger.addHandler(queue_handler)

        _queue_listener = logging.handlers.QueueListener(
            log_queue,
            *file_handlers,
            respect_handler_level=True,
        )
        _queue_listener.start()

        atexit.register(stop_queue_listener)

    # SQLAlchemy logger configuration
    from .config import settings

    sqlalchemy_logger = logging.getLogger("sqlalchemy.engine")
    if settings.performance.enable_query_logging:
        sqlalchemy_logger.setLevel(level)
    else:
        sqlalchemy_logger.setLevel(logging.WARNING)

    # APScheduler is chatty at INFO on every job run
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def stop_queue_listener() -> None:
    """Stop the queue listener gracefully.

    Called automatically on exit via atexit.
    Can also be called manually during shutdown.
    """
    global _queue_listener

    if _queue_listener:
        _queue_listener.stop()
        _queue_listener = None


class InventoryLogger:
    """Structured logger for seat allocation and pool lifecycle events."""

    def __init__(self, name: str = "engine"):
        self.logger = logging.getLogger(f"inventory.{name}")

    def seat_assigned(
        self,
        pool_id: UUID,
        seat_id: UUID,
        seat_index: int,
        email: Optional[str],
        subscription_id: Optional[UUID] = None,
        entry_point: str = "specific",
    ) -> None:
        """Log a committed seat assignment."""
        subscription_str = f" | Subscription: {subscription_id}" if subscription_id else ""
        self.logger.info(
            f"Seat assigned | Pool: {pool_id} | Seat: {seat_id} (#{seat_index}) | "
            f"Email: {email} | Via: {entry_point}{subscription_str}"
        )

    def seat_released(
        self,
        pool_id: UUID,
        seat_id: UUID,
        seat_index: int,
        previous_email: Optional[str] = None,
    ) -> None:
        """Log a seat returning to available."""
        self.logger.info(
            f"Seat released | Pool: {pool_id} | Seat: {seat_id} (#{seat_index}) | "
            f"Previous email: {previous_email}"
        )

    def pool_exhausted(self, pool_id: UUID, max_seats: int) -> None:
        """Log an allocation attempt that found no free seat."""
        self.logger.warning(
            f"No available seats | Pool: {pool_id} | Capacity: {max_seats}"
        )

    def claim_conflict(self, pool_id: UUID, seat_id: UUID, attempt: int) -> None:
        """Log a lost race on a candidate seat (retried with the next one)."""
        self.logger.debug(
            f"Seat claim lost race | Pool: {pool_id} | Seat: {seat_id} | Attempt: {attempt}"
        )

    def sweep_completed(
        self,
        now: datetime,
        expired: int,
        overdue: int,
        reactivated: int,
    ) -> None:
        """Log the outcome of a status sweep."""
        if expired or overdue or reactivated:
            self.logger.info(
                f"Pool status sweep | At: {now.isoformat()} | Expired+archived: {expired} | "
                f"Overdue: {overdue} | Back to active: {reactivated}"
            )
        else:
            self.logger.debug(f"Pool status sweep | At: {now.isoformat()} | No changes")

    def pools_archived(self, pool_ids: list, reason: str) -> None:
        """Log pools archived manually or by expiry."""
        self.logger.info(f"Pools archived | Count: {len(pool_ids)} | Reason: {reason}")

    def pool_restored(self, pool_id: UUID, status: str, end_at: datetime) -> None:
        """Log a manual restore."""
        self.logger.info(
            f"Pool restored | Pool: {pool_id} | Status: {status} | End: {end_at.isoformat()}"
        )

    def subscription_linked(
        self, subscription_id: UUID, pool_id: UUID, seat_id: UUID
    ) -> None:
        self.logger.info(
            f"Subscription linked | Subscription: {subscription_id} | Pool: {pool_id} | Seat: {seat_id}"
        )

    def subscription_unlinked(
        self, subscription_id: UUID, seat_id: Optional[UUID]
    ) -> None:
        self.logger.info(
            f"Subscription unlinked | Subscription: {subscription_id} | Released seat: {seat_id}"
        )
