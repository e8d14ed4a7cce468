"""
Centralized error handling decorators for database operations.
Provides reusable decorators that give every engine operation the same
commit/rollback and logging behaviour.

Domain errors (core.exceptions.InventoryError) are expected outcomes such as
an exhausted pool; they are logged at info level and re-raised untouched.
Storage errors are logged with classification and always re-raised, never
retried here.
"""
import functools
import inspect
import logging
import traceback
from typing import Any, Callable, Optional

from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    InvalidRequestError,
    OperationalError,
    PendingRollbackError,
    SQLAlchemyError,
    StatementError,
    TimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import InventoryError

logger = logging.getLogger(__name__)


class DatabaseErrorHandler:
    """Centralized database error handling utilities."""

    # Common database exceptions to catch
    DATABASE_EXCEPTIONS = (
        SQLAlchemyError,
        IntegrityError,
        OperationalError,
        DisconnectionError,
        TimeoutError,
        StatementError,
        InvalidRequestError,
        PendingRollbackError,
        ConnectionError,
    )

    @staticmethod
    def handle_database_error(
        exc: Exception,
        operation: str,
        context: Optional[dict] = None
    ) -> tuple[bool, str]:
        """
        Classify and log a database error.

        Args:
            exc: The exception that occurred
            operation: Description of the database operation
            context: Additional context information

        Returns:
            Tuple of (is_transient, error_message). Transient errors are
            worth re-issuing by the caller; this module never retries.
        """
        context_str = f" | Context: {context}" if context else ""

        if isinstance(exc, IntegrityError):
            error_msg = f"Database integrity error during {operation}: {str(exc)}{context_str}"
            logger.warning(error_msg)
            return False, error_msg

        elif isinstance(exc, (ConnectionError, DisconnectionError)):
            error_msg = f"Database connection error during {operation}: {str(exc)}{context_str}"
            logger.error(error_msg)
            return True, error_msg

        elif isinstance(exc, TimeoutError):
            error_msg = f"Database timeout during {operation}: {str(exc)}{context_str}"
            logger.warning(error_msg)
            return True, error_msg

        elif isinstance(exc, OperationalError):
            # Lock contention and deadlock aborts land here on PostgreSQL
            error_msg = f"Database operational error during {operation}: {str(exc)}{context_str}"
            logger.error(error_msg)
            return True, error_msg

        elif isinstance(exc, StatementError):
            error_msg = f"Database statement error during {operation}: {str(exc)}{context_str}"
            logger.warning(error_msg)
            return False, error_msg

        else:
            error_msg = f"Unexpected database error during {operation}: {type(exc).__name__}: {str(exc)}{context_str}"
            logger.error(f"{error_msg}\nTraceback: {traceback.format_exc()}")
            return False, error_msg


def _is_async(func: Callable) -> bool:
    return inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(
        getattr(func, "__wrapped__", None)
    )


def _find_session(args: tuple, kwargs: dict) -> Optional[AsyncSession]:
    for arg in args:
        if isinstance(arg, AsyncSession):
            return arg
    for value in kwargs.values():
        if isinstance(value, AsyncSession):
            return value
    return None


def handle_database_exceptions(
    operation_name: Optional[str] = None,
    log_level: str = "error"
) -> Callable:
    """
    Decorator to wrap async database operations with error logging.

    Errors are always re-raised; storage failures propagate to the caller.

    Args:
        operation_name: Name of the operation for logging (defaults to function name)
        log_level: Logging level for storage errors ('error', 'warning', 'info')

    Returns:
        Decorated function with error handling
    """
    def decorator(func: Callable) -> Callable:
        if not _is_async(func):
            raise TypeError(
                f"handle_database_exceptions requires an async function, got {func.__name__}"
            )

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            operation = operation_name or getattr(func, '__name__', 'unknown')
            context = {
                "function": getattr(func, '__name__', 'unknown'),
                "args_count": len(args),
                "kwargs_keys": list(kwargs.keys()) if kwargs else []
            }

            try:
                result = await func(*args, **kwargs)
                logger.debug(f"Successfully completed {operation}")
                return result

            except InventoryError as exc:
                logger.info(f"{operation} rejected: {type(exc).__name__}: {exc}")
                raise

            except DatabaseErrorHandler.DATABASE_EXCEPTIONS as exc:
                _, error_msg = DatabaseErrorHandler.handle_database_error(
                    exc, operation, context
                )
                getattr(logger, log_level, logger.error)(error_msg)
                raise

            except Exception as exc:
                error_msg = f"Unexpected error in {operation}: {type(exc).__name__}: {str(exc)}"
                logger.error(f"{error_msg}\nTraceback: {traceback.format_exc()}")
                raise

        return async_wrapper

    return decorator


def database_transaction(
    operation_name: Optional[str] = None,
    commit_on_success: bool = True,
    rollback_on_error: bool = True
) -> Callable:
    """
    Decorator to handle database transactions with proper commit/rollback.

    The AsyncSession is located among the call arguments. Everything the
    wrapped function writes is committed together or not at all.

    Args:
        operation_name: Name of the operation for logging
        commit_on_success: Whether to commit on successful completion
        rollback_on_error: Whether to rollback on error

    Returns:
        Decorated function with transaction handling
    """
    def decorator(func: Callable) -> Callable:
        if not _is_async(func):
            raise TypeError(
                f"database_transaction requires an async function, got {func.__name__}"
            )

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            operation = operation_name or getattr(func, '__name__', 'unknown')

            db_session = _find_session(args, kwargs)
            if db_session is None:
                logger.warning(f"No AsyncSession found for transaction operation {operation}")
                return await func(*args, **kwargs)

            try:
                logger.debug(f"Starting database transaction for {operation}")
                result = await func(*args, **kwargs)

                if commit_on_success:
                    await db_session.commit()
                    logger.debug(f"Transaction committed for {operation}")

                return result

            except Exception:
                if rollback_on_error:
                    try:
                        await db_session.rollback()
                        logger.debug(f"Transaction rolled back for {operation} due to error")
                    except Exception as rollback_exc:
                        logger.error(f"Failed to rollback transaction for {operation}: {rollback_exc}")

                # Let the exception propagate to be handled by handle_database_exceptions
                raise

        return async_wrapper

    return decorator


def log_database_operation(
    operation: str,
    level: str = "debug"
) -> Callable:
    """
    Decorator to log database operations with context.

    Args:
        operation: Description of the operation
        level: Logging level ('debug', 'info', 'warning', 'error')

    Returns:
        Decorated function with operation logging
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            logger_method = getattr(logger, level)
            func_name = getattr(func, '__name__', 'unknown')
            logger_method(f"Starting {operation} via {func_name}")

            try:
                result = await func(*args, **kwargs)
                logger_method(f"Completed {operation} via {func_name}")
                return result
            except Exception as exc:
                logger_method(f"Failed {operation} via {func_name}: {str(exc)}")
                raise

        return async_wrapper

    return decorator


def critical_database_operation(func=None, operation_name: Optional[str] = None) -> Callable:
    """
    Read-path decorator: logs storage errors and always re-raises.

    Can be used with or without parentheses:
        @critical_database_operation
        async def my_func(...): ...

        @critical_database_operation("custom name")
        async def my_func(...): ...
    """
    def decorator(f: Callable) -> Callable:
        return handle_database_exceptions(
            operation_name=operation_name,
            log_level="error"
        )(f)

    if func is None:
        return decorator
    elif callable(func):
        return decorator(func)
    else:
        # Called with operation_name as first positional arg
        return critical_database_operation(operation_name=func)


def transactional_database_operation(func=None, operation_name: Optional[str] = None) -> Callable:
    """
    Combined decorator for transactional database operations with error handling.

    Can be used with or without parentheses:
        @transactional_database_operation
        async def my_func(...): ...

        @transactional_database_operation("operation_name")
        async def my_func(...): ...
    """
    def decorator(f: Callable) -> Callable:
        # Apply both transaction handling and error handling
        transaction_decorated = database_transaction(operation_name=operation_name)(f)
        return handle_database_exceptions(operation_name=operation_name)(transaction_decorated)

    if func is None:
        return decorator
    elif callable(func):
        return decorator(func)
    else:
        # Called with string as first arg: @transactional_database_operation("name")
        return transactional_database_operation(operation_name=func)
