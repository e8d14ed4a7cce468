"""
Middleware classes for FastAPI application.

This package contains all custom middleware used by the application.
"""

from .correlation import CorrelationIdMiddleware, get_correlation_id

__all__ = [
    "CorrelationIdMiddleware",
    "get_correlation_id",
]
