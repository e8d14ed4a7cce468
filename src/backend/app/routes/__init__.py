"""
Application route handlers.

This package contains route handlers for core application endpoints.
"""

from .health import router as health_router

__all__ = ["health_router"]
