"""API middleware package."""

from src.crm_sync.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
