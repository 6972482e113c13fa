"""Middleware and exception handling."""

from .error_handler import APIError, setup_exception_handlers
from .logging import LoggingMiddleware, configure_logging

__all__ = ["APIError", "setup_exception_handlers", "LoggingMiddleware", "configure_logging"]
