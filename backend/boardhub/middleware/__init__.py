"""Middleware package."""

from boardhub.middleware.request_context import RequestContextMiddleware

__all__ = ["RequestContextMiddleware"]
