"""Middleware package for the application."""

from townsquare.middleware.request_id import RequestIdMiddleware

__all__ = ["RequestIdMiddleware"]
