"""API routers for all endpoints."""

from gameinsights.routers import retention, revenue, system

__all__ = [
    "retention",
    "revenue",
    "system",
]
