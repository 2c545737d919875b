"""Outbound calls, call tracking and provider webhooks."""

from homemates.calls.routes import public_router as public_calls_router
from homemates.calls.routes import router as calls_router
from homemates.calls.store import CallStore, store
from homemates.calls.webhooks import router as webhooks_router

__all__ = [
    "CallStore",
    "calls_router",
    "public_calls_router",
    "store",
    "webhooks_router",
]
