"""Aggregate router exports."""
from .cache import router as cache_router
from .network import router as network_router
from .offline import router as offline_router
from .realtime import router as realtime_router

__all__ = [
    "cache_router",
    "network_router",
    "offline_router",
    "realtime_router",
]
