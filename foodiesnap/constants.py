"""Shared constants for the offline sync service."""
from __future__ import annotations

OFFLINE_QUEUE_KEY = "offline_queue"
CACHED_DATA_KEY = "cached_data"

DEFAULT_CACHE_TTL_MS = 24 * 60 * 60 * 1000
APP_STATE_TTL_MS = 7 * 24 * 60 * 60 * 1000

# Action kinds replayed by the default handlers.
SEND_MESSAGE = "SEND_MESSAGE"
UPLOAD_PHOTO = "UPLOAD_PHOTO"
SEND_FRIEND_REQUEST = "SEND_FRIEND_REQUEST"

NO_CACHED_DATA_OFFLINE = "No cached data available offline"
CACHED_DATA_AFTER_ERROR = "Using cached data due to network error"

__all__ = [
    "OFFLINE_QUEUE_KEY",
    "CACHED_DATA_KEY",
    "DEFAULT_CACHE_TTL_MS",
    "APP_STATE_TTL_MS",
    "SEND_MESSAGE",
    "UPLOAD_PHOTO",
    "SEND_FRIEND_REQUEST",
    "NO_CACHED_DATA_OFFLINE",
    "CACHED_DATA_AFTER_ERROR",
]
