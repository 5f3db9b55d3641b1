"""Convenience exports for service layer."""
from .action_handlers import InvalidActionPayload, build_default_handlers
from .connectivity import HttpConnectivityProbe, ManualConnectivitySource, RawConnectivityEvent
from .enhanced_actions import ActionResult, AppStateStore, enhanced_data_fetch, enhanced_message_send
from .network_monitor import (
    ConnectionQuality,
    ConnectionType,
    MonitorLifecycleError,
    NetworkMonitor,
    NetworkState,
)
from .offline_cache import FetchResult, OfflineCache
from .offline_context import OfflineContext, build_offline_context
from .offline_queue import ActionPriority, PersistentQueue, QueuedAction, QueueStatus
from .queue_processor import DrainSummary, QueueProcessor
from .realtime import SubscriptionManager, SubscriptionState, WebSocketManager, offline_updates_manager
from .storage import MemoryStorage, OfflineStorageError, SqlKeyValueStorage
from .validation import RateLimiter, sanitize_message_content

__all__ = [
    "ActionPriority",
    "ActionResult",
    "AppStateStore",
    "ConnectionQuality",
    "ConnectionType",
    "DrainSummary",
    "FetchResult",
    "HttpConnectivityProbe",
    "InvalidActionPayload",
    "ManualConnectivitySource",
    "MemoryStorage",
    "MonitorLifecycleError",
    "NetworkMonitor",
    "NetworkState",
    "OfflineCache",
    "OfflineContext",
    "OfflineStorageError",
    "PersistentQueue",
    "QueueProcessor",
    "QueueStatus",
    "QueuedAction",
    "RateLimiter",
    "RawConnectivityEvent",
    "SqlKeyValueStorage",
    "SubscriptionManager",
    "SubscriptionState",
    "WebSocketManager",
    "build_default_handlers",
    "build_offline_context",
    "enhanced_data_fetch",
    "enhanced_message_send",
    "offline_updates_manager",
    "sanitize_message_content",
]
