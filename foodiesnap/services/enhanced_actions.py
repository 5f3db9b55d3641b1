"""Send-or-queue helpers layered over the offline context.

These are the entry points screens call: they sanitize and rate limit the
input, fall back to the offline queue when there is no connectivity (and
report optimistic success), and keep the read cache warm.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from ..constants import APP_STATE_TTL_MS, SEND_MESSAGE
from .offline_cache import FetchResult, OfflineCache
from .offline_context import OfflineContext
from .offline_queue import ActionPriority
from .validation import RateLimiter, sanitize_message_content

logger = logging.getLogger(__name__)

MESSAGE_RATE_LIMIT = 10
MESSAGE_RATE_WINDOW_MS = 60_000

_rate_limiter = RateLimiter()


@dataclass(frozen=True, slots=True)
class ActionResult:
    success: bool
    error: str | None = None
    queued: bool = False
    action_id: str | None = None
    data: Any = None


SendMessageFn = Callable[[str, str, str], Awaitable[dict[str, Any]]]


async def enhanced_message_send(
    context: OfflineContext,
    content: str,
    conversation_id: str,
    sender_id: str,
    send_fn: SendMessageFn,
    *,
    rate_limiter: RateLimiter | None = None,
) -> ActionResult:
    limiter = rate_limiter or _rate_limiter

    sanitized = sanitize_message_content(content)
    if not sanitized:
        return ActionResult(success=False, error="Message cannot be empty")

    rate = limiter.check(sender_id, "send_message", MESSAGE_RATE_LIMIT, MESSAGE_RATE_WINDOW_MS)
    if not rate.allowed:
        reset_at = (
            datetime.fromtimestamp(rate.reset_time / 1000, tz=timezone.utc).strftime("%H:%M:%S")
            if rate.reset_time
            else "soon"
        )
        return ActionResult(success=False, error=f"Rate limit exceeded. Try again at {reset_at}")

    if not context.monitor.is_online():
        action_id = await context.queue_offline_action(
            SEND_MESSAGE,
            {"content": sanitized, "conversation_id": conversation_id, "sender_id": sender_id},
            ActionPriority.HIGH,
        )
        return ActionResult(success=True, queued=True, action_id=action_id)

    try:
        result = await send_fn(sanitized, conversation_id, sender_id)
    except Exception as exc:
        logger.exception("Message send failed for conversation %s", conversation_id)
        return ActionResult(success=False, error=str(exc) or "Failed to send message")

    message_id = (result or {}).get("id")
    if message_id is not None:
        await context.cache.set(f"message_{message_id}", result)
    return ActionResult(success=True, data=result)


async def enhanced_data_fetch(
    context: OfflineContext,
    key: str,
    fetch_fn: Callable[[], Awaitable[Any]],
    *,
    cache_timeout: int | None = None,
    retry_on_error: bool = False,
) -> FetchResult:
    return await context.cache.fetch_with_cache(key, fetch_fn, ttl=cache_timeout, retry_on_error=retry_on_error)


class AppStateStore:
    """Small key/value app state mirrored into the offline cache for a week."""

    def __init__(self, cache: OfflineCache) -> None:
        self._cache = cache
        self._state: dict[str, Any] = {}

    async def set_state(self, key: str, value: Any) -> None:
        self._state[key] = value
        await self._cache.set(f"app_state_{key}", value, APP_STATE_TTL_MS)

    async def get_state(self, key: str) -> Any | None:
        if key in self._state:
            return self._state[key]
        cached = await self._cache.get(f"app_state_{key}")
        if cached is not None:
            self._state[key] = cached
        return cached

    def clear_state(self, key: str | None = None) -> None:
        if key is None:
            self._state.clear()
        else:
            self._state.pop(key, None)


__all__ = ["ActionResult", "AppStateStore", "enhanced_data_fetch", "enhanced_message_send"]
