"""Input sanitizing and per-user rate limiting for deferred actions."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from .offline_queue import now_ms

MAX_MESSAGE_LENGTH = 1000

_SCRIPT_BLOCK = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_HTML_TAG = re.compile(r"<[^>]*>")
_JS_SCHEME = re.compile(r"javascript:", re.IGNORECASE)


def sanitize_message_content(content: str | None) -> str:
    if not content or not isinstance(content, str):
        return ""
    cleaned = content.strip()
    cleaned = _SCRIPT_BLOCK.sub("", cleaned)
    cleaned = _HTML_TAG.sub("", cleaned)
    cleaned = _JS_SCHEME.sub("", cleaned)
    return cleaned[:MAX_MESSAGE_LENGTH].strip()


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    allowed: bool
    reset_time: int | None = None


class RateLimiter:
    """Fixed-window counter keyed by ``user_id:action``.

    Each window remembers its own length; windows that have ended are
    dropped during ``check`` so idle users do not accumulate.
    """

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock
        # key -> (count, window start, window length)
        self._windows: dict[str, tuple[int, int, int]] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def _prune(self, now: int) -> None:
        expired = [key for key, (_, started, length) in self._windows.items() if now - started > length]
        for key in expired:
            del self._windows[key]

    def check(self, user_id: str, action: str, limit: int = 10, window_ms: int = 60_000) -> RateLimitResult:
        key = f"{user_id}:{action}"
        now = self._clock()
        self._prune(now)
        existing = self._windows.get(key)

        if existing is None or now - existing[1] > window_ms:
            self._windows[key] = (1, now, window_ms)
            return RateLimitResult(allowed=True)

        count, started, _ = existing
        if count >= limit:
            return RateLimitResult(allowed=False, reset_time=started + window_ms)

        self._windows[key] = (count + 1, started, window_ms)
        return RateLimitResult(allowed=True)

    def reset(self) -> None:
        self._windows.clear()


__all__ = ["MAX_MESSAGE_LENGTH", "RateLimitResult", "RateLimiter", "sanitize_message_content"]
