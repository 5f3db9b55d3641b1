"""Durable queue of mutations deferred while the device is offline."""
from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import secrets
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Iterable

from ..constants import OFFLINE_QUEUE_KEY
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)


class ActionPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {ActionPriority.HIGH: 3, ActionPriority.MEDIUM: 2, ActionPriority.LOW: 1}


def now_ms() -> int:
    return int(time.time() * 1000)


def compute_dedupe_key(action_type: str, payload: Any) -> str:
    canonical = json.dumps({"type": action_type, "payload": payload}, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class QueuedAction:
    id: str
    type: str
    payload: Any
    timestamp: int
    retry_count: int
    max_retries: int
    priority: ActionPriority
    dedupe_key: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["priority"] = self.priority.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueuedAction":
        action_type = str(data["type"])
        payload = data.get("payload")
        return cls(
            id=str(data["id"]),
            type=action_type,
            payload=payload,
            timestamp=int(data["timestamp"]),
            retry_count=int(data.get("retry_count", 0)),
            max_retries=int(data.get("max_retries", 3)),
            priority=ActionPriority(data.get("priority", ActionPriority.MEDIUM.value)),
            dedupe_key=str(data.get("dedupe_key") or compute_dedupe_key(action_type, payload)),
        )


@dataclass(frozen=True, slots=True)
class QueueStatus:
    total: int
    by_priority: dict[str, int]
    oldest_timestamp: int | None


def processing_order(actions: Iterable[QueuedAction]) -> list[QueuedAction]:
    """Return a copy sorted by priority (high first) then age (oldest first)."""

    return sorted(actions, key=lambda action: (-action.priority.rank, action.timestamp))


DrainRequest = Callable[[], Any]


class PersistentQueue:
    """Ordered list of :class:`QueuedAction` persisted as a single record."""

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        is_online: Callable[[], bool] = lambda: False,
        default_max_retries: int = 3,
        dedupe: bool = False,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._storage = storage
        self._is_online = is_online
        self._default_max_retries = default_max_retries
        self._dedupe = dedupe
        self._clock = clock
        self._actions: list[QueuedAction] = []
        self._drain_request: DrainRequest | None = None
        self._persist_lock = asyncio.Lock()

    def set_drain_request(self, callback: DrainRequest | None) -> None:
        self._drain_request = callback

    def _new_id(self) -> str:
        return f"{self._clock()}_{secrets.token_hex(6)}"

    async def enqueue(
        self,
        action_type: str,
        payload: Any,
        priority: ActionPriority | str = ActionPriority.MEDIUM,
        max_retries: int | None = None,
        *,
        dedupe: bool | None = None,
    ) -> str:
        resolved_priority = ActionPriority(priority)
        retries = self._default_max_retries if max_retries is None else max_retries
        if retries <= 0:
            raise ValueError("max_retries must be positive")

        dedupe_key = compute_dedupe_key(action_type, payload)
        if self._dedupe if dedupe is None else dedupe:
            for existing in self._actions:
                if existing.dedupe_key == dedupe_key:
                    logger.info("Duplicate %s action collapsed into %s", action_type, existing.id)
                    return existing.id

        timestamp = self._clock()
        action = QueuedAction(
            id=self._new_id(),
            type=action_type,
            payload=payload,
            timestamp=timestamp,
            retry_count=0,
            max_retries=retries,
            priority=resolved_priority,
            dedupe_key=dedupe_key,
        )
        self._actions.append(action)
        await self.persist()

        if self._is_online() and self._drain_request is not None:
            self._drain_request()
        return action.id

    async def persist(self) -> None:
        """Write the current list; writes are applied one at a time, newest state last."""

        async with self._persist_lock:
            # Snapshot under the lock so a slower, older write cannot land after a newer one.
            serialized = json.dumps([action.to_dict() for action in self._actions], default=str)
            try:
                await self._storage.set_item(OFFLINE_QUEUE_KEY, serialized)
            except Exception:
                logger.exception("Failed to save offline queue (%d actions)", len(self._actions))

    async def load(self) -> None:
        try:
            stored = await self._storage.get_item(OFFLINE_QUEUE_KEY)
            if not stored:
                self._actions = []
                return
            raw = json.loads(stored)
            if not isinstance(raw, list):
                raise ValueError("offline queue record is not a list")
            self._actions = [QueuedAction.from_dict(item) for item in raw]
        except Exception:
            logger.exception("Failed to load offline queue; starting empty")
            self._actions = []

    async def remove_processed(self, ids: Iterable[str]) -> None:
        processed = set(ids)
        self._actions = [action for action in self._actions if action.id not in processed]
        await self.persist()

    async def clear(self) -> None:
        self._actions = []
        await self.persist()

    def actions(self) -> list[QueuedAction]:
        return list(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def status(self) -> QueueStatus:
        counts = {priority.value: 0 for priority in (ActionPriority.HIGH, ActionPriority.MEDIUM, ActionPriority.LOW)}
        for action in self._actions:
            counts[action.priority.value] += 1
        oldest = min((action.timestamp for action in self._actions), default=None)
        return QueueStatus(total=len(self._actions), by_priority=counts, oldest_timestamp=oldest)


__all__ = [
    "ActionPriority",
    "PersistentQueue",
    "QueueStatus",
    "QueuedAction",
    "compute_dedupe_key",
    "now_ms",
    "processing_order",
]
