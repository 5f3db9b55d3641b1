"""Drains the offline queue once connectivity allows it.

A drain pass snapshots the queue, orders it by priority then age and hands
each action to the handler registered for its type. Priority tiers run one
after another so every high action settles before a medium one starts;
inside a tier at most ``concurrency`` handlers run at once, each bounded by
``action_timeout`` seconds. Retries only happen on the next trigger.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from itertools import groupby
from typing import Any, Awaitable, Callable, Mapping

from .offline_queue import PersistentQueue, QueuedAction, processing_order

logger = logging.getLogger(__name__)

ActionHandler = Callable[[QueuedAction], Awaitable[Any]]


@dataclass(slots=True)
class DrainSummary:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    dropped: int = 0
    unhandled: int = 0
    timed_out: int = 0
    skipped_reason: str | None = None
    executed: list[str] = field(default_factory=list)


class QueueProcessor:
    """Executes queued actions through per-type handlers with bounded retries."""

    def __init__(
        self,
        queue: PersistentQueue,
        *,
        is_online: Callable[[], bool],
        handlers: Mapping[str, ActionHandler] | None = None,
        concurrency: int = 1,
        action_timeout: float | None = 30.0,
    ) -> None:
        self._queue = queue
        self._is_online = is_online
        self._handlers: dict[str, ActionHandler] = dict(handlers or {})
        self._concurrency = max(1, concurrency)
        self._action_timeout = action_timeout if action_timeout and action_timeout > 0 else None
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task[DrainSummary]] = set()

    def register_handler(self, action_type: str, handler: ActionHandler) -> None:
        self._handlers[action_type] = handler

    def unregister_handler(self, action_type: str) -> None:
        self._handlers.pop(action_type, None)

    @property
    def handler_types(self) -> list[str]:
        return sorted(self._handlers)

    @property
    def is_draining(self) -> bool:
        return self._lock.locked()

    def request_drain(self) -> asyncio.Task[DrainSummary]:
        """Schedule a drain pass without waiting for it."""

        task = asyncio.create_task(self.process())
        self._pending.add(task)
        task.add_done_callback(self._on_drain_done)
        return task

    def _on_drain_done(self, task: asyncio.Task[DrainSummary]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background drain pass failed", exc_info=exc)

    async def wait_idle(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def process(self) -> DrainSummary:
        async with self._lock:
            if not self._is_online():
                return DrainSummary(skipped_reason="offline")
            if len(self._queue) == 0:
                return DrainSummary(skipped_reason="empty")

            ordered = processing_order(self._queue.actions())
            summary = DrainSummary()
            processed: set[str] = set()
            semaphore = asyncio.Semaphore(self._concurrency)

            for _, tier in groupby(ordered, key=lambda action: action.priority):
                await asyncio.gather(*(self._run_action(action, semaphore, summary, processed) for action in tier))

            await self._queue.remove_processed(processed)

        logger.info(
            "Drain pass finished (attempted=%d, succeeded=%d, failed=%d, dropped=%d, unhandled=%d)",
            summary.attempted,
            summary.succeeded,
            summary.failed,
            summary.dropped,
            summary.unhandled,
        )
        return summary

    async def _run_action(
        self,
        action: QueuedAction,
        semaphore: asyncio.Semaphore,
        summary: DrainSummary,
        processed: set[str],
    ) -> None:
        async with semaphore:
            summary.attempted += 1
            summary.executed.append(action.id)

            handler = self._handlers.get(action.type)
            if handler is None:
                logger.warning("Unknown offline action type %s; dropping %s", action.type, action.id)
                summary.unhandled += 1
                processed.add(action.id)
                return

            try:
                if self._action_timeout is None:
                    await handler(action)
                else:
                    await asyncio.wait_for(handler(action), timeout=self._action_timeout)
            except asyncio.TimeoutError:
                logger.warning("Offline action %s (%s) exceeded %.1fs", action.id, action.type, self._action_timeout)
                summary.timed_out += 1
                self._record_failure(action, summary, processed)
            except Exception:
                logger.warning("Failed to process offline action %s (%s)", action.id, action.type, exc_info=True)
                self._record_failure(action, summary, processed)
            else:
                summary.succeeded += 1
                processed.add(action.id)

    def _record_failure(self, action: QueuedAction, summary: DrainSummary, processed: set[str]) -> None:
        summary.failed += 1
        action.retry_count = min(action.retry_count + 1, action.max_retries)
        if action.retry_count >= action.max_retries:
            summary.dropped += 1
            processed.add(action.id)
            logger.error(
                "Max retries exceeded for offline action %s (%s) after %d attempts",
                action.id,
                action.type,
                action.retry_count,
            )

    async def dispose(self) -> None:
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*list(self._pending), return_exceptions=True)
        self._pending.clear()


__all__ = ["ActionHandler", "DrainSummary", "QueueProcessor"]
