"""Key/value storage backends for the offline queue and cache.

Both the queue and the cache persist their whole state as one JSON string
under a single key, so the storage contract is small: async
``get_item`` / ``set_item`` / ``remove_item`` with single-key atomicity.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import create_session
from ..models import KeyValueRecord

logger = logging.getLogger(__name__)


class OfflineStorageError(RuntimeError):
    """Raised when the durable key/value store cannot be read or written."""


class KeyValueStorage(Protocol):
    async def get_item(self, key: str) -> str | None: ...

    async def set_item(self, key: str, value: str) -> None: ...

    async def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage, used by tests and ephemeral deployments."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._items)


class SqlKeyValueStorage:
    """SQLAlchemy-backed storage; each call runs in a worker thread."""

    def __init__(self, session_factory: Callable[[], Session] = create_session) -> None:
        self._session_factory = session_factory

    def _get(self, key: str) -> str | None:
        session = self._session_factory()
        try:
            record = session.get(KeyValueRecord, key)
            return str(record.value) if record is not None else None
        except SQLAlchemyError as exc:
            raise OfflineStorageError(f"Failed to read key {key!r}") from exc
        finally:
            session.close()

    def _set(self, key: str, value: str) -> None:
        session = self._session_factory()
        try:
            record = session.get(KeyValueRecord, key)
            if record is None:
                session.add(KeyValueRecord(key=key, value=value))
            else:
                record.value = value
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise OfflineStorageError(f"Failed to write key {key!r}") from exc
        finally:
            session.close()

    def _remove(self, key: str) -> None:
        session = self._session_factory()
        try:
            record = session.get(KeyValueRecord, key)
            if record is not None:
                session.delete(record)
                session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise OfflineStorageError(f"Failed to remove key {key!r}") from exc
        finally:
            session.close()

    async def get_item(self, key: str) -> str | None:
        return await asyncio.to_thread(self._get, key)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)


def build_storage(backend: str) -> KeyValueStorage:
    normalized = (backend or "").strip().lower()
    if normalized == "memory":
        return MemoryStorage()
    if normalized != "sql":
        logger.warning("Unknown offline storage backend %r; falling back to sql", backend)
    return SqlKeyValueStorage()


__all__ = [
    "KeyValueStorage",
    "MemoryStorage",
    "OfflineStorageError",
    "SqlKeyValueStorage",
    "build_storage",
]
