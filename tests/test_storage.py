"""Tests for the SQLAlchemy key/value storage backend."""
from __future__ import annotations

import asyncio
import os

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_offline_sync.db")
os.environ.setdefault("OFFLINE_STORAGE_BACKEND", "memory")

from foodiesnap.database import build_engine, build_session_factory, init_db  # noqa: E402
from foodiesnap.services.offline_cache import OfflineCache  # noqa: E402
from foodiesnap.services.offline_queue import PersistentQueue  # noqa: E402
from foodiesnap.services.queue_processor import QueueProcessor  # noqa: E402
from foodiesnap.services.storage import (  # noqa: E402
    MemoryStorage,
    OfflineStorageError,
    SqlKeyValueStorage,
    build_storage,
)


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def file_session_factory(tmp_path):
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'offline.db'}")
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


def test_sql_storage_round_trips_and_overwrites(session_factory):
    storage = SqlKeyValueStorage(session_factory)

    async def scenario():
        missing = await storage.get_item("offline_queue")
        await storage.set_item("offline_queue", "[]")
        await storage.set_item("offline_queue", '[{"id": "1"}]')
        latest = await storage.get_item("offline_queue")
        await storage.remove_item("offline_queue")
        await storage.remove_item("offline_queue")
        removed = await storage.get_item("offline_queue")
        return missing, latest, removed

    missing, latest, removed = asyncio.run(scenario())
    assert missing is None
    assert latest == '[{"id": "1"}]'
    assert removed is None


def test_queue_survives_restart_on_sql_storage(session_factory):
    async def scenario():
        queue = PersistentQueue(SqlKeyValueStorage(session_factory))
        first = await queue.enqueue("SEND_MESSAGE", {"content": "hi"}, "high")
        second = await queue.enqueue("UPLOAD_PHOTO", {"user_id": "u1"})
        restarted = PersistentQueue(SqlKeyValueStorage(session_factory))
        await restarted.load()
        return [first, second], restarted.actions()

    ids, restored = asyncio.run(scenario())
    assert [action.id for action in restored] == ids
    assert restored[0].payload == {"content": "hi"}


def test_sql_errors_surface_as_storage_errors():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    # No tables created, so every statement fails.
    storage = SqlKeyValueStorage(build_session_factory(engine))

    with pytest.raises(OfflineStorageError):
        asyncio.run(storage.get_item("offline_queue"))
    engine.dispose()


def test_build_storage_selects_backend():
    assert isinstance(build_storage("memory"), MemoryStorage)
    assert isinstance(build_storage(" SQL "), SqlKeyValueStorage)
    assert isinstance(build_storage("redis"), SqlKeyValueStorage)


async def _reloaded_ids(session_factory) -> list[str]:
    restarted = PersistentQueue(SqlKeyValueStorage(session_factory))
    await restarted.load()
    return [action.id for action in restarted.actions()]


def test_parallel_enqueues_are_all_persisted(file_session_factory):
    async def scenario():
        queue = PersistentQueue(SqlKeyValueStorage(file_session_factory))
        lengths = []
        for round_number in range(5):
            await asyncio.gather(
                *(queue.enqueue("SEND_MESSAGE", {"round": round_number, "n": n}) for n in range(20))
            )
            lengths.append(len(await _reloaded_ids(file_session_factory)))
        return lengths, [action.id for action in queue.actions()], await _reloaded_ids(file_session_factory)

    lengths, live_ids, persisted_ids = asyncio.run(scenario())
    assert lengths == [20, 40, 60, 80, 100]
    assert persisted_ids == live_ids


def test_removal_racing_enqueue_does_not_resurrect_processed_actions(file_session_factory):
    async def scenario():
        queue = PersistentQueue(SqlKeyValueStorage(file_session_factory))
        processed = [await queue.enqueue("SEND_MESSAGE", {"old": n}) for n in range(5)]
        results = await asyncio.gather(
            queue.remove_processed(processed),
            *(queue.enqueue("SEND_MESSAGE", {"new": n}) for n in range(5)),
        )
        return processed, [result for result in results if result is not None]

    processed, fresh = asyncio.run(scenario())
    persisted = asyncio.run(_reloaded_ids(file_session_factory))
    assert sorted(persisted) == sorted(fresh)
    assert not set(processed) & set(persisted)


def test_drain_pass_on_sql_storage_persists_the_emptied_queue(file_session_factory):
    async def scenario():
        queue = PersistentQueue(SqlKeyValueStorage(file_session_factory))
        processor = QueueProcessor(queue, is_online=lambda: True, concurrency=4)
        delivered: list[int] = []

        async def handler(action):
            await asyncio.sleep(0)
            delivered.append(action.payload["n"])

        processor.register_handler("SEND_MESSAGE", handler)
        await asyncio.gather(*(queue.enqueue("SEND_MESSAGE", {"n": n}) for n in range(12)))
        summary = await processor.process()
        return summary, delivered, await _reloaded_ids(file_session_factory)

    summary, delivered, persisted = asyncio.run(scenario())
    assert summary.succeeded == 12
    assert sorted(delivered) == list(range(12))
    assert persisted == []


def test_parallel_cache_writes_keep_every_entry(file_session_factory):
    async def scenario():
        cache = OfflineCache(SqlKeyValueStorage(file_session_factory), clock=lambda: 0)
        await asyncio.gather(*(cache.set(f"k{n}", n) for n in range(10)))
        await asyncio.gather(cache.remove("k0"), cache.invalidate_prefix("k1"), cache.set("extra", "x"))
        reopened = OfflineCache(SqlKeyValueStorage(file_session_factory), clock=lambda: 0)
        return {key: await reopened.get(key) for key in [f"k{n}" for n in range(10)] + ["extra"]}

    values = asyncio.run(scenario())
    assert values["k0"] is None
    assert values["k1"] is None
    assert values["extra"] == "x"
    assert [values[f"k{n}"] for n in range(2, 10)] == list(range(2, 10))
