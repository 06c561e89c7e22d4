import asyncio
import json

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from config import Settings
from database import make_sessionmaker
from storage import LibraryStore, MemoryStore, RedisStore, SqlStore, create_store


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.published = []
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value.encode("utf-8")

    async def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))

    async def aclose(self):
        self.closed = True


def test_memory_store_copies_values_and_notifies_changes():
    store = MemoryStore()
    events = []
    store.subscribe(lambda keys, area: events.append((keys, area)))

    value = {"a": {"status": "reading"}}

    async def scenario():
        await store.set({"lib": value})
        value["a"]["status"] = "dropped"
        fetched = await store.get("lib")
        await store.set({"lib": fetched["lib"]})
        return fetched

    fetched = asyncio.run(scenario())

    assert fetched == {"lib": {"a": {"status": "reading"}}}
    assert events == [(["lib"], "local")]
    assert asyncio.run(store.get("missing")) == {}


def test_failing_listener_does_not_break_writes():
    store = MemoryStore()

    def broken(keys, area):
        raise RuntimeError("listener bug")

    store.subscribe(broken)
    asyncio.run(store.set({"lib": {}}))

    assert asyncio.run(store.get("lib")) == {"lib": {}}


def test_library_store_treats_non_object_as_empty():
    store = MemoryStore({"lnTracker.library": ["not", "a", "map"]})
    library_store = LibraryStore(store, key="lnTracker.library")

    assert asyncio.run(library_store.load()) == {}


def test_library_store_round_trip_and_entry_lookup():
    library_store = LibraryStore(MemoryStore(), key="lnTracker.library")

    async def scenario():
        await library_store.save({"ranobes:1": {"novel_name": "One"}, "ranobes:2": "junk"})
        return (
            await library_store.get_entry("ranobes", "1"),
            await library_store.get_entry("ranobes", "2"),
        )

    found, junk = asyncio.run(scenario())

    assert found == {"novel_name": "One"}
    assert junk is None


def test_sql_store_persists_and_updates(tmp_path):
    async def scenario():
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'library.db'}")
        try:
            store = SqlStore(sessionmaker=make_sessionmaker(engine), engine=engine)
            events = []
            store.subscribe(lambda keys, area: events.append(keys))

            missing = await store.get("lib")
            await store.set({"lib": {"novelbin:a": {"novel_name": "Ä"}}})
            await store.set({"lib": {"novelbin:a": {"novel_name": "B"}}})
            found = await store.get("lib")

            reopened = SqlStore(sessionmaker=make_sessionmaker(engine), engine=engine)
            again = await reopened.get("lib")
            return missing, found, again, events
        finally:
            await engine.dispose()

    missing, found, again, events = asyncio.run(scenario())

    assert missing == {}
    assert found == {"lib": {"novelbin:a": {"novel_name": "B"}}}
    assert again == found
    assert events == [["lib"], ["lib"]]


def test_redis_store_uses_namespace_and_publishes_changes():
    client = FakeRedis()
    store = RedisStore(namespace="test:", client=client)

    async def scenario():
        await store.set({"lib": {"k": {"status": "reading"}}})
        found = await store.get("lib")
        missing = await store.get("other")
        await store.close()
        return found, missing

    found, missing = asyncio.run(scenario())

    assert "test:lib" in client.data
    assert found == {"lib": {"k": {"status": "reading"}}}
    assert missing == {}
    assert client.published == [("test:changes", {"keys": ["lib"], "area": "local"})]
    assert client.closed is True


def test_create_store_backends(tmp_path):
    assert isinstance(create_store(Settings(store_backend="memory")), MemoryStore)
    assert isinstance(
        create_store(Settings(store_backend="sql", database_url=f"sqlite+aiosqlite:///{tmp_path / 'x.db'}")),
        SqlStore,
    )

    with pytest.raises(ValueError):
        create_store(Settings(store_backend="etcd"))


def test_create_store_honors_echo_setting_on_default_url():
    store = create_store(Settings(store_backend="sql", database_echo=True))

    assert isinstance(store, SqlStore)
    assert store._engine is not None
    assert store._engine.echo is True
