"""Async key/value stores and the library accessor built on top of them."""
import copy
import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from redis import asyncio as redis_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine

from config import settings, Settings
from database import AsyncSessionLocal, init_db, make_sessionmaker
from models import KeyValueEntry
from schemas import entry_id

logger = logging.getLogger(__name__)

ChangeListener = Callable[[List[str], str], Any]


class KeyValueStore:
    """
    Base class for async key/value stores.

    ``get`` returns a mapping holding the requested key when it exists, or
    an empty mapping. ``set`` writes every key of the given mapping.
    Subscribers are called with ``(changed_keys, area)`` after each write.
    """

    area = "local"

    def __init__(self):
        self._listeners: List[ChangeListener] = []

    async def get(self, key: str) -> Dict[str, Any]:
        raise NotImplementedError

    async def set(self, items: Dict[str, Any]) -> None:
        raise NotImplementedError

    def subscribe(self, listener: ChangeListener) -> None:
        """Register a change listener."""
        self._listeners.append(listener)

    def _notify(self, changed_keys: Iterable[str]) -> None:
        changed = list(changed_keys)
        if not changed:
            return
        for listener in self._listeners:
            try:
                listener(changed, self.area)
            except Exception as e:
                logger.error(f"Store change listener failed: {e}")

    async def close(self) -> None:
        """Release backend resources."""


class MemoryStore(KeyValueStore):
    """In-process store. Values are copied on the way in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        super().__init__()
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    async def get(self, key: str) -> Dict[str, Any]:
        if key not in self._data:
            return {}
        return {key: copy.deepcopy(self._data[key])}

    async def set(self, items: Dict[str, Any]) -> None:
        changed = []
        for key, value in items.items():
            if self._data.get(key) != value:
                changed.append(key)
            self._data[key] = copy.deepcopy(value)
        self._notify(changed)


class RedisStore(KeyValueStore):
    """
    Store values as JSON strings in Redis.

    Keys are prefixed with ``namespace``; change notifications are also
    published on ``<namespace>changes`` for other processes.
    """

    def __init__(self, url: Optional[str] = None, namespace: Optional[str] = None, client=None):
        super().__init__()
        self.namespace = namespace if namespace is not None else settings.redis_namespace
        self.channel = f"{self.namespace}changes"
        self.client = client or redis_asyncio.Redis.from_url(url or settings.redis_url)

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    async def get(self, key: str) -> Dict[str, Any]:
        raw = await self.client.get(self._key(key))
        if raw is None:
            return {}
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return {key: json.loads(raw)}

    async def set(self, items: Dict[str, Any]) -> None:
        for key, value in items.items():
            await self.client.set(self._key(key), json.dumps(value, ensure_ascii=False))
        changed = list(items.keys())
        await self.client.publish(self.channel, json.dumps({"keys": changed, "area": self.area}))
        self._notify(changed)

    async def close(self) -> None:
        await self.client.aclose()


class SqlStore(KeyValueStore):
    """Store values as JSON text rows of the ``kv_store`` table."""

    def __init__(self, sessionmaker=None, engine=None):
        super().__init__()
        self._sessionmaker = sessionmaker or AsyncSessionLocal
        self._engine = engine
        self._ready = False

    async def _ensure_tables(self):
        if not self._ready:
            await init_db(self._engine)
            self._ready = True

    async def get(self, key: str) -> Dict[str, Any]:
        await self._ensure_tables()
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(KeyValueEntry).where(KeyValueEntry.key == key)
            )
            row = result.scalar_one_or_none()
        if row is None:
            return {}
        return {key: json.loads(row.value)}

    async def set(self, items: Dict[str, Any]) -> None:
        await self._ensure_tables()
        async with self._sessionmaker() as session:
            try:
                for key, value in items.items():
                    await session.merge(
                        KeyValueEntry(key=key, value=json.dumps(value, ensure_ascii=False))
                    )
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        self._notify(items.keys())


def create_store(config: Optional[Settings] = None) -> KeyValueStore:
    """
    Build the configured store backend.

    Args:
        config: Settings to read ``store_backend`` from

    Returns:
        Store instance
    """
    config = config or settings
    backend = config.store_backend.lower()

    if backend == "memory":
        return MemoryStore()
    if backend == "redis":
        return RedisStore(url=config.redis_url, namespace=config.redis_namespace)
    if backend == "sql":
        if config is settings:
            return SqlStore()
        engine = create_async_engine(config.database_url, echo=config.database_echo, future=True)
        return SqlStore(sessionmaker=make_sessionmaker(engine), engine=engine)

    raise ValueError(f"Unknown store backend: {config.store_backend}")


class LibraryStore:
    """
    Read-modify-write access to the library map stored under one key.

    The read-modify-write is not atomic: two concurrent writers of the same
    key can lose one update.
    """

    def __init__(self, store: KeyValueStore, key: Optional[str] = None):
        self.store = store
        self.key = key or settings.library_key

    async def load(self) -> Dict[str, Dict[str, Any]]:
        """Load the library map; anything but a JSON object reads as empty."""
        data = await self.store.get(self.key)
        library = data.get(self.key) if data else None
        if not isinstance(library, dict):
            if library is not None:
                logger.warning(f"Ignoring non-object library value under {self.key}")
            return {}
        return library

    async def save(self, library: Dict[str, Dict[str, Any]]) -> None:
        """Write the whole library map back."""
        await self.store.set({self.key: library})

    async def get_entry(self, source: str, novel_key: str) -> Optional[Dict[str, Any]]:
        """Load the stored entry for a (source, novel key) pair."""
        library = await self.load()
        entry = library.get(entry_id(source, novel_key))
        return entry if isinstance(entry, dict) else None
