"""Backing stores for permission records.

A backing store is a string-keyed, string-valued map with one partition per
context. The permission store only ever talks to it through ``read``,
``write``, ``delete`` and ``flush``.

Three implementations:
    - MemoryBackingStore: a dict, for tests and throwaway bots
    - YamlBackingStore: one yaml file per context in a directory
    - PostgresBackingStore: a table in postgres, through asyncpg
"""
import abc
import asyncio
import logging
import os

import asyncpg
import ruamel.yaml
from ruamel.yaml.comments import CommentedMap

log = logging.getLogger(__name__)


class BackingStore(abc.ABC):

    @abc.abstractmethod
    async def read(self, context, key):
        """Return the stored string, or None."""

    @abc.abstractmethod
    async def write(self, context, key, value):
        pass

    @abc.abstractmethod
    async def delete(self, context, key):
        """Remove key. Missing keys are ignored."""

    @abc.abstractmethod
    async def flush(self, context):
        """Make pending writes for context durable."""


def _context_id(context):
    return getattr(context, "id", context)


class MemoryBackingStore(BackingStore):

    def __init__(self, data=None):
        self.data = data if data is not None else {}
        self.flushes = 0

    def partition(self, context):
        return self.data.setdefault(str(_context_id(context)), {})

    async def read(self, context, key):
        return self.partition(context).get(key)

    async def write(self, context, key, value):
        self.partition(context)[key] = value

    async def delete(self, context, key):
        self.partition(context).pop(key, None)

    async def flush(self, context):
        self.flushes += 1


class YamlBackingStore(BackingStore):
    """Stores each context's permissions in ``<directory>/<context id>.yml``.

    A partition is loaded from disk on first access and kept in memory. Writes
    only touch memory until flush() dumps the partition back to its file.
    File access runs in a worker thread so a large file doesn't stall the
    event loop.
    """

    def __init__(self, directory):
        self.directory = directory
        self._partitions = {}
        self._locks = {}
        self._dirty = set()

    def filename(self, context):
        return os.path.join(self.directory, "%s.yml" % _context_id(context))

    def _lock(self, cid):
        try:
            return self._locks[cid]
        except KeyError:
            lock = self._locks[cid] = asyncio.Lock()
            return lock

    @staticmethod
    def _read_file(filename):
        try:
            with open(filename, encoding="utf8") as f:
                return ruamel.yaml.YAML().load(f.read())
        except FileNotFoundError:
            return None

    @staticmethod
    def _write_file(directory, filename, data):
        os.makedirs(directory, exist_ok=True)
        with open(filename, "w", encoding="utf8") as f:
            ruamel.yaml.YAML().dump(data, f)

    def _string_keys(self, cid, data):
        """Hand-edited files may use bare int keys; records are keyed by str."""
        if all(isinstance(key, str) for key in data):
            return data
        fixed = CommentedMap()
        for key, value in data.items():
            if str(key) in fixed:
                log.warning("Duplicate permission entry for %s in %s", key, cid)
            fixed[str(key)] = value
        # Rewrite the file with the normalized keys on next flush
        self._dirty.add(cid)
        return fixed

    async def _load(self, context):
        cid = _context_id(context)
        try:
            return self._partitions[cid]
        except KeyError:
            pass
        async with self._lock(cid):
            if cid in self._partitions:
                return self._partitions[cid]
            data = await asyncio.to_thread(self._read_file, self.filename(context))
            if data is None:
                data = CommentedMap()
            data = self._partitions[cid] = self._string_keys(cid, data)
            return data

    async def read(self, context, key):
        value = (await self._load(context)).get(key)
        if value is None:
            return None
        # Hand-edited files may hold bare ints; the contract is strings.
        return str(value)

    async def write(self, context, key, value):
        (await self._load(context))[key] = value
        self._dirty.add(_context_id(context))

    async def delete(self, context, key):
        data = await self._load(context)
        if key in data:
            del data[key]
            self._dirty.add(_context_id(context))

    async def flush(self, context):
        cid = _context_id(context)
        if cid not in self._dirty:
            return
        async with self._lock(cid):
            self._dirty.discard(cid)
            snapshot = self._partitions[cid].copy()
            try:
                await asyncio.to_thread(
                    self._write_file, self.directory, self.filename(context),
                    snapshot)
            except BaseException:
                self._dirty.add(cid)
                raise
        log.debug("Saved permissions for %s to %s", cid, self.filename(context))


class PostgresBackingStore(BackingStore):
    """Permission records in a postgres table.

    Every write goes straight to the database, so flush() has nothing to do.
    """

    CREATE_TABLE = (
        "CREATE TABLE IF NOT EXISTS permissions ("
        "context_id text, user_key text, value text, "
        "PRIMARY KEY (context_id, user_key))")

    def __init__(self, pool):
        self._pool = pool

    @classmethod
    async def connect(cls, dsn):
        pool = await asyncpg.create_pool(dsn)
        store = cls(pool)
        await store.create_table()
        return store

    async def create_table(self):
        async with self._pool.acquire() as conn:
            await conn.execute(self.CREATE_TABLE)

    async def close(self):
        await self._pool.close()

    async def read(self, context, key):
        async with self._pool.acquire() as conn:
            res = await conn.fetchrow(
                "SELECT value FROM permissions "
                "WHERE context_id = $1 AND user_key = $2",
                str(_context_id(context)), key)
            if res:
                return res['value']

    async def write(self, context, key, value):
        async with self._pool.acquire() as conn:
            await conn.execute(
                "INSERT INTO permissions (context_id, user_key, value) "
                "VALUES ($1, $2, $3) "
                "ON CONFLICT (context_id, user_key) DO UPDATE SET value = $3",
                str(_context_id(context)), key, value)

    async def delete(self, context, key):
        async with self._pool.acquire() as conn:
            await conn.execute(
                "DELETE FROM permissions "
                "WHERE context_id = $1 AND user_key = $2",
                str(_context_id(context)), key)

    async def flush(self, context):
        pass
