"""Per-context permission levels.

Every user has a permission level from 0 to 255 in every context. Users that
were never assigned one have the store's default level. Levels are cached in
memory and lazily read from a backing store (see storage.py) the first time a
user is looked up in a context.

The cache is the source of truth while the bot runs. Changes reach the backing
store either right away (``set_level(..., persist_now=True)``) or when
``flush_all()`` is called on shutdown. Users at the default level are never
written out; flushing removes them from the backing store instead.

One user id may be given maximum trust (level 255 everywhere). That can only be
done before the store is first used, since callers resolved before then would
not see it.
"""
import asyncio
from dataclasses import dataclass
import logging

from .errors import ConfigurationOrderError, MalformedPermissionDataError

log = logging.getLogger(__name__)

# Conventional levels. Nothing in the core requires using these.
NONMEMBER = 0
BLACKLISTED = 1
STANDARD_USER = 2
TRUSTED_USER = 3
OPERATOR = 63
ADMINISTRATOR = 127
SERVER_OWNER = 254
BACKEND_CONSOLE = 255

MIN_LEVEL = NONMEMBER
MAX_LEVEL = BACKEND_CONSOLE


def validate_level(level):
    if isinstance(level, bool) or not isinstance(level, int) or not (
            MIN_LEVEL <= level <= MAX_LEVEL):
        raise ValueError("Permission level must be an integer 0-255, got %r" % (level,))
    return level


def parse_level(raw):
    """Parse a stored level string. Returns None if it isn't one."""
    raw = raw.strip()
    if not (raw.isascii() and raw.isdigit()):
        return None
    level = int(raw)
    if level > MAX_LEVEL:
        return None
    return level


@dataclass(frozen=True)
class Caller:
    user_id: int
    level: int


class PermissionStore:

    def __init__(self, backing, default_level=STANDARD_USER):
        self.backing = backing
        self.default_level = validate_level(default_level)
        self.max_trust_user_id = None
        self.activated = False
        self._cache = {}
        self._locks = {}

    def activate(self):
        """Mark the store as in use. Later max trust grants will raise."""
        if not self.activated:
            log.debug("Permission store activated")
        self.activated = True

    def grant_max_trust(self, user_id):
        """Give user_id level 255 in every context.

        Raises ConfigurationOrderError once the store has been activated.
        """
        if self.activated:
            raise ConfigurationOrderError(
                "Maximum trust can only be granted before the permission "
                "store is first used")
        self.max_trust_user_id = user_id
        log.info("Granted maximum trust to user %s", user_id)

    def _lock(self, context, user_id):
        key = (context, user_id)
        try:
            return self._locks[key]
        except KeyError:
            lock = self._locks[key] = asyncio.Lock()
            return lock

    def _partition(self, context):
        try:
            return self._cache[context]
        except KeyError:
            part = self._cache[context] = {}
            return part

    def cached_level(self, context, user_id):
        """Level from cache only, or None if not loaded yet."""
        return self._cache.get(context, {}).get(user_id)

    async def get_level(self, context, user_id):
        """Return the level of user_id in context.

        Reads through to the backing store on a cache miss. Raises
        MalformedPermissionDataError if the stored value isn't a level.
        """
        self.activate()
        if user_id == self.max_trust_user_id:
            return MAX_LEVEL

        part = self._partition(context)
        try:
            return part[user_id]
        except KeyError:
            pass

        async with self._lock(context, user_id):
            # Someone may have loaded or set it while we waited
            if user_id in part:
                return part[user_id]

            raw = await self.backing.read(context, str(user_id))
            if raw is None:
                level = self.default_level
            else:
                level = parse_level(raw)
                if level is None:
                    raise MalformedPermissionDataError(context, user_id, raw)
            part[user_id] = level
            return level

    async def caller(self, context, user_id):
        return Caller(user_id, await self.get_level(context, user_id))

    async def set_level(self, context, user_id, level, persist_now=False):
        """Set the level of user_id in context.

        The cache is always updated. With persist_now, the record is also
        written to the backing store and the context flushed.
        """
        validate_level(level)
        self.activate()
        async with self._lock(context, user_id):
            self._partition(context)[user_id] = level
            log.debug("Set level of %s in %s to %d", user_id, context, level)
            if persist_now:
                await self._persist(context, user_id, level)
                await self.backing.flush(context)

    async def _persist(self, context, user_id, level):
        if level == self.default_level:
            await self.backing.delete(context, str(user_id))
        else:
            await self.backing.write(context, str(user_id), str(level))

    async def flush_context(self, context):
        """Write every cached record of context to the backing store."""
        part = self._cache.get(context)
        if part is None:
            return
        for user_id in sorted(part):
            async with self._lock(context, user_id):
                await self._persist(context, user_id, part[user_id])
        await self.backing.flush(context)

    async def flush_all(self):
        """Write every cached record of every context. Used on shutdown."""
        for context in list(self._cache):
            await self.flush_context(context)
        log.info("Flushed permissions for %d contexts", len(self._cache))

    def contexts(self):
        return list(self._cache)
