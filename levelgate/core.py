import importlib
import logging

import discord

from . import config
from . import permissions
from . import storage
from . import utils
from .commands import CommandRegistry
from .contexts import ContextRegistry
from .dispatch import Dispatcher, InboundMessage
from .errors import DeliveryError

log = logging.getLogger(__name__)

DEFAULT_PLUGINS = [
    "levelgate.plugins.help",
    "levelgate.plugins.permissions",
]

BACKENDS = ("yaml", "postgres")


def _valid_backend(value):
    return value in BACKENDS


class LevelGateBot(discord.Client):
    """Discord client that routes messages through the command dispatcher.

    Everything the bot needs is read from a yaml config file. Missing values
    are written back to it with their defaults, so a first run produces a
    template.
    """

    def __init__(self, *args, conf="config.yml", backing=None, **kwargs):
        self._config = config.FileConfiguration(conf)
        self._config.load()
        cgroup = self._config.root
        try:
            self.prefix = cgroup.register("prefix", default=">> ")
            self.token = cgroup.register("token")
            self.owner_id = cgroup.register("owner_id", required=False)
            self.default_level = cgroup.register(
                "default_level", default=permissions.STANDARD_USER,
                validator=permissions.validate_level)
            self.plugins = cgroup.register("plugins", default=list(DEFAULT_PLUGINS))
            pgroup = cgroup.add_group("permissions")
            self.backend = pgroup.register(
                "backend", default="yaml", validator=_valid_backend)
            self.permissions_dir = pgroup.register("directory", default="permissions")
            self.dsn = pgroup.register("dsn", required=False)
        finally:
            # Raise and fail to start on invalid core config
            self._config.save()

        if backing is None:
            if self.backend() == "yaml":
                backing = storage.YamlBackingStore(self.permissions_dir())
            elif not self.dsn():
                raise config.InvalidConfig(
                    "permissions.dsn is required for the postgres backend")

        self.contexts = ContextRegistry()
        self.registry = CommandRegistry()
        self.permission_store = permissions.PermissionStore(
            backing, default_level=self.default_level())
        if self.owner_id() is not None:
            self.permission_store.grant_max_trust(int(self.owner_id()))
        self.dispatcher = Dispatcher(
            self.registry, self.permission_store, self.contexts,
            prefix=self.prefix())
        self.loaded_plugins = {}

        if "intents" not in kwargs:
            intents = discord.Intents.default()
            intents.message_content = True
            kwargs["intents"] = intents
        super().__init__(*args, **kwargs)

        plugins = self.plugins()
        if isinstance(plugins, str):
            plugins = [plugins]
        for name in plugins:
            self.load_plugin(name)

    def load_plugin(self, name):
        """Import a plugin module and call its setup(bot)."""
        if name in self.loaded_plugins:
            return

        log.info("Loading plugin %s", name)
        lib = importlib.import_module(name)
        setup = getattr(lib, 'setup', None)
        if setup:
            setup(self)
        else:
            log.warning("Plugin %s has no setup function", name)
        self.loaded_plugins[name] = lib

    def add_command(self, definition, context_id=None):
        """Register a command globally, or for one context id."""
        context = None
        if context_id is not None:
            context = self.contexts.get(context_id)
        return self.registry.register(definition, context)

    async def setup_hook(self):
        if self.permission_store.backing is None:
            log.info("Connecting to permission database")
            self.permission_store.backing = await storage.PostgresBackingStore.connect(
                self.dsn())

    def inbound(self, message):
        """Wrap a discord.Message for the dispatcher."""
        if message.guild:
            context_id, context_name = message.guild.id, message.guild.name
        else:
            context_id, context_name = message.channel.id, None

        async def reply(text):
            try:
                await message.channel.send(utils.clean_mass_mentions(text))
            except discord.HTTPException as e:
                raise DeliveryError(str(e)) from e

        return InboundMessage(
            sender_id=message.author.id,
            context_id=context_id,
            raw_text=message.content,
            reply=reply,
            original=message,
            context_name=context_name)

    async def on_message(self, message):
        if message.author.bot:
            return
        return await self.dispatcher.dispatch(self.inbound(message))

    async def on_error(self, event, *args, **kwargs):
        log.exception(
            "Unhandled exception in %s\nargs: %s\nkwargs: %s\n",
            event, args, kwargs)

    def run(self, *args, **kwargs):
        kwargs.setdefault("log_handler", None)
        super().run(self.token(), *args, **kwargs)

    async def close(self):
        backing = self.permission_store.backing
        try:
            if backing is not None:
                await self.permission_store.flush_all()
        finally:
            if isinstance(backing, storage.PostgresBackingStore):
                await backing.close()
            await super().close()
