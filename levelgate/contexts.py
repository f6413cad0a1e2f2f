"""Bot contexts: one per server the bot serves."""
from dataclasses import dataclass, field
import typing


@dataclass(frozen=True)
class BotContext:
    """Identity of one deployment scope, e.g. a guild.

    Equality and hashing only consider the id.
    """
    id: typing.Hashable
    name: typing.Optional[str] = field(default=None, compare=False)

    def __str__(self):
        if self.name:
            return "%s (%s)" % (self.name, self.id)
        return str(self.id)


class ContextRegistry:

    def __init__(self):
        self._contexts = {}

    def get(self, context_id, name=None):
        """Return the context for an id, creating it on first use."""
        try:
            ctx = self._contexts[context_id]
        except KeyError:
            ctx = self._contexts[context_id] = BotContext(context_id, name)
        return ctx

    def all(self):
        return list(self._contexts.values())

    def __contains__(self, context_id):
        return context_id in self._contexts

    def __len__(self):
        return len(self._contexts)
