"""Command definitions and the registry that holds them.

A command is a plain record: metadata plus one handler coroutine. Handlers are
called as ``handler(context, caller, message, args, raw_args)``.

Commands live either in the global scope or in the scope of one context.
Context commands supplement the global ones, and shadow a global command of the
same name for that context only.
"""
from dataclasses import dataclass, field
import inspect
import logging
import typing

from .errors import DuplicateCommandError
from .permissions import STANDARD_USER, validate_level

log = logging.getLogger(__name__)


def fold(name):
    return name.casefold()


@dataclass(frozen=True)
class CommandDefinition:
    name: str
    handler: typing.Callable[..., typing.Awaitable[None]] = field(compare=False)
    description: str = ""
    syntax: str = ""
    required_level: int = STANDARD_USER

    def __post_init__(self):
        if not self.name or any(c.isspace() for c in self.name):
            raise ValueError(
                "Command name must be non-empty and contain no whitespace: %r"
                % self.name)
        validate_level(self.required_level)
        if not self.syntax:
            object.__setattr__(self, "syntax", self.name)

    @property
    def key(self):
        return fold(self.name)

    @property
    def sort_key(self):
        return (self.required_level, fold(self.name), self.name)

    def can_use(self, caller):
        """True if the caller's level is high enough for this command."""
        return caller.level >= self.required_level

    def __lt__(self, other):
        if not isinstance(other, CommandDefinition):
            return NotImplemented
        return self.sort_key < other.sort_key


def command(name=None, *, description=None, syntax="", level=STANDARD_USER):
    """Decorator turning a handler coroutine into a CommandDefinition.

    The name defaults to the function name, the description to its docstring.
    """
    def real_decorator(func):
        return CommandDefinition(
            name=name or func.__name__,
            handler=func,
            description=description if description is not None else (
                inspect.cleandoc(func.__doc__ or "")),
            syntax=syntax,
            required_level=level)
    return real_decorator


class CommandRegistry:
    """Global and per-context command sets.

    Registration is meant to happen at startup. Once dispatch begins the
    registry is frozen and further changes raise.
    """

    def __init__(self):
        self._global = {}
        self._contexts = {}
        self._frozen = False

    @property
    def frozen(self):
        return self._frozen

    def freeze(self):
        self._frozen = True

    def _scope(self, context, create=False):
        if context is None:
            return self._global
        if create:
            return self._contexts.setdefault(context, {})
        return self._contexts.get(context, {})

    def _check_mutable(self):
        if self._frozen:
            raise RuntimeError("Commands cannot be changed once dispatch has started")

    def register(self, definition, context=None):
        """Add a command. Raises DuplicateCommandError on a name clash."""
        self._check_mutable()
        scope = self._scope(context, create=True)
        if definition.key in scope:
            raise DuplicateCommandError(definition.name, context)
        scope[definition.key] = definition
        log.debug("Registered command %s (level %d) in %s",
                  definition.name, definition.required_level,
                  "global scope" if context is None else context)
        return definition

    def unregister(self, name, context=None):
        self._check_mutable()
        scope = self._scope(context)
        del scope[fold(name)]
        log.debug("Unregistered command %s", name)

    def resolve(self, name, context=None):
        """Find a command by name, or None.

        Commands of the given context win over global ones.
        """
        key = fold(name)
        if context is not None:
            found = self._scope(context).get(key)
            if found is not None:
                return found
        return self._global.get(key)

    def list_all(self, context=None):
        """Return (global commands, context commands), each sorted."""
        global_cmds = sorted(self._global.values(), key=lambda c: c.sort_key)
        if context is None:
            return global_cmds, []
        context_cmds = sorted(
            self._scope(context).values(), key=lambda c: c.sort_key)
        return global_cmds, context_cmds

    def __len__(self):
        return len(self._global) + sum(len(s) for s in self._contexts.values())
