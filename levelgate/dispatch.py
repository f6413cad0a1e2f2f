"""Turns inbound messages into command invocations.

One call to Dispatcher.dispatch() handles one message:

    1. split the text into a command name and arguments
    2. look the command up, context commands first
    3. look up the sender's level and compare it to the command's
    4. run the handler

Every recoverable failure is answered with exactly one reply and reported back
in the DispatchResult. Failures the dispatcher doesn't know about propagate to
whoever called dispatch().
"""
from dataclasses import dataclass
import enum
import logging
import typing

from .contexts import ContextRegistry
from .errors import (
    ArgumentError, CommandError, DeliveryError, MalformedPermissionDataError,
    PermissionDeniedError, UnknownCommandError)
from .permissions import Caller
from .tokenizer import split_command
from .utils import TypeMap

log = logging.getLogger(__name__)


REPLY_MAP = TypeMap({
    UnknownCommandError: "Unknown command `{name}`.",
    PermissionDeniedError:
        "You need permission level {exp.command.required_level} to use "
        "`{name}` (you have {level}).",
    ArgumentError: "Bad argument for `{name}`: {exp}\nUsage: `{syntax}`",
    CommandError: "Error running command `{name}`: {exp}",
})


@dataclass
class InboundMessage:
    sender_id: int
    context_id: typing.Hashable
    raw_text: str
    # async reply(text), raises DeliveryError on failure
    reply: typing.Callable[[str], typing.Awaitable[None]]
    original: typing.Any = None
    context_name: typing.Optional[str] = None


class DispatchStatus(enum.Enum):
    IGNORED = "ignored"
    OK = "ok"
    UNKNOWN_COMMAND = "unknown_command"
    PERMISSION_DENIED = "permission_denied"
    COMMAND_FAILED = "command_failed"
    DELIVERY_FAILED = "delivery_failed"


@dataclass
class DispatchResult:
    status: DispatchStatus
    command: typing.Any = None
    caller: typing.Optional[Caller] = None
    error: typing.Optional[Exception] = None
    reply: typing.Optional[str] = None

    @property
    def ok(self):
        return self.status in (DispatchStatus.OK, DispatchStatus.IGNORED)


def format_error(exp, name, syntax=""):
    template = REPLY_MAP.lookup(type(exp))
    level = "unknown"
    caller = getattr(exp, "caller", None)
    if caller is not None and caller.level is not None:
        level = caller.level
    return template.format(exp=exp, name=name, syntax=syntax, level=level)


class Dispatcher:

    def __init__(self, registry, permissions, contexts=None, prefix=""):
        self.registry = registry
        self.permissions = permissions
        self.contexts = contexts if contexts is not None else ContextRegistry()
        self.prefix = prefix

    async def _reply(self, message, text):
        try:
            await message.reply(text)
        except DeliveryError:
            log.warning("Could not deliver reply to %s in %s",
                        message.sender_id, message.context_id, exc_info=True)

    async def _fail(self, message, status, exp, command_name,
                    definition=None, caller=None):
        text = format_error(
            exp, command_name, definition.syntax if definition else "")
        await self._reply(message, text)
        return DispatchResult(
            status, command=definition, caller=caller, error=exp, reply=text)

    async def _resolve_caller(self, context, user_id):
        """Look up the caller, or None if that failed. Never raises."""
        try:
            return await self.permissions.caller(context, user_id)
        except MalformedPermissionDataError:
            log.error("Corrupt permission data, denying access", exc_info=True)
        except Exception:
            log.exception("Failed to look up level of %s in %s", user_id, context)
        return None

    async def dispatch(self, message):
        text = message.raw_text
        if self.prefix:
            if not text.startswith(self.prefix):
                return DispatchResult(DispatchStatus.IGNORED)
            text = text[len(self.prefix):]

        name, args, raw_args = split_command(text)
        if not name:
            return DispatchResult(DispatchStatus.IGNORED)

        self.registry.freeze()
        context = self.contexts.get(message.context_id, message.context_name)

        definition = self.registry.resolve(name, context)
        if definition is None:
            log.debug("Unknown command %r from %s", name, message.sender_id)
            return await self._fail(
                message, DispatchStatus.UNKNOWN_COMMAND,
                UnknownCommandError(name), name)

        caller = await self._resolve_caller(context, message.sender_id)
        if caller is None or not definition.can_use(caller):
            caller = caller or Caller(message.sender_id, None)
            log.info("Denied %s to %s (level %s) in %s", definition.name,
                     caller.user_id, caller.level, context)
            return await self._fail(
                message, DispatchStatus.PERMISSION_DENIED,
                PermissionDeniedError(definition, caller), definition.name,
                definition, caller)

        log.debug("Running %s for %s in %s args=%r", definition.name,
                  caller.user_id, context, args)
        try:
            await definition.handler(context, caller, message, args, raw_args)
        except CommandError as exp:
            log.debug("Command %s failed: %s", definition.name, exp)
            return await self._fail(
                message, DispatchStatus.COMMAND_FAILED, exp, definition.name,
                definition, caller)
        except DeliveryError as exp:
            log.warning("Could not deliver reply from %s to %s in %s",
                        definition.name, caller.user_id, context, exc_info=True)
            return DispatchResult(
                DispatchStatus.DELIVERY_FAILED, command=definition,
                caller=caller, error=exp)

        return DispatchResult(DispatchStatus.OK, command=definition, caller=caller)
