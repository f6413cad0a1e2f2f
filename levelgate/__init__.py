from .commands import CommandDefinition, CommandRegistry, command
from .contexts import BotContext, ContextRegistry
from .dispatch import DispatchResult, DispatchStatus, Dispatcher, InboundMessage
from .errors import (
    ArgumentError, CommandError, ConfigurationOrderError, DeliveryError,
    DuplicateCommandError, MalformedPermissionDataError, PermissionDeniedError,
    UnknownCommandError)
from .permissions import Caller, PermissionStore
from .tokenizer import split_command, tokenize
