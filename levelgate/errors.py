"""Exceptions raised by the command and permission core."""


class LevelGateError(Exception):
    pass


class DuplicateCommandError(LevelGateError):
    """A command with this name already exists in the same scope."""

    def __init__(self, name, context=None):
        scope = "global scope" if context is None else "context %s" % context
        super().__init__("Command %r is already registered in %s" % (name, scope))
        self.name = name
        self.context = context


class UnknownCommandError(LevelGateError):
    """Command name did not resolve."""

    def __init__(self, name):
        super().__init__("Unknown command %r" % name)
        self.name = name


class PermissionDeniedError(LevelGateError):
    """Caller's level is below what the command requires."""

    def __init__(self, command, caller):
        level = "unknown" if caller.level is None else caller.level
        super().__init__(
            "User %s (level %s) cannot use %r (requires %s)" % (
                caller.user_id, level, command.name, command.required_level))
        self.command = command
        self.caller = caller


class MalformedPermissionDataError(LevelGateError):
    """Persisted permission value could not be parsed as a level."""

    def __init__(self, context, user_id, raw):
        super().__init__(
            "The data stored for the permission level of user %s in %s is "
            "malformed: could not parse %r as an integer 0-255" % (
                user_id, context, raw))
        self.context = context
        self.user_id = user_id
        self.raw = raw


class ConfigurationOrderError(LevelGateError):
    """Setting was changed after the subsystem it affects was activated."""


class DeliveryError(LevelGateError):
    """A reply could not be delivered."""


class CommandError(LevelGateError):
    """Raised by command handlers. The message is shown to the user."""


class ArgumentError(CommandError):
    """Bad or missing command arguments."""
