import logging
import re

from levelgate import ArgumentError, CommandError, command
from levelgate.errors import MalformedPermissionDataError
from levelgate.permissions import ADMINISTRATOR, STANDARD_USER, parse_level

log = logging.getLogger(__name__)

USER_RE = re.compile(r"<@!?(\d+)>|(\d+)")


def parse_user_id(raw):
    """Accept a bare user id or a mention."""
    match = USER_RE.fullmatch(raw.strip())
    if not match:
        raise ArgumentError("`%s` is not a user id or mention." % raw)
    return int(match.group(1) or match.group(2))


def make_commands(store):

    @command("perms", syntax="perms [user]", level=STANDARD_USER)
    async def perms(context, caller, message, args, raw_args):
        """Shows your permission level, or someone else's."""
        if len(args) > 1:
            raise ArgumentError("Expected at most one user.")
        user_id = parse_user_id(args[0]) if args else caller.user_id
        level = await store.get_level(context, user_id)
        await message.reply("User %d has permission level %d." % (user_id, level))

    @command("setperms", syntax="setperms <user> <level>", level=ADMINISTRATOR)
    async def setperms(context, caller, message, args, raw_args):
        """Sets the permission level of a user in this server.

        You can only hand out levels below your own, and only to users below
        your own level.
        """
        if len(args) != 2:
            raise ArgumentError("Expected a user and a level.")
        user_id = parse_user_id(args[0])
        level = parse_level(args[1])
        if level is None:
            raise ArgumentError("`%s` is not a level from 0 to 255." % args[1])
        if level >= caller.level:
            raise CommandError(
                "You can only assign levels below your own (%d)." % caller.level)

        if user_id != caller.user_id:
            try:
                current = await store.get_level(context, user_id)
            except MalformedPermissionDataError:
                # Overwriting is how an operator repairs it
                log.warning("Replacing corrupt permission data for %s in %s",
                            user_id, context, exc_info=True)
                current = None
            if current is not None and current >= caller.level:
                raise CommandError(
                    "You cannot change the level of a user at or above your "
                    "own level.")

        await store.set_level(context, user_id, level, persist_now=True)
        await message.reply("Set permission level of user %d to %d." % (user_id, level))

    return perms, setperms


def setup(bot):
    for definition in make_commands(bot.permission_store):
        bot.add_command(definition)
