"""Command listing and per-command documentation."""
from levelgate import ArgumentError, command
from levelgate.permissions import STANDARD_USER
from levelgate.utils import close_backticks

NAME_WIDTH = 34

HELP_DESCRIPTION = (
    "Lists every command or returns information on a command.\n\n"
    "Some commands show arguments in their usage. Text in angle brackets "
    "(`<arg>`) is a **required argument**, text in square brackets (`[arg]`) "
    "is an **optional argument**. Don't type the brackets themselves.\n\n"
    "Arguments are split by spaces. Put quotes around an argument to keep "
    "spaces in it: `cmd abc \"Cool Text!\" 123` has three arguments, `abc`, "
    "`Cool Text!` and `123`.")


def listing_line(cmd, caller=None):
    usable = caller is None or cmd.can_use(caller)
    name = ("+ " if usable else "- ") + cmd.name
    return "%sRequires Permission Level %d (or higher).\n" % (
        name.ljust(NAME_WIDTH), cmd.required_level)


def render_listing(registry, context, caller, prefix=""):
    global_cmds, context_cmds = registry.list_all(context)
    text = (
        "Commands with a `+` before them are commands you can use. Commands "
        "with a `-` before them are commands you cannot use.\n"
        "Say **`{0}help command_name_here`** to get more documentation on a "
        "specific command. Say **`{0}help help`** to get information on how "
        "commands work.".format(prefix))
    text += "```diff\n"
    for cmd in global_cmds:
        text += listing_line(cmd, caller)

    if context_cmds:
        text += "\nCommands specific to this server:\n\n"
        for cmd in context_cmds:
            text += listing_line(cmd, caller)

    text += "```\n"
    return text


def render_command(cmd):
    return "**Command:** `{0}` \n{1}\n\n**Usage:** {2}".format(
        cmd.name, cmd.description, close_backticks("`" + cmd.syntax))


def make_help(registry, prefix=""):

    @command("help", description=HELP_DESCRIPTION,
             syntax="help [commandName]", level=STANDARD_USER)
    async def help_command(context, caller, message, args, raw_args):
        if not args:
            await message.reply(render_listing(registry, context, caller, prefix))
        elif len(args) == 1:
            cmd = registry.resolve(args[0], context)
            if cmd is None:
                raise ArgumentError("Command `%s` does not exist." % args[0])
            await message.reply(render_command(cmd))
        else:
            raise ArgumentError(
                "Expected no arguments, or the name of the command you want "
                "details on.")

    return help_command


def setup(bot):
    bot.add_command(make_help(bot.registry, bot.prefix()))
