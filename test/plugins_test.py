import unittest
from types import SimpleNamespace

from levelgate import errors
from levelgate.commands import CommandDefinition, CommandRegistry
from levelgate.contexts import ContextRegistry
from levelgate.dispatch import DispatchStatus, Dispatcher, InboundMessage
from levelgate.permissions import ADMINISTRATOR, PermissionStore
from levelgate.plugins import help as help_plugin
from levelgate.plugins import permissions as perms_plugin
from levelgate.storage import MemoryBackingStore

from common import FakeSink, async_test


async def noop(context, caller, message, args, raw_args):
    pass


class PluginTestCase(unittest.TestCase):

    def setUp(self):
        self.registry = CommandRegistry()
        self.contexts = ContextRegistry()
        self.backing = MemoryBackingStore()
        self.store = PermissionStore(self.backing)
        self.bot = SimpleNamespace(
            registry=self.registry,
            permission_store=self.store,
            prefix=lambda: ">> ",
            add_command=lambda definition: self.registry.register(definition))
        self.dispatcher = Dispatcher(self.registry, self.store, self.contexts)
        self.sink = FakeSink()

    async def run_command(self, text, sender=42, context_id=1):
        return await self.dispatcher.dispatch(InboundMessage(
            sender_id=sender, context_id=context_id, raw_text=text,
            reply=self.sink))


class HelpTest(PluginTestCase):

    def setUp(self):
        super().setUp()
        help_plugin.setup(self.bot)
        self.registry.register(CommandDefinition(
            "shutdown", noop, "Stops the bot.", "shutdown `now", 127))
        self.registry.register(
            CommandDefinition("local", noop, required_level=3),
            self.contexts.get(1))

    def test_listing_line(self):
        line = help_plugin.listing_line(self.registry.resolve("help"))
        self.assertTrue(line.startswith("+ help" + " " * 28))
        self.assertTrue(line.endswith("Requires Permission Level 2 (or higher).\n"))

    @async_test
    async def test_listing(self):
        result = await self.run_command("help")
        self.assertEqual(DispatchStatus.OK, result.status)
        text = self.sink.sent[0]

        self.assertIn("```diff\n", text)
        self.assertIn(">> help help", text)
        self.assertIn("+ help ", text)
        self.assertIn("- shutdown ", text)
        self.assertIn("Commands specific to this server", text)
        self.assertIn("- local ", text)
        self.assertLess(text.index("+ help"), text.index("- shutdown"))

    @async_test
    async def test_listing_other_context(self):
        await self.run_command("help", context_id=2)
        text = self.sink.sent[0]
        self.assertNotIn("Commands specific to this server", text)
        self.assertNotIn("local", text)

    @async_test
    async def test_single_command(self):
        await self.run_command("help HELP")
        self.assertEqual(
            "**Command:** `help` \n%s\n\n**Usage:** `help [commandName]`"
            % help_plugin.HELP_DESCRIPTION,
            self.sink.sent[0])

    @async_test
    async def test_odd_backticks_in_syntax(self):
        await self.run_command("help shutdown")
        self.assertTrue(self.sink.sent[0].endswith("**Usage:** `shutdown `now"))

    @async_test
    async def test_unknown(self):
        result = await self.run_command("help nope")
        self.assertIsInstance(result.error, errors.ArgumentError)
        self.assertIn("Command `nope` does not exist.", self.sink.sent[0])

    @async_test
    async def test_too_many_args(self):
        result = await self.run_command("help a b")
        self.assertEqual(DispatchStatus.COMMAND_FAILED, result.status)


class PermissionsPluginTest(PluginTestCase):

    def setUp(self):
        super().setUp()
        perms_plugin.setup(self.bot)

    def test_parse_user_id(self):
        self.assertEqual(123, perms_plugin.parse_user_id("123"))
        self.assertEqual(123, perms_plugin.parse_user_id("<@123>"))
        self.assertEqual(123, perms_plugin.parse_user_id("<@!123>"))
        with self.assertRaises(errors.ArgumentError):
            perms_plugin.parse_user_id("@someone")

    @async_test
    async def test_perms_self(self):
        await self.run_command("perms")
        self.assertEqual(["User 42 has permission level 2."], self.sink.sent)

    @async_test
    async def test_perms_other(self):
        await self.store.set_level(self.contexts.get(1), 7, 63)
        await self.run_command("perms <@7>")
        self.assertEqual(["User 7 has permission level 63."], self.sink.sent)

    @async_test
    async def test_setperms_requires_admin(self):
        result = await self.run_command("setperms 7 3")
        self.assertEqual(DispatchStatus.PERMISSION_DENIED, result.status)

    @async_test
    async def test_setperms(self):
        ctx = self.contexts.get(1)
        await self.store.set_level(ctx, 42, ADMINISTRATOR)
        result = await self.run_command("setperms 7 63")

        self.assertEqual(DispatchStatus.OK, result.status)
        self.assertEqual(63, await self.store.get_level(ctx, 7))
        self.assertEqual("63", self.backing.data["1"]["7"])

    @async_test
    async def test_setperms_not_above_self(self):
        ctx = self.contexts.get(1)
        await self.store.set_level(ctx, 42, ADMINISTRATOR)
        result = await self.run_command("setperms 7 127")
        self.assertEqual(DispatchStatus.COMMAND_FAILED, result.status)

        await self.store.set_level(ctx, 8, ADMINISTRATOR)
        result = await self.run_command("setperms 8 3")
        self.assertEqual(DispatchStatus.COMMAND_FAILED, result.status)
        self.assertEqual(ADMINISTRATOR, await self.store.get_level(ctx, 8))

    @async_test
    async def test_setperms_bad_args(self):
        await self.store.set_level(self.contexts.get(1), 42, ADMINISTRATOR)
        for text in ("setperms", "setperms 7", "setperms 7 lots", "setperms x 3"):
            result = await self.run_command(text)
            self.assertIsInstance(result.error, errors.ArgumentError, text)

    @async_test
    async def test_setperms_repairs_corrupt_data(self):
        self.backing.data["1"] = {"7": "garbage"}
        await self.store.set_level(self.contexts.get(1), 42, ADMINISTRATOR)
        with self.assertLogs("levelgate.plugins.permissions", level="WARNING"):
            result = await self.run_command("setperms 7 3")
        self.assertEqual(DispatchStatus.OK, result.status)
        self.assertEqual("3", self.backing.data["1"]["7"])


if __name__ == "__main__":
    unittest.main()
