import unittest

from toolstream.models import RawEntry
from toolstream.parsers.registry import DecoderRegistry, create_default_registry
from toolstream.parsers.tools import BashDecoder, GenericDecoder


def _call(name: str, tool_input: dict | None = None, content=None) -> RawEntry:
    return RawEntry(
        uuid="call-1",
        type="assistant",
        timestamp="2026-03-01T10:00:00Z",
        content=content if content is not None else [{"type": "tool_use", "id": "toolu_1", "name": name, "input": tool_input or {}}],
    )


class DecoderRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = create_default_registry()

    def test_dispatch_by_tool_name(self) -> None:
        expected = {
            "Bash": "bash",
            "Read": "read",
            "Write": "write",
            "Edit": "edit",
            "MultiEdit": "multi_edit",
            "Grep": "grep",
            "Glob": "glob",
            "LS": "ls",
            "TodoRead": "todo_read",
            "TodoWrite": "todo_write",
            "mcp__github__get_issue": "mcp",
            "NotebookEdit": "generic",
        }
        for name, tool_type in expected.items():
            with self.subTest(name=name):
                self.assertEqual(self.registry.get_for_entry(_call(name)).tool_type, tool_type)

    def test_every_decoder_is_total_for_pending_calls(self) -> None:
        for name in ("Bash", "Read", "Write", "Edit", "MultiEdit", "Grep", "Glob", "LS", "TodoRead", "TodoWrite", "mcp__x__y", "Other"):
            with self.subTest(name=name):
                record = self.registry.decode(_call(name))
                self.assertIsNotNone(record)
                self.assertEqual(record.status.normalized, "pending")
                self.assertEqual(record.toolName, name)

    def test_name_matching_is_case_insensitive(self) -> None:
        self.assertEqual(self.registry.get_for_entry(_call("bash")).tool_type, "bash")

    def test_entries_without_tool_use_have_no_decoder(self) -> None:
        entry = _call("", content="plain text")
        self.assertIsNone(self.registry.get_for_entry(entry))
        self.assertIsNone(self.registry.decode(entry))

    def test_fallback_stays_last_when_registering_later(self) -> None:
        registry = DecoderRegistry([GenericDecoder()])
        registry.register(BashDecoder())
        self.assertEqual([d.tool_type for d in registry.decoders], ["bash", "generic"])

    def test_describe_and_registered_tools(self) -> None:
        meta = self.registry.describe()
        self.assertEqual(len(meta), 12)
        self.assertEqual(meta[-1]["toolType"], "generic")
        self.assertTrue(meta[-1]["fallback"])
        tools = self.registry.registered_tools()
        self.assertIn("Bash", tools)
        self.assertIn("mcp__*", tools)
        self.assertEqual(tools[-1], "*")


if __name__ == "__main__":
    unittest.main()
