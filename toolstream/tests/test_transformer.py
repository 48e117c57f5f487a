import unittest

from toolstream.models import RawEntry
from toolstream.parsers.registry import DecoderRegistry
from toolstream.parsers.tools import BashDecoder
from toolstream.transformer import LogTransformer


def _call(name: str, content=None) -> RawEntry:
    if content is None:
        content = {"type": "tool_use", "id": "toolu_9", "name": name, "input": {"command": "whoami"}}
    return RawEntry(uuid="call-9", type="assistant", timestamp="2026-03-01T10:00:00Z", content=content)


class _BrokenBashDecoder(BashDecoder):
    def parse_input(self, params):
        raise KeyError("command")


class LogTransformerTests(unittest.TestCase):
    def test_single_block_content_is_transformed(self) -> None:
        result = LogTransformer().transform(_call("Bash"))
        assert result is not None
        self.assertEqual(result.toolName, "Bash")
        self.assertEqual(result.toolId, "toolu_9")
        self.assertEqual(result.record.toolType, "bash")
        self.assertEqual(result.record.status.normalized, "pending")

    def test_result_entry_completes_record(self) -> None:
        result_entry = RawEntry(
            uuid="result-9",
            type="user",
            timestamp="2026-03-01T10:00:00.500Z",
            content=[
                {"type": "text", "text": "noise"},
                {"type": "tool_result", "tool_use_id": "toolu_9", "content": [{"type": "text", "text": "dev"}]},
            ],
        )
        result = LogTransformer().transform(_call("Bash"), result_entry)
        assert result is not None
        self.assertEqual(result.record.results.output, "dev")
        self.assertEqual(result.record.duration, 500)

    def test_no_tool_use_returns_none(self) -> None:
        with self.assertLogs("toolstream.transformer", level="DEBUG"):
            self.assertIsNone(LogTransformer().transform(_call("Bash", content="hello")))

    def test_no_decoder_returns_none(self) -> None:
        transformer = LogTransformer(DecoderRegistry([BashDecoder()]))
        with self.assertLogs("toolstream.transformer", level="WARNING"):
            self.assertIsNone(transformer.transform(_call("Read")))

    def test_decoder_exception_returns_none(self) -> None:
        transformer = LogTransformer(DecoderRegistry([_BrokenBashDecoder()]))
        with self.assertLogs("toolstream.transformer", level="ERROR"):
            self.assertIsNone(transformer.transform(_call("Bash")))


if __name__ == "__main__":
    unittest.main()
