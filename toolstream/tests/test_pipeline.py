import json
import tempfile
import unittest
from pathlib import Path

from toolstream.correlation.engine import CorrelationEngine
from toolstream.events import ENTRY, SESSION_NEW, TOOL_COMPLETED
from toolstream.monitor.file_monitor import FileMonitor
from toolstream.parsers.registry import DecoderRegistry
from toolstream.path_codec import PathCorrections
from toolstream.pipeline import ToolStreamPipeline
from toolstream.streaming import EventBroadcaster
from toolstream.transformer import LogTransformer


def _call_line(uuid: str, tool_id: str, command: str) -> str:
    return json.dumps(
        {
            "uuid": uuid,
            "type": "assistant",
            "timestamp": "2026-03-01T10:00:00Z",
            "message": {
                "role": "assistant",
                "content": [{"type": "tool_use", "id": tool_id, "name": "Bash", "input": {"command": command}}],
            },
        }
    )


def _result_line(uuid: str, tool_id: str, output: str) -> str:
    return json.dumps(
        {
            "uuid": uuid,
            "parentUuid": "x",
            "type": "user",
            "timestamp": "2026-03-01T10:00:01Z",
            "message": {
                "role": "user",
                "content": [{"type": "tool_result", "tool_use_id": tool_id, "content": output}],
            },
            "toolUseResult": {"stdout": output, "stderr": "", "interrupted": False},
        }
    )


def _drain(queue) -> list[dict]:
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


class ToolStreamPipelineTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        base = Path(tmpdir.name)
        self.root = base / "projects"
        project_dir = self.root / "-Users-dev-app"
        project_dir.mkdir(parents=True)
        self.session_path = project_dir / "abc.jsonl"
        self.corrections = PathCorrections(base / "corrections.json")

    def _append(self, *lines: str) -> None:
        with self.session_path.open("a", encoding="utf-8") as handle:
            for line in lines:
                handle.write(line + "\n")

    def _pipeline(self, *, backfill: bool = True, recent_limit: int = 10) -> ToolStreamPipeline:
        monitor = FileMonitor(self.root, debounce_ms=50, corrections=self.corrections)
        return ToolStreamPipeline(
            monitor,
            CorrelationEngine(),
            broadcaster=EventBroadcaster(queue_size=100),
            corrections=self.corrections,
            recent_limit=recent_limit,
            backfill=backfill,
        )

    def test_injected_empty_corrections_are_kept(self) -> None:
        self.assertEqual(len(self.corrections), 0)
        pipeline = self._pipeline()

        self.assertIs(pipeline.corrections, self.corrections)
        self.assertIs(pipeline.monitor.corrections, self.corrections)

    def test_injected_empty_registry_is_kept(self) -> None:
        registry = DecoderRegistry()
        self.assertIs(CorrelationEngine(registry).registry, registry)
        self.assertIs(LogTransformer(registry).registry, registry)

    async def test_backfill_records_without_broadcasting_entries(self) -> None:
        self._append(_call_line("c1", "toolu_1", "ls"), _result_line("r1", "toolu_1", "a.txt"))
        pipeline = self._pipeline()
        queue = pipeline.broadcaster.subscribe()

        await pipeline.start()
        try:
            records = pipeline.recent_records()
            self.assertEqual(len(records), 1)
            self.assertEqual(records[0].toolType, "bash")
            self.assertEqual(records[0].results.output, "a.txt")

            event_types = [e["event"] for e in _drain(queue)]
            self.assertNotIn(ENTRY, event_types)
            self.assertIn(TOOL_COMPLETED, event_types)
            self.assertIn(SESSION_NEW, event_types)
        finally:
            await pipeline.stop()

    async def test_live_entries_are_broadcast_and_correlated(self) -> None:
        pipeline = self._pipeline(backfill=False)
        queue = pipeline.broadcaster.subscribe()

        await pipeline.start()
        try:
            _drain(queue)
            self._append(_call_line("c2", "toolu_2", "pwd"), _result_line("r2", "toolu_2", "/repo"))
            await pipeline.monitor.handle_file_changed(self.session_path)

            events = _drain(queue)
            self.assertEqual([e["event"] for e in events if e["event"] == ENTRY], [ENTRY, ENTRY])
            completed = [e for e in events if e["event"] == TOOL_COMPLETED]
            self.assertEqual(len(completed), 1)
            self.assertEqual(completed[0]["data"]["toolId"], "toolu_2")
            self.assertEqual(completed[0]["data"]["record"]["toolType"], "bash")
            self.assertEqual(completed[0]["data"]["duration"], 1000)

            status = pipeline.status()
            self.assertTrue(status["running"])
            self.assertEqual(status["entriesSeen"], 2)
            self.assertEqual(status["recordsEmitted"], 1)
            self.assertEqual(status["subscribers"], 1)
        finally:
            await pipeline.stop()

        self.assertFalse(pipeline.is_running)
        self.assertFalse(pipeline.monitor.is_watching)
        self.assertFalse(pipeline.engine.is_running)

    async def test_recent_records_are_bounded_and_filterable(self) -> None:
        for index in range(4):
            self._append(
                _call_line(f"c{index}", f"toolu_{index}", f"echo {index}"),
                _result_line(f"r{index}", f"toolu_{index}", str(index)),
            )
        pipeline = self._pipeline(recent_limit=3)

        await pipeline.start()
        try:
            records = pipeline.recent_records()
            self.assertEqual([r.id for r in records], ["toolu_3", "toolu_2", "toolu_1"])
            self.assertEqual(len(pipeline.recent_records(limit=1)), 1)
            self.assertEqual(pipeline.recent_records(tool_type="read"), [])
        finally:
            await pipeline.stop()

    async def test_redundant_start_and_stop_warn(self) -> None:
        pipeline = self._pipeline(backfill=False)
        with self.assertLogs("toolstream.pipeline", level="WARNING"):
            await pipeline.stop()

        await pipeline.start()
        try:
            with self.assertLogs("toolstream.pipeline", level="WARNING"):
                await pipeline.start()
        finally:
            await pipeline.stop()


class EventBroadcasterTests(unittest.IsolatedAsyncioTestCase):
    async def test_full_queue_drops_oldest_event(self) -> None:
        broadcaster = EventBroadcaster(queue_size=2)
        queue = broadcaster.subscribe()
        for index in range(3):
            broadcaster.publish("entry", {"n": index})

        self.assertEqual([e["data"]["n"] for e in _drain(queue)], [1, 2])

    async def test_unsubscribed_queue_receives_nothing(self) -> None:
        broadcaster = EventBroadcaster()
        queue = broadcaster.subscribe()
        broadcaster.unsubscribe(queue)
        broadcaster.publish("entry", {})

        self.assertTrue(queue.empty())
        self.assertEqual(broadcaster.subscriber_count, 0)


if __name__ == "__main__":
    unittest.main()
