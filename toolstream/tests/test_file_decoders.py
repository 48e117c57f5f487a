import unittest

from toolstream.models import RawEntry
from toolstream.parsers.tools.files import (
    EditDecoder,
    MultiEditDecoder,
    ReadDecoder,
    WriteDecoder,
    generate_diff,
)


def _call(name: str, tool_input: dict) -> RawEntry:
    return RawEntry(
        uuid="call-1",
        type="assistant",
        timestamp="2026-03-01T10:00:00Z",
        content=[{"type": "tool_use", "id": "toolu_1", "name": name, "input": tool_input}],
    )


def _result(payload, *, tool_use_result=None, is_error: bool = False) -> RawEntry:
    return RawEntry(
        uuid="result-1",
        type="user",
        timestamp="2026-03-01T10:00:00.250Z",
        content=[{"type": "tool_result", "tool_use_id": "toolu_1", "content": payload, "is_error": is_error}],
        toolUseResult=tool_use_result,
    )


class ReadDecoderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.decoder = ReadDecoder()

    def test_pending_read(self) -> None:
        record = self.decoder.decode(_call("Read", {"file_path": "/repo/app.py"}))
        self.assertEqual(record.status.normalized, "pending")
        self.assertEqual(record.input.filePath, "/repo/app.py")
        self.assertEqual(record.results.content, "")
        self.assertEqual(record.ui.fileType, "python")

    def test_structured_file_info_marks_truncation(self) -> None:
        record = self.decoder.decode(
            _call("Read", {"file_path": "/repo/README.md", "limit": 2}),
            _result(
                "line one\nline two",
                tool_use_result={"type": "text", "file": {"content": "line one\nline two", "numLines": 2, "totalLines": 40}},
            ),
        )
        self.assertEqual(record.status.normalized, "completed")
        self.assertEqual(record.results.totalLines, 40)
        self.assertTrue(record.results.truncated)
        self.assertEqual(record.results.fileSize, len("line one\nline two"))
        self.assertEqual(record.ui.fileType, "markdown")
        self.assertEqual(record.ui.lineCount, 2)
        self.assertEqual(record.duration, 250)

    def test_full_read_is_not_truncated(self) -> None:
        record = self.decoder.decode(_call("Read", {"file_path": "/repo/a.txt"}), _result("a\nb\nc"))
        self.assertEqual(record.results.totalLines, 3)
        self.assertFalse(record.results.truncated)

    def test_error_message_kept_verbatim(self) -> None:
        record = self.decoder.decode(
            _call("Read", {"file_path": "/missing"}),
            _result("File does not exist.", is_error=True),
        )
        self.assertEqual(record.status.normalized, "failed")
        self.assertEqual(record.results.errorMessage, "File does not exist.")
        self.assertEqual(record.status.details["errorMessage"], "File does not exist.")


class WriteDecoderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.decoder = WriteDecoder()

    def test_created_and_overwritten_phrases(self) -> None:
        created = self.decoder.decode(
            _call("Write", {"file_path": "/repo/notes.md", "content": "# Notes\n"}),
            _result("File created successfully at: /repo/notes.md"),
        )
        self.assertTrue(created.results.created)
        self.assertFalse(created.results.overwritten)
        self.assertEqual(created.ui.fileType, "markdown")

        updated = self.decoder.decode(
            _call("Write", {"file_path": "/repo/notes.md", "content": "x"}),
            _result("The file /repo/notes.md has been updated successfully."),
        )
        self.assertFalse(updated.results.created)
        self.assertTrue(updated.results.overwritten)

    def test_missing_path_is_empty_string(self) -> None:
        record = self.decoder.decode(_call("Write", {"content": "x"}))
        self.assertEqual(record.input.filePath, "")
        self.assertEqual(record.ui.fileType, "plaintext")

    def test_structured_update_kind(self) -> None:
        record = self.decoder.decode(
            _call("Write", {"file_path": "/repo/a.py", "content": "x = 1\n"}),
            _result("ok", tool_use_result={"type": "update", "filePath": "/repo/a.py"}),
        )
        self.assertTrue(record.results.overwritten)


class EditDecoderTests(unittest.TestCase):
    def test_diff_lines(self) -> None:
        diff = generate_diff("a\nb\nc", "a\nB\nc\nd")
        self.assertEqual(
            [(d.type, d.content) for d in diff],
            [("unchanged", "a"), ("removed", "b"), ("added", "B"), ("unchanged", "c"), ("added", "d")],
        )
        self.assertEqual(diff[1].oldLineNumber, 2)
        self.assertEqual(diff[4].newLineNumber, 4)

    def test_completed_edit_counts_changes(self) -> None:
        record = EditDecoder().decode(
            _call("Edit", {"file_path": "/repo/app.ts", "old_string": "let x = 1;", "new_string": "const x = 1;\nexport { x };"}),
            _result("The file /repo/app.ts has been updated."),
        )
        self.assertEqual(record.toolType, "edit")
        self.assertEqual(record.ui.fileType, "typescript")
        self.assertEqual(record.ui.addedLines, 2)
        self.assertEqual(record.ui.removedLines, 1)
        self.assertEqual(record.results.message, "The file /repo/app.ts has been updated.")

    def test_pending_edit_has_no_diff(self) -> None:
        record = EditDecoder().decode(_call("Edit", {"file_path": "/a", "old_string": "x", "new_string": "y"}))
        self.assertEqual(record.results.diff, [])


class MultiEditDecoderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.decoder = MultiEditDecoder()
        self.call = _call(
            "MultiEdit",
            {
                "file_path": "/repo/main.go",
                "edits": [
                    {"old_string": "a", "new_string": "b"},
                    {"old_string": "c", "new_string": "d", "replace_all": True},
                ],
            },
        )

    def test_applied_count_from_message(self) -> None:
        record = self.decoder.decode(self.call, _result("Applied 2 edits to /repo/main.go:\n1. Replaced \"a\" with \"b\""))
        self.assertEqual(record.results.editsApplied, 2)
        self.assertEqual(record.results.totalEdits, 2)
        self.assertTrue(record.results.allSuccessful)
        self.assertEqual(len(record.results.editDetails), 2)
        self.assertTrue(record.input.edits[1].replaceAll)
        self.assertEqual(record.ui.successfulEdits, 2)
        self.assertEqual(record.ui.failedEdits, 0)
        self.assertEqual(record.ui.changeSummary, "Applied 2 edits to /repo/main.go:")
        self.assertEqual(record.ui.fileType, "go")

    def test_structured_details(self) -> None:
        record = self.decoder.decode(
            self.call,
            _result(
                {
                    "editDetails": [
                        {"index": 0, "success": True, "replacementsMade": 1},
                        {"index": 1, "success": False, "error": "String not found"},
                    ]
                }
            ),
        )
        self.assertEqual(record.results.editsApplied, 1)
        self.assertFalse(record.results.allSuccessful)
        self.assertEqual(record.results.editDetails[1].error, "String not found")
        self.assertEqual(record.ui.failedEdits, 1)

    def test_failed_multi_edit(self) -> None:
        record = self.decoder.decode(self.call, _result({"error": "File has been modified since read"}, is_error=True))
        self.assertEqual(record.status.normalized, "failed")
        self.assertEqual(record.results.errorMessage, "File has been modified since read")
        self.assertEqual(record.results.totalEdits, 2)


if __name__ == "__main__":
    unittest.main()
