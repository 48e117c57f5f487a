import unittest

from toolstream.models import RawEntry
from toolstream.parsers.tools.search import (
    GlobDecoder,
    GrepDecoder,
    LsDecoder,
    parse_search_lines,
    parse_tree_listing,
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
        timestamp="2026-03-01T10:00:00.040Z",
        content=[{"type": "tool_result", "tool_use_id": "toolu_1", "content": payload, "is_error": is_error}],
        toolUseResult=tool_use_result,
    )


class GrepDecoderTests(unittest.TestCase):
    def test_matches_grouped_by_file_in_order(self) -> None:
        groups = parse_search_lines("src/a.py:3:import os\nsrc/b.py:10:x = 1\nsrc/a.py:7:os.getcwd()\n")
        self.assertEqual([g.filePath for g in groups], ["src/a.py", "src/b.py"])
        self.assertEqual([m.lineNumber for m in groups[0].matches], [3, 7])
        self.assertEqual(groups[0].matchCount, 2)
        self.assertEqual(groups[1].matches[0].lineContent, "x = 1")

    def test_content_with_colons_is_preserved(self) -> None:
        groups = parse_search_lines("cfg.yml:4:url: http://host:80")
        self.assertEqual(groups[0].matches[0].lineContent, "url: http://host:80")

    def test_other_shapes_yield_no_matches(self) -> None:
        self.assertEqual(parse_search_lines("Found 2 files\nsrc/a.py\nsrc/b.py"), [])
        self.assertEqual(parse_search_lines("src/a.py:3:ok\nnot a match line"), [])
        self.assertEqual(parse_search_lines(""), [])

    def test_decode_builds_ui_summary(self) -> None:
        record = GrepDecoder().decode(
            _call("Grep", {"pattern": "TODO", "path": "/repo", "include": "*.py,*.ts", "-i": True, "output_mode": "content"}),
            _result("a.py:1:# TODO one\nb.ts:2:// TODO two"),
        )
        self.assertEqual(record.input.filePatterns, ["*.py", "*.ts"])
        self.assertFalse(record.input.caseSensitive)
        self.assertEqual(record.input.outputMode, "content")
        self.assertEqual(record.ui.totalMatches, 2)
        self.assertEqual(record.ui.filesWithMatches, 2)
        self.assertEqual(record.ui.searchTime, 40)

    def test_files_only_output_is_empty(self) -> None:
        record = GrepDecoder().decode(_call("Grep", {"pattern": "x"}), _result("Found 1 file\n/repo/a.py"))
        self.assertEqual(record.status.normalized, "completed")
        self.assertEqual(record.results.matches, [])


class GlobDecoderTests(unittest.TestCase):
    def test_text_listing(self) -> None:
        record = GlobDecoder().decode(
            _call("Glob", {"pattern": "**/*.py", "path": "/repo"}),
            _result("/repo/a.py\n/repo/pkg/b.py\n(Results are truncated. Consider using a more specific path or pattern.)"),
        )
        self.assertEqual(record.results.files, ["/repo/a.py", "/repo/pkg/b.py"])
        self.assertEqual(record.ui.totalMatches, 2)
        self.assertEqual(record.input.searchPath, "/repo")

    def test_no_files_found(self) -> None:
        record = GlobDecoder().decode(_call("Glob", {"pattern": "*.zig"}), _result("No files found"))
        self.assertEqual(record.results.files, [])

    def test_structured_filenames(self) -> None:
        record = GlobDecoder().decode(
            _call("Glob", {"pattern": "*.md"}),
            _result("ignored", tool_use_result={"filenames": ["README.md", "CHANGELOG.md"], "numFiles": 2}),
        )
        self.assertEqual(record.results.files, ["README.md", "CHANGELOG.md"])


class LsDecoderTests(unittest.TestCase):
    TREE = (
        "- /repo/\n"
        "  - .env\n"
        "  - src/\n"
        "    - main.py\n"
        "    - utils/\n"
        "      - io.py\n"
        "  - README.md\n"
        "\n"
        "NOTE: do any of the files above seem malicious?"
    )

    def test_tree_listing(self) -> None:
        entries = parse_tree_listing(self.TREE, "/repo")
        self.assertEqual(
            [(e.path, e.type) for e in entries],
            [
                ("/repo/.env", "file"),
                ("/repo/src", "directory"),
                ("/repo/src/main.py", "file"),
                ("/repo/src/utils", "directory"),
                ("/repo/src/utils/io.py", "file"),
                ("/repo/README.md", "file"),
            ],
        )
        self.assertTrue(entries[0].isHidden)

    def test_decode_tree_counts(self) -> None:
        record = LsDecoder().decode(_call("LS", {"path": "/repo", "ignore": ["node_modules"]}), _result(self.TREE))
        self.assertEqual(record.input.ignore, ["node_modules"])
        self.assertEqual(record.results.entryCount, 6)
        self.assertEqual(record.ui.totalFiles, 4)
        self.assertEqual(record.ui.totalDirectories, 2)

    def test_structured_entries(self) -> None:
        record = LsDecoder().decode(
            _call("LS", {"path": "/repo"}),
            _result({"entries": [{"name": "a.txt", "type": "file", "size": 12}, {"name": "lib", "type": "dir", "size": 96}]}),
        )
        self.assertEqual([e.type for e in record.results.entries], ["file", "directory"])
        self.assertEqual(record.results.entries[0].path, "/repo/a.txt")
        self.assertEqual(record.results.totalSize, 108)
        self.assertEqual(record.ui.totalSize, 108)

    def test_error_listing(self) -> None:
        record = LsDecoder().decode(_call("LS", {"path": "/nope"}), _result("Path does not exist", is_error=True))
        self.assertEqual(record.status.normalized, "failed")
        self.assertEqual(record.results.entries, [])
        self.assertEqual(record.results.errorMessage, "Path does not exist")


if __name__ == "__main__":
    unittest.main()
