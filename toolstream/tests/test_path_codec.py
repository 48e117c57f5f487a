import json
import tempfile
import unittest
from pathlib import Path

from toolstream.path_codec import (
    PathCorrections,
    decode_project_path,
    encode_project_path,
    project_from_path,
    read_session_cwd,
    resolve_project_path,
    session_id_from_path,
)


class PathCodecTests(unittest.TestCase):
    def test_encode_escapes_literal_dashes(self) -> None:
        self.assertEqual(encode_project_path("/Users/a-b"), "-Users-a--b")
        self.assertEqual(encode_project_path("/Users/dev/my-app"), "-Users-dev-my--app")

    def test_round_trip_for_absolute_paths(self) -> None:
        samples = [
            "/Users/a.b-c",
            "/home/dev/project",
            "/srv/my-app/sub-dir/x",
            "/tmp/a--b",
            "/",
        ]
        for path in samples:
            with self.subTest(path=path):
                self.assertEqual(decode_project_path(encode_project_path(path)), path)

    def test_decode_leading_dash_is_root(self) -> None:
        self.assertEqual(decode_project_path("-Users-dev-project"), "/Users/dev/project")

    def test_windows_drive_paths(self) -> None:
        self.assertEqual(encode_project_path("C:/work/app"), "C--work-app")
        self.assertEqual(encode_project_path("C:\\work\\app"), "C--work-app")
        self.assertEqual(decode_project_path("C--work-app"), "C:/work/app")

    def test_empty_values(self) -> None:
        self.assertEqual(encode_project_path(""), "")
        self.assertEqual(decode_project_path(""), "")

    def test_session_and_project_from_path(self) -> None:
        path = Path("/logs/-Users-dev-my--app/3f2a.jsonl")
        self.assertEqual(session_id_from_path(path), "3f2a")
        self.assertEqual(project_from_path(path), "/Users/dev/my-app")


class PathCorrectionsTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.storage = Path(tmpdir.name) / "nested" / "corrections.json"

    def test_override_wins_over_decoding(self) -> None:
        corrections = PathCorrections(self.storage)
        corrections.set("-Users-dev-my-app", "/Users/dev/my_app")

        self.assertEqual(resolve_project_path("-Users-dev-my-app", corrections), "/Users/dev/my_app")
        self.assertEqual(resolve_project_path("-Users-dev-other", corrections), "/Users/dev/other")

    def test_mutations_are_persisted_and_reloaded(self) -> None:
        corrections = PathCorrections(self.storage)
        corrections.set("-a", "/a.b")
        corrections.set("-c", "/c_d")
        self.assertTrue(corrections.remove("-c"))
        self.assertFalse(corrections.remove("-missing"))

        self.assertEqual(json.loads(self.storage.read_text(encoding="utf-8")), {"-a": "/a.b"})
        reloaded = PathCorrections(self.storage)
        self.assertEqual(reloaded.all(), {"-a": "/a.b"})
        self.assertIn("-a", reloaded)
        self.assertEqual(len(reloaded), 1)

    def test_set_rejects_empty_values(self) -> None:
        corrections = PathCorrections(self.storage)
        with self.assertRaises(ValueError):
            corrections.set("", "/x")
        with self.assertRaises(ValueError):
            corrections.set("-x", "  ")

    def test_malformed_file_is_ignored(self) -> None:
        self.storage.parent.mkdir(parents=True)
        self.storage.write_text("{not json", encoding="utf-8")
        with self.assertLogs("toolstream.paths", level="ERROR"):
            corrections = PathCorrections(self.storage)
        self.assertEqual(corrections.all(), {})

    def test_non_string_values_are_skipped(self) -> None:
        self.storage.parent.mkdir(parents=True)
        self.storage.write_text(json.dumps({"-ok": "/ok", "-bad": 3}), encoding="utf-8")
        corrections = PathCorrections(self.storage)
        self.assertEqual(corrections.all(), {"-ok": "/ok"})

    def test_failed_write_leaves_table_unchanged(self) -> None:
        blocker = self.storage.parent.parent / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        corrections = PathCorrections(blocker / "corrections.json")

        with self.assertRaises(OSError):
            corrections.set("-a", "/a.b")
        self.assertNotIn("-a", corrections)
        self.assertEqual(corrections.all(), {})

    def test_failed_removal_keeps_entry(self) -> None:
        corrections = PathCorrections(self.storage)
        corrections.set("-a", "/a.b")
        blocker = self.storage.parent / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        corrections.storage_path = blocker / "corrections.json"

        with self.assertRaises(OSError):
            corrections.remove("-a")
        self.assertEqual(corrections.get("-a"), "/a.b")


class SessionCwdTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        # legacy token: the real directory is my_app, decode gives my/app
        self.project_dir = Path(tmpdir.name) / "-Users-dev-my-app"
        self.project_dir.mkdir()
        self.session = self.project_dir / "s1.jsonl"
        self.session.write_text(
            "\n".join(
                [
                    json.dumps({"type": "summary", "summary": "Refactor"}),
                    "{broken",
                    json.dumps({"uuid": "u1", "type": "user", "cwd": "/Users/dev/my_app"}),
                    json.dumps({"uuid": "u2", "type": "user", "cwd": "/Users/dev/my_app/sub"}),
                ]
            )
            + "\n",
            encoding="utf-8",
        )

    def test_first_cwd_in_log_is_used(self) -> None:
        self.assertEqual(read_session_cwd(self.session), "/Users/dev/my_app")
        self.assertEqual(project_from_path(self.session), "/Users/dev/my_app")

    def test_correction_wins_over_logged_cwd(self) -> None:
        corrections = PathCorrections(Path(self.project_dir.parent) / "corrections.json")
        corrections.set("-Users-dev-my-app", "/Users/dev/my-app")
        self.assertEqual(project_from_path(self.session, corrections), "/Users/dev/my-app")

    def test_without_cwd_falls_back_to_decoding(self) -> None:
        self.session.write_text(json.dumps({"uuid": "u1", "type": "user"}) + "\n", encoding="utf-8")
        self.assertIsNone(read_session_cwd(self.session))
        self.assertEqual(project_from_path(self.session), "/Users/dev/my/app")

    def test_cwd_beyond_scan_window_is_ignored(self) -> None:
        lines = [json.dumps({"uuid": f"u{i}", "type": "user"}) for i in range(3)]
        lines.append(json.dumps({"uuid": "late", "type": "user", "cwd": "/late"}))
        self.session.write_text("\n".join(lines) + "\n", encoding="utf-8")
        self.assertIsNone(read_session_cwd(self.session, max_lines=3))

    def test_missing_file_has_no_cwd(self) -> None:
        self.assertIsNone(read_session_cwd(self.project_dir / "gone.jsonl"))


if __name__ == "__main__":
    unittest.main()
