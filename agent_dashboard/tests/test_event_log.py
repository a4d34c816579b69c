import json
import tempfile
import unittest
from pathlib import Path

from agent_dashboard.parsers.event_log import (
    MessageRecord,
    SystemRecord,
    ToolResultRecord,
    UnknownRecord,
    classify_record,
    read_head,
    read_tail,
)


class EventLogReaderTests(unittest.TestCase):
    def _write_lines(self, lines: list[str]) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "session.jsonl"
        path.write_text("\n".join(lines), encoding="utf-8")
        return path

    def test_tail_skips_corrupt_lines_and_keeps_last_records(self) -> None:
        path = self._write_lines([
            json.dumps({"id": 1}),
            "not json at all",
            json.dumps({"id": 2}),
            "[1, 2, 3]",
            "",
            json.dumps({"id": 3}),
            '{"id": 4, "truncated',
        ])

        self.assertEqual([r["id"] for r in read_tail(path, 2)], [2, 3])
        self.assertEqual([r["id"] for r in read_tail(path)], [1, 2, 3])

    def test_head_returns_first_well_formed_records(self) -> None:
        path = self._write_lines(["{bad", json.dumps({"id": 1}), json.dumps({"id": 2}), json.dumps({"id": 3})])
        self.assertEqual([r["id"] for r in read_head(path, 2)], [1, 2])

    def test_missing_empty_and_directory_paths_yield_nothing(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        root = Path(tmpdir.name)
        empty = root / "empty.jsonl"
        empty.write_text("", encoding="utf-8")

        self.assertEqual(read_tail(root / "missing.jsonl", 10), [])
        self.assertEqual(read_tail(empty, 10), [])
        self.assertEqual(read_tail(root, 10), [])
        self.assertEqual(read_tail(None), [])
        self.assertEqual(read_head(root / "missing.jsonl", 5), [])

    def test_reading_does_not_modify_the_log(self) -> None:
        path = self._write_lines([json.dumps({"id": 1}), "garbage"])
        before = path.read_bytes()
        read_tail(path, 1)
        read_head(path, 1)
        self.assertEqual(path.read_bytes(), before)


class ClassifyRecordTests(unittest.TestCase):
    def test_message_record_collects_text_and_tool_calls(self) -> None:
        record = classify_record({
            "type": "message",
            "timestamp": "2026-02-16T10:00:00Z",
            "message": {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "Looking it up."},
                    {"type": "toolCall", "name": "search", "arguments": {"q": "x"}},
                    {"type": "tool_use", "name": "read"},
                    {"type": "thinking", "thinking": "hmm"},
                ],
            },
        })
        self.assertIsInstance(record, MessageRecord)
        assert isinstance(record, MessageRecord)
        self.assertEqual(record.role, "assistant")
        self.assertEqual(record.text(), "Looking it up.")
        self.assertEqual([p.name for p in record.tool_calls()], ["search", "read"])

    def test_string_content_is_a_single_text_part(self) -> None:
        record = classify_record({"type": "message", "message": {"role": "user", "content": "hello there"}})
        assert isinstance(record, MessageRecord)
        self.assertEqual(record.text(), "hello there")

    def test_tool_result_variants(self) -> None:
        by_role = classify_record({"type": "message", "message": {"role": "toolResult", "toolName": "exec"}})
        by_type = classify_record({"type": "tool_result", "name": "exec"})
        by_parts = classify_record({
            "type": "message",
            "message": {"role": "user", "content": [{"type": "tool_result", "tool_use_id": "t1"}]},
        })
        self.assertIsInstance(by_role, ToolResultRecord)
        self.assertEqual(by_role.tool_name, "exec")
        self.assertIsInstance(by_type, ToolResultRecord)
        self.assertIsInstance(by_parts, ToolResultRecord)

    def test_system_and_unknown_records(self) -> None:
        system = classify_record({"type": "system", "content": "You are **Scout**"})
        unknown = classify_record({"type": "model_change", "timestamp": "2026-02-16T10:00:00Z"})
        self.assertIsInstance(system, SystemRecord)
        self.assertEqual(system.text, "You are **Scout**")
        self.assertIsInstance(unknown, UnknownRecord)
        self.assertEqual(unknown.kind, "unknown")
        self.assertEqual(unknown.type, "model_change")


if __name__ == "__main__":
    unittest.main()
