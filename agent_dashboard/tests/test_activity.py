import unittest

from agent_dashboard.date_utils import normalize_timestamp
from agent_dashboard.parsers.activity import extract_activity
from agent_dashboard.parsers.text_filters import clean_user_text, is_noise


def _msg(role: str, content, ts: str = "2026-02-16T10:00:00Z") -> dict:
    return {"type": "message", "timestamp": ts, "message": {"role": role, "content": content}}


def _text(role: str, text: str, ts: str = "2026-02-16T10:00:00Z") -> dict:
    return _msg(role, [{"type": "text", "text": text}], ts)


def _tool_call(name: str, ts: str = "2026-02-16T10:00:00Z") -> dict:
    return _msg("assistant", [{"type": "toolCall", "id": f"call-{name}", "name": name, "arguments": {}}], ts)


class TextFilterTests(unittest.TestCase):
    def test_metadata_preamble_keeps_text_after_last_fence(self) -> None:
        raw = (
            "Conversation info (untrusted metadata):\n```json\n{\"message_id\": \"1\"}\n```\n\n"
            "Sender (untrusted metadata):\n```json\n{\"name\": \"ana\"}\n```\n\n"
            "<@123456> deploy the staging app"
        )
        self.assertEqual(clean_user_text(raw), "deploy the staging app")

    def test_subagent_header_line_is_removed(self) -> None:
        raw = "[Subagent Context] You are running as a subagent.\nFind the bug in the parser"
        self.assertEqual(clean_user_text(raw), "Find the bug in the parser")

    def test_leading_timestamp_is_removed(self) -> None:
        self.assertEqual(clean_user_text("[Mon 2026-02-16 10:00 UTC] check the logs"), "check the logs")
        self.assertEqual(clean_user_text("no timestamp here"), "no timestamp here")

    def test_noise_prefixes(self) -> None:
        self.assertTrue(is_noise("System: heartbeat ok"))
        self.assertTrue(is_noise('{"event": "cron"}'))
        self.assertTrue(is_noise("[Subagent Task] internal"))
        self.assertFalse(is_noise("please review PR 12"))


class ActivityExtractorTests(unittest.TestCase):
    def test_last_messages_win(self) -> None:
        window = [
            _text("user", "first question", "2026-02-16T10:00:00Z"),
            _text("assistant", "first answer", "2026-02-16T10:00:05Z"),
            _text("user", "second question", "2026-02-16T10:01:00Z"),
            _text("assistant", "second answer", "2026-02-16T10:01:05Z"),
        ]
        activity = extract_activity(window)

        self.assertEqual(activity.lastUserMsg.text, "second question")
        self.assertEqual(activity.lastUserMsg.timestamp, "2026-02-16T10:01:00.000Z")
        self.assertEqual(activity.lastAssistantMsg.text, "second answer")
        self.assertEqual(activity.currentTask, "second question")
        self.assertFalse(activity.isThinking)

    def test_long_texts_are_truncated(self) -> None:
        activity = extract_activity([_text("user", "u" * 500), _text("assistant", "a" * 500)])
        self.assertEqual(len(activity.lastUserMsg.text), 300)
        self.assertEqual(len(activity.currentTask), 400)
        self.assertEqual(len(activity.lastAssistantMsg.text), 300)

    def test_noise_and_trivial_user_text_do_not_replace_task(self) -> None:
        window = [
            _text("user", "summarize the quarterly report"),
            _text("user", "System: heartbeat"),
            _text("user", "ok"),
            _text("user", '{"kind": "cron"}'),
        ]
        activity = extract_activity(window)
        self.assertEqual(activity.lastUserMsg.text, "summarize the quarterly report")

    def test_recent_tool_calls_newest_first(self) -> None:
        window = [
            _tool_call("read", "2026-02-16T10:00:00Z"),
            _tool_call("write", "2026-02-16T10:00:01Z"),
            _msg("assistant", [
                {"type": "text", "text": "running checks"},
                {"type": "toolCall", "name": "exec"},
                {"type": "toolCall", "name": "search"},
            ], "2026-02-16T10:00:02Z"),
        ]
        activity = extract_activity(window)

        self.assertEqual([t.name for t in activity.recentToolCalls], ["search", "exec", "write"])
        self.assertEqual(activity.lastToolCall.name, "search")
        self.assertEqual(activity.lastAssistantMsg.text, "running checks")

    def test_awaiting_response_flag(self) -> None:
        tool_result = {"type": "message", "message": {"role": "toolResult", "toolName": "exec", "content": []}}
        self.assertTrue(extract_activity([_text("user", "do the thing")]).isThinking)
        self.assertTrue(extract_activity([_tool_call("exec"), tool_result]).isThinking)
        self.assertFalse(extract_activity([_text("user", "hi there"), _text("assistant", "hello")]).isThinking)
        self.assertFalse(extract_activity([]).isThinking)
        self.assertFalse(extract_activity([_text("user", "hi there"), {"type": "custom"}]).isThinking)

    def test_created_at_and_role_from_prefix_window(self) -> None:
        prefix = [
            {"type": "session", "timestamp": "2026-02-16T09:59:00Z"},
            _text("system", "You are **Ops Lead**, responsible for releases."),
            _text("user", "You are **Someone Else**"),
        ]
        activity = extract_activity([], prefix)
        self.assertEqual(activity.createdAt, "2026-02-16T09:59:00.000Z")
        self.assertEqual(activity.role, "Ops Lead")

    def test_role_patterns_in_order(self) -> None:
        comma = extract_activity([], [_text("system", "You are Nova, a research assistant.")])
        role_is = extract_activity([], [{"type": "system", "content": "Your role is Release Manager."}])
        from_user = extract_activity([], [_text("user", "[Subagent Task] You are **Scout**. Map the repo.")])
        none = extract_activity([], [_text("user", "hello")])

        self.assertEqual(comma.role, "Nova")
        self.assertEqual(role_is.role, "Release Manager")
        self.assertEqual(from_user.role, "Scout")
        self.assertIsNone(none.role)

    def test_out_of_range_timestamp_only_drops_that_field(self) -> None:
        window = [
            _text("user", "deploy the app"),
            _msg("assistant", [{"type": "text", "text": "ok"}, {"type": "toolCall", "name": "exec"}], 99999999999999999),
        ]
        activity = extract_activity(window)

        self.assertEqual(activity.lastUserMsg.text, "deploy the app")
        self.assertEqual(activity.lastAssistantMsg.text, "ok")
        self.assertIsNone(activity.lastAssistantMsg.timestamp)
        self.assertEqual(activity.lastToolCall.name, "exec")
        self.assertIsNone(normalize_timestamp(float("inf")))
        self.assertIsNone(normalize_timestamp("nan"))

    def test_malformed_input_gives_empty_snapshot(self) -> None:
        activity = extract_activity([None, 5, "x", {"type": "message", "message": "oops"}], None)
        self.assertIsNone(activity.lastUserMsg)
        self.assertIsNone(activity.lastAssistantMsg)
        self.assertIsNone(activity.lastToolCall)
        self.assertEqual(activity.recentToolCalls, [])
        self.assertFalse(activity.isThinking)
        self.assertIsNone(activity.createdAt)


if __name__ == "__main__":
    unittest.main()
