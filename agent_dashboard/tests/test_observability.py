import unittest

from agent_dashboard.observability import otel


class ObservabilityDisabledTests(unittest.TestCase):
    def test_helpers_are_noops_without_backends(self) -> None:
        with otel.start_span("dashboard.refresh", {"trigger": "test", "skipped": None}) as span:
            self.assertIsNone(span)
        otel.record_refresh("test", "ok", 12.5)
        otel.record_parser_failure("sessions_index", store="/tmp/x")
        otel.record_broadcast("sessions", 0)
        otel.record_broadcast("org", 3)

    def test_signal_endpoint(self) -> None:
        self.assertIsNone(otel._signal_endpoint("", "/v1/traces"))
        self.assertEqual(otel._signal_endpoint("http://collector:4318", "/v1/traces"), "http://collector:4318/v1/traces")
        self.assertEqual(otel._signal_endpoint("http://collector:4318/v1/", "/v1/metrics"), "http://collector:4318/v1/metrics")
        self.assertEqual(
            otel._signal_endpoint("http://collector:4318/v1/traces", "/v1/traces"),
            "http://collector:4318/v1/traces",
        )


if __name__ == "__main__":
    unittest.main()
