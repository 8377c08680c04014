import json
import logging
import unittest

from purchasing import create_app
from purchasing.config import Config
from purchasing.core import reset_event_bus_for_tests
from purchasing.db import close_db
from purchasing.observability import JsonLogFormatter, reset_metrics_for_tests, set_log_request_id
from tests.helpers.temp_db import TempDbSandbox


class ObservabilityTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_event_bus_for_tests()
        self._temp_db = TempDbSandbox(prefix="observability_metrics")
        self.app = create_app(self._temp_db.make_config(Config))
        self.client = self.app.test_client()
        reset_metrics_for_tests()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()
        reset_metrics_for_tests()
        reset_event_bus_for_tests()

    def test_metrics_endpoint_exposes_prometheus_text(self) -> None:
        self.client.post(
            "/api/purchase-requests/service",
            headers={"X-Tenant-Id": "tenant-metrics"},
            json={"service_category_id": 1, "description": "Audit", "quantity": 1, "required_date": "2026-12-01"},
        )
        self.client.post("/api/purchase-requests/999/close", headers={"X-Tenant-Id": "tenant-metrics"})

        response = self.client.get("/metrics")
        self.assertEqual(response.status_code, 200)
        self.assertIn("text/plain", response.headers.get("Content-Type") or "")

        payload = response.get_data(as_text=True)
        self.assertIn("http_request_total", payload)
        self.assertIn("http_request_errors_total", payload)
        self.assertIn('domain_event_emitted_total{event_type="PurchaseRequestCreated"} 1', payload)
        self.assertIn('purchase_request_operation_total{operation="create",outcome="ok"} 1', payload)
        self.assertIn("purchase_request_save_conflict_total 0", payload)

    def test_responses_carry_timing_and_request_id(self) -> None:
        response = self.client.get("/health")

        self.assertTrue(response.headers.get("X-Request-Id"))
        self.assertIn("X-Response-Time-Ms", response.headers)

    def test_log_formatter_includes_request_id_outside_request_context(self) -> None:
        set_log_request_id("worker-req-123")
        formatter = JsonLogFormatter()
        record = logging.LogRecord(
            name="purchasing",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="purchase_request_saved",
            args=(),
            exc_info=None,
        )
        record.purchase_request_id = 7

        parsed = json.loads(formatter.format(record))

        self.assertEqual(parsed.get("request_id"), "worker-req-123")
        self.assertEqual(parsed.get("message"), "purchase_request_saved")
        self.assertEqual(parsed.get("purchase_request_id"), 7)
        self.assertEqual(parsed.get("level"), "info")


if __name__ == "__main__":
    unittest.main()
