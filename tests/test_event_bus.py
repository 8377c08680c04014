import unittest
from datetime import datetime

from purchasing.core import EventBus, PurchaseOrderCreated, PurchaseRequestCreated
from purchasing.observability import metrics_snapshot, reset_metrics_for_tests


def _created_event(**overrides) -> PurchaseRequestCreated:
    fields = {
        "tenant_id": "tenant-a",
        "purchase_request_id": 1,
        "request_number": "PR-2026-000001",
        "kind": "service",
    }
    fields.update(overrides)
    return PurchaseRequestCreated(**fields)


class EventBusTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()

    def test_handler_execution_order_is_predictable(self) -> None:
        bus = EventBus()
        execution_trace = []

        bus.subscribe(PurchaseRequestCreated, lambda _event: execution_trace.append("first"))
        bus.subscribe(PurchaseRequestCreated, lambda _event: execution_trace.append("second"))
        bus.publish(_created_event())

        self.assertEqual(execution_trace, ["first", "second"])

    def test_handlers_only_receive_their_event_type(self) -> None:
        bus = EventBus()
        received = []
        bus.subscribe(PurchaseOrderCreated, received.append)

        bus.publish(_created_event())

        self.assertEqual(received, [])

    def test_failing_handler_is_logged_and_others_still_run(self) -> None:
        bus = EventBus()
        received = []

        def broken(_event):
            raise RuntimeError("handler exploded")

        bus.subscribe(PurchaseRequestCreated, broken)
        bus.subscribe(PurchaseRequestCreated, received.append)

        with self.assertLogs("purchasing", level="ERROR") as logs:
            bus.publish(_created_event())

        self.assertEqual(len(received), 1)
        self.assertEqual(logs.records[0].getMessage(), "event_handler_failed")
        self.assertEqual(logs.records[0].event_type, "PurchaseRequestCreated")

    def test_event_defaults_are_normalized(self) -> None:
        event = _created_event(occurred_at=datetime(2026, 1, 5, 8, 0))

        self.assertTrue(event.event_id)
        self.assertEqual(event.workspace_id, "tenant-a")
        self.assertIsNotNone(event.occurred_at.tzinfo)

    def test_published_events_are_counted(self) -> None:
        bus = EventBus()
        bus.publish(_created_event())
        bus.publish(_created_event(purchase_request_id=2))

        domain_events = metrics_snapshot()["domain_events"]
        self.assertEqual(domain_events["by_type"], {"PurchaseRequestCreated": 2})
        self.assertEqual(domain_events["emitted_total"], 2)


if __name__ == "__main__":
    unittest.main()
