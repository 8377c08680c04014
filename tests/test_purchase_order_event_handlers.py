import unittest

from purchasing import create_app
from purchasing.config import Config
from purchasing.core import (
    PurchaseOrderCanceled,
    PurchaseOrderCreated,
    PurchaseOrderReceived,
    get_event_bus,
    reset_event_bus_for_tests,
)
from purchasing.db import close_db, get_db
from purchasing.contexts.procurement.application.event_handlers import PurchaseRequestEventHandler
from purchasing.contexts.procurement.application.service import PurchaseRequestService
from purchasing.domain.contracts import PurchaseRequestCreateInput, RfqReplyInput, SendRfqInput
from tests.helpers.temp_db import TempDbSandbox


class _StaleFirstReadService(PurchaseRequestService):
    """Answers the first load with an old snapshot, like a read taken just before another writer."""

    def __init__(self, *, snapshot, **kwargs) -> None:
        super().__init__(**kwargs)
        self._snapshot = snapshot

    def load(self, db, purchase_request_id: int):
        if self._snapshot is not None:
            snapshot, self._snapshot = self._snapshot, None
            return snapshot
        return super().load(db, purchase_request_id)


class PurchaseOrderEventHandlerTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_event_bus_for_tests()
        self.sandbox = TempDbSandbox(prefix="purchasing_handler_tests")
        self.app = create_app(self.sandbox.make_config(Config))
        self.ctx = self.app.app_context()
        self.ctx.push()
        self.service = PurchaseRequestService.from_config(self.app.config, tenant_id="tenant-a")

    def tearDown(self) -> None:
        close_db()
        self.ctx.pop()
        reset_event_bus_for_tests()
        self.sandbox.cleanup()

    def _selected_request(self) -> int:
        db = get_db()
        created = self.service.create(
            db,
            PurchaseRequestCreateInput(
                kind="material",
                material_id=8,
                description="Steel beams",
                quantity="12",
                required_date="2026-09-10",
            ),
        )
        purchase_request_id = created.payload["purchase_request"]["id"]
        self.service.send_rfq(db, purchase_request_id, SendRfqInput(vendor_ids=[10]))
        self.service.record_reply(db, purchase_request_id, RfqReplyInput(item_id=1, price="5000"))
        self.service.select_vendor(db, purchase_request_id, 1)
        return purchase_request_id

    def _status(self, purchase_request_id: int) -> str:
        return self.service.load(get_db(), purchase_request_id).status.value

    def _order_event(self, event_cls, purchase_request_id: int, **overrides):
        fields = {
            "tenant_id": "tenant-a",
            "purchase_order_id": 501,
            "purchase_request_id": purchase_request_id,
            "rfq_item_id": 1,
            "po_number": "PO-501",
        }
        fields.update(overrides)
        return event_cls(**fields)

    def test_order_lifecycle_drives_request(self) -> None:
        purchase_request_id = self._selected_request()
        bus = get_event_bus()

        bus.publish(self._order_event(PurchaseOrderCreated, purchase_request_id))
        self.assertEqual(self._status(purchase_request_id), "ordered")

        bus.publish(self._order_event(PurchaseOrderReceived, purchase_request_id))
        self.assertEqual(self._status(purchase_request_id), "closed")

    def test_canceled_order_reverts_selection(self) -> None:
        purchase_request_id = self._selected_request()
        bus = get_event_bus()
        bus.publish(self._order_event(PurchaseOrderCreated, purchase_request_id))

        bus.publish(self._order_event(PurchaseOrderCanceled, purchase_request_id))

        aggregate = self.service.load(get_db(), purchase_request_id)
        self.assertEqual(aggregate.status.value, "rfq_sent")
        self.assertEqual(aggregate.get_rfq_item_by_id(1).status.value, "replied")

    def test_events_for_wrong_status_are_skipped(self) -> None:
        purchase_request_id = self._selected_request()

        with self.assertLogs("purchasing.procurement", level="INFO") as logs:
            get_event_bus().publish(self._order_event(PurchaseOrderReceived, purchase_request_id))

        self.assertEqual(self._status(purchase_request_id), "vendor_selected")
        self.assertIn("purchase_order_event_skipped", [record.getMessage() for record in logs.records])

    def test_handler_failure_does_not_reach_publisher(self) -> None:
        purchase_request_id = self._selected_request()

        with self.assertLogs("purchasing", level="ERROR") as logs:
            get_event_bus().publish(
                self._order_event(PurchaseOrderCanceled, purchase_request_id, rfq_item_id=99)
            )

        self.assertEqual(self._status(purchase_request_id), "vendor_selected")
        self.assertIn("event_handler_failed", [record.getMessage() for record in logs.records])

    def test_status_change_between_check_and_write_is_skipped(self) -> None:
        purchase_request_id = self._selected_request()
        snapshot = self.service.load(get_db(), purchase_request_id)
        self.service.cancel(get_db(), purchase_request_id)
        handler = PurchaseRequestEventHandler(
            db_provider=get_db,
            service_factory=lambda tenant_id: _StaleFirstReadService(snapshot=snapshot, tenant_id=tenant_id),
        )

        with self.assertLogs("purchasing.procurement", level="INFO") as logs:
            handler.on_purchase_order_created(self._order_event(PurchaseOrderCreated, purchase_request_id))

        self.assertEqual(self._status(purchase_request_id), "canceled")
        skipped = [record for record in logs.records if record.getMessage() == "purchase_order_event_skipped"]
        self.assertEqual(len(skipped), 1)
        self.assertEqual(skipped[0].reason, "invalid_transition")
        self.assertEqual(skipped[0].status, "canceled")
