import sqlite3
import unittest
from datetime import date, datetime, timezone
from decimal import Decimal

from purchasing.contexts.procurement.domain import PurchaseRequest, PurchaseRequestStatus, RfqItemStatus
from purchasing.contexts.procurement.infrastructure.repositories import (
    PurchaseRequestRepository,
    StaleAggregateError,
    StatusEventRepository,
)
from purchasing.infrastructure.repositories.base import TenantScopeRequiredError
from tests.helpers.temp_db import TempDbSandbox


def _fixed_clock():
    return datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def _material_request() -> PurchaseRequest:
    return PurchaseRequest.create(
        kind="material",
        material_id=12,
        project_id=4,
        description="Copper cable 4mm",
        quantity="150.50",
        uom="m",
        required_date="2026-05-15",
        created_by="buyer@example.com",
        clock=_fixed_clock,
    )


class PurchaseRequestRepositoryTest(unittest.TestCase):
    def setUp(self) -> None:
        self.sandbox = TempDbSandbox(prefix="purchasing_repo_tests")
        self.db = self.sandbox.connect()
        self.repository = PurchaseRequestRepository(tenant_id="tenant-a")

    def tearDown(self) -> None:
        self.db.close()
        self.sandbox.cleanup()

    def test_add_assigns_identity_and_request_number(self) -> None:
        first = _material_request()
        second = _material_request()

        first_id = self.repository.add(self.db, first, prefix="PR")
        self.repository.add(self.db, second, prefix="PR")
        self.db.commit()

        self.assertEqual(first.id, first_id)
        self.assertEqual(first.request_number, "PR-2026-000001")
        self.assertEqual(second.request_number, "PR-2026-000002")
        self.assertEqual(first.version, 1)

    def test_round_trip_keeps_items_and_decimals(self) -> None:
        aggregate = _material_request()
        aggregate.send_rfq()
        item_id = aggregate.add_rfq_item(10, vendor_offering_id=77)
        silent_id = aggregate.add_rfq_item(20)
        aggregate.record_rfq_reply(item_id, price="1234.56", lead_time=9, notes="FOB")
        aggregate.mark_rfq_no_response(silent_id)
        self.repository.add(self.db, aggregate)
        self.db.commit()

        loaded = self.repository.load(self.db, aggregate.id)

        self.assertEqual(loaded.status, PurchaseRequestStatus.RFQ_SENT)
        self.assertEqual(loaded.quantity, Decimal("150.50"))
        self.assertEqual(loaded.required_date, date(2026, 5, 15))
        self.assertEqual(loaded.project_id, 4)
        self.assertEqual(loaded.created_at, _fixed_clock())
        self.assertEqual([item.item_id for item in loaded.rfq_items], [item_id, silent_id])
        replied = loaded.get_rfq_item_by_id(item_id)
        self.assertEqual(replied.status, RfqItemStatus.REPLIED)
        self.assertEqual(replied.quoted_price, Decimal("1234.56"))
        self.assertEqual(replied.quoted_lead_time, 9)
        self.assertEqual(replied.vendor_offering_id, 77)
        self.assertEqual(replied.notes, "FOB")
        self.assertEqual(replied.replied_at, _fixed_clock())
        self.assertEqual(loaded.get_rfq_item_by_id(silent_id).status, RfqItemStatus.NO_RESPONSE)

    def test_save_bumps_version_and_persists_changes(self) -> None:
        aggregate = _material_request()
        self.repository.add(self.db, aggregate)
        self.db.commit()

        loaded = self.repository.load(self.db, aggregate.id)
        loaded.send_rfq()
        loaded.add_rfq_item(10)
        new_version = self.repository.save(self.db, loaded)
        self.db.commit()

        self.assertEqual(new_version, 2)
        reloaded = self.repository.load(self.db, aggregate.id)
        self.assertEqual(reloaded.version, 2)
        self.assertEqual(reloaded.status, PurchaseRequestStatus.RFQ_SENT)
        self.assertEqual(len(reloaded.rfq_items), 1)

    def test_stale_version_is_rejected(self) -> None:
        aggregate = _material_request()
        self.repository.add(self.db, aggregate)
        self.db.commit()

        first = self.repository.load(self.db, aggregate.id)
        second = self.repository.load(self.db, aggregate.id)
        first.send_rfq()
        self.repository.save(self.db, first)
        self.db.commit()

        second.cancel()
        with self.assertRaises(StaleAggregateError):
            self.repository.save(self.db, second)
        self.db.rollback()

        stored = self.repository.load(self.db, aggregate.id)
        self.assertEqual(stored.status, PurchaseRequestStatus.RFQ_SENT)

    def test_tenants_do_not_see_each_other(self) -> None:
        aggregate = _material_request()
        self.repository.add(self.db, aggregate)
        self.db.commit()

        other = PurchaseRequestRepository(tenant_id="tenant-b")

        self.assertIsNone(other.load(self.db, aggregate.id))
        self.assertEqual(other.list_summary(self.db), [])
        self.assertEqual(other.next_request_number(self.db, prefix="PR", year=2026), "PR-2026-000001")

        loaded = self.repository.load(self.db, aggregate.id)
        loaded.cancel()
        foreign_save = PurchaseRequestRepository(tenant_id="tenant-b")
        with self.assertRaises(StaleAggregateError):
            foreign_save.save(self.db, loaded)
        self.db.rollback()

    def test_list_summary_filters_by_status(self) -> None:
        draft = _material_request()
        sent = _material_request()
        sent.send_rfq()
        sent.add_rfq_item(5)
        self.repository.add(self.db, draft)
        self.repository.add(self.db, sent)
        self.db.commit()

        everything = self.repository.list_summary(self.db)
        only_sent = self.repository.list_summary(self.db, status="rfq_sent")

        self.assertEqual([row["id"] for row in everything], [sent.id, draft.id])
        self.assertEqual(len(only_sent), 1)
        self.assertEqual(only_sent[0]["request_number"], sent.request_number)
        self.assertEqual(only_sent[0]["rfq_items_total"], 1)
        self.assertEqual(only_sent[0]["quantity"], "150.50")
        self.assertEqual(self.repository.count(self.db), 2)

    def test_schema_allows_one_selected_item_per_request(self) -> None:
        aggregate = _material_request()
        aggregate.send_rfq()
        first = aggregate.add_rfq_item(10)
        second = aggregate.add_rfq_item(20)
        aggregate.record_rfq_reply(first, price="10")
        aggregate.record_rfq_reply(second, price="12")
        aggregate.select_vendor(first)
        self.repository.add(self.db, aggregate)
        self.db.commit()

        with self.assertRaises(sqlite3.IntegrityError):
            self.db.execute(
                "UPDATE rfq_items SET status = 'selected' WHERE purchase_request_id = ? AND item_id = ?",
                (aggregate.id, second),
            )
        self.db.rollback()

        loaded = self.repository.load(self.db, aggregate.id)
        self.assertEqual(loaded.get_selected_rfq_item().item_id, first)

    def test_repository_requires_tenant(self) -> None:
        with self.assertRaises(TenantScopeRequiredError):
            PurchaseRequestRepository(tenant_id="  ")


class StatusEventRepositoryTest(unittest.TestCase):
    def setUp(self) -> None:
        self.sandbox = TempDbSandbox(prefix="purchasing_events_tests")
        self.db = self.sandbox.connect()

    def tearDown(self) -> None:
        self.db.close()
        self.sandbox.cleanup()

    def test_changes_are_written_newest_first(self) -> None:
        repository = PurchaseRequestRepository(tenant_id="tenant-a")
        events = StatusEventRepository(tenant_id="tenant-a")
        aggregate = _material_request()
        repository.add(self.db, aggregate)
        aggregate.send_rfq()
        item_id = aggregate.add_rfq_item(10)

        written = events.add_changes(self.db, aggregate.id, aggregate.pull_status_changes())
        self.db.commit()

        history = events.list_for_entity(self.db, entity_id=aggregate.id)
        self.assertEqual(written, 2)
        self.assertEqual(history[0]["operation"], "add_rfq_item")
        self.assertEqual(history[0]["rfq_item_id"], item_id)
        self.assertEqual(history[1]["to_status"], "rfq_sent")
        self.assertEqual(
            StatusEventRepository(tenant_id="tenant-b").list_for_entity(self.db, entity_id=aggregate.id),
            [],
        )
        only_header = events.list_for_entity(self.db, entity_id=aggregate.id, entity="purchase_request")
        self.assertEqual(len(only_header), 1)
