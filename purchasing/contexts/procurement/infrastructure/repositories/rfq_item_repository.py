from __future__ import annotations

from typing import Iterable

from purchasing.contexts.procurement.domain import RfqItem, RfqItemStatus
from purchasing.contexts.procurement.domain.rfq_item import isoformat_utc
from purchasing.contexts.procurement.infrastructure.repositories.values import (
    decimal_or_none,
    int_or_none,
    parse_datetime,
)
from purchasing.infrastructure.repositories.base import BaseRepository


class RfqItemRepository(BaseRepository):
    def upsert_many(self, db, purchase_request_id: int, items: Iterable[RfqItem]) -> int:
        written = 0
        for position, item in enumerate(items, start=1):
            db.execute(
                """
                INSERT INTO rfq_items (
                    purchase_request_id, item_id, position, vendor_id, vendor_offering_id, status,
                    quoted_price, quoted_lead_time, notes, sent_at, replied_at, tenant_id
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (purchase_request_id, item_id) DO UPDATE SET
                    status = excluded.status,
                    quoted_price = excluded.quoted_price,
                    quoted_lead_time = excluded.quoted_lead_time,
                    notes = excluded.notes,
                    replied_at = excluded.replied_at
                """,
                (
                    purchase_request_id,
                    item.item_id,
                    position,
                    item.vendor_id,
                    item.vendor_offering_id,
                    item.status.value,
                    str(item.quoted_price) if item.quoted_price is not None else None,
                    item.quoted_lead_time,
                    item.notes,
                    isoformat_utc(item.sent_at),
                    isoformat_utc(item.replied_at),
                    self.tenant_id,
                ),
            )
            written += 1
        return written

    def list_for_request(self, db, purchase_request_id: int) -> list[RfqItem]:
        rows = db.execute(
            """
            SELECT item_id, vendor_id, vendor_offering_id, status, quoted_price, quoted_lead_time,
                   notes, sent_at, replied_at
            FROM rfq_items
            WHERE purchase_request_id = ? AND tenant_id = ?
            ORDER BY position ASC, item_id ASC
            """,
            self.scoped_params((purchase_request_id,)),
        ).fetchall()
        return [self._to_item(dict(row)) for row in rows]

    @staticmethod
    def _to_item(row: dict) -> RfqItem:
        return RfqItem(
            item_id=int(row["item_id"]),
            vendor_id=int(row["vendor_id"]),
            status=RfqItemStatus(str(row["status"])),
            vendor_offering_id=int_or_none(row.get("vendor_offering_id")),
            quoted_price=decimal_or_none(row.get("quoted_price")),
            quoted_lead_time=int_or_none(row.get("quoted_lead_time")),
            notes=row.get("notes"),
            sent_at=parse_datetime(row.get("sent_at")),
            replied_at=parse_datetime(row.get("replied_at")),
        )
