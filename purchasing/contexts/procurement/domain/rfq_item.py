from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

from purchasing.contexts.procurement.domain.errors import InvalidTransition
from purchasing.contexts.procurement.domain.status import RFQ_ITEM_TRANSITIONS, RfqItemStatus, next_status


@dataclass(frozen=True)
class RfqItem:
    """One vendor's solicitation record inside a purchase request.

    Items are values: every transition returns a new ``RfqItem`` and the
    owning ``PurchaseRequest`` decides whether to keep it.
    """

    item_id: int
    vendor_id: int
    status: RfqItemStatus = RfqItemStatus.SENT
    vendor_offering_id: int | None = None
    quoted_price: Decimal | None = None
    quoted_lead_time: int | None = None
    notes: str | None = None
    sent_at: datetime | None = None
    replied_at: datetime | None = None

    def ensure_can(self, operation: str) -> RfqItemStatus:
        target = next_status(RFQ_ITEM_TRANSITIONS, operation, self.status)
        if target is None:
            raise InvalidTransition(operation, self.status, item_id=self.item_id)
        return target

    def _moved(self, operation: str, **changes) -> "RfqItem":
        return replace(self, status=self.ensure_can(operation), **changes)

    def record_reply(
        self,
        price: Decimal,
        lead_time: int | None,
        notes: str | None,
        replied_at: datetime,
    ) -> "RfqItem":
        return self._moved(
            "record_reply",
            quoted_price=price,
            quoted_lead_time=lead_time,
            notes=notes,
            replied_at=replied_at,
        )

    def mark_no_response(self) -> "RfqItem":
        return self._moved("mark_no_response")

    def select(self) -> "RfqItem":
        return self._moved("select")

    def reject(self) -> "RfqItem":
        return self._moved("reject")

    def unreject(self) -> "RfqItem":
        return self._moved("unreject")

    def deselect(self) -> "RfqItem":
        return self._moved("deselect")

    @property
    def has_reply(self) -> bool:
        return self.replied_at is not None

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "vendor_id": self.vendor_id,
            "vendor_offering_id": self.vendor_offering_id,
            "status": self.status.value,
            "quoted_price": str(self.quoted_price) if self.quoted_price is not None else None,
            "quoted_lead_time": self.quoted_lead_time,
            "notes": self.notes,
            "sent_at": isoformat_utc(self.sent_at),
            "replied_at": isoformat_utc(self.replied_at),
        }


def isoformat_utc(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")
