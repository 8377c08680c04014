from __future__ import annotations

from enum import Enum
from typing import Dict, Mapping


class PurchaseRequestKind(str, Enum):
    SERVICE = "service"
    MATERIAL = "material"


class PurchaseRequestStatus(str, Enum):
    DRAFT = "draft"
    RFQ_SENT = "rfq_sent"
    VENDOR_SELECTED = "vendor_selected"
    ORDERED = "ordered"
    CLOSED = "closed"
    CANCELED = "canceled"


class RfqItemStatus(str, Enum):
    SENT = "sent"
    REPLIED = "replied"
    NO_RESPONSE = "no_response"
    SELECTED = "selected"
    REJECTED = "rejected"


PR = PurchaseRequestStatus
ITEM = RfqItemStatus


# operation -> {from_status: to_status}. Operations that only guard on the
# header status map a status onto itself.
PURCHASE_REQUEST_TRANSITIONS: Dict[str, Dict[PurchaseRequestStatus, PurchaseRequestStatus]] = {
    "update": {PR.DRAFT: PR.DRAFT},
    "add_rfq_item": {PR.DRAFT: PR.DRAFT, PR.RFQ_SENT: PR.RFQ_SENT},
    "send_rfq": {PR.DRAFT: PR.RFQ_SENT, PR.RFQ_SENT: PR.RFQ_SENT},
    "record_rfq_reply": {PR.RFQ_SENT: PR.RFQ_SENT},
    "mark_rfq_no_response": {PR.RFQ_SENT: PR.RFQ_SENT},
    "reject_rfq": {PR.RFQ_SENT: PR.RFQ_SENT},
    "select_vendor": {PR.RFQ_SENT: PR.VENDOR_SELECTED},
    "revert_vendor_selection": {
        PR.VENDOR_SELECTED: PR.RFQ_SENT,
        PR.ORDERED: PR.RFQ_SENT,
    },
    "mark_ordered": {PR.VENDOR_SELECTED: PR.ORDERED},
    "close": {PR.ORDERED: PR.CLOSED},
    "cancel": {
        PR.DRAFT: PR.CANCELED,
        PR.RFQ_SENT: PR.CANCELED,
        PR.VENDOR_SELECTED: PR.CANCELED,
        PR.ORDERED: PR.CANCELED,
    },
}


RFQ_ITEM_TRANSITIONS: Dict[str, Dict[RfqItemStatus, RfqItemStatus]] = {
    "record_reply": {ITEM.SENT: ITEM.REPLIED},
    "mark_no_response": {ITEM.SENT: ITEM.NO_RESPONSE},
    "select": {ITEM.REPLIED: ITEM.SELECTED},
    "reject": {ITEM.REPLIED: ITEM.REJECTED},
    "unreject": {ITEM.REJECTED: ITEM.REPLIED},
    "deselect": {ITEM.SELECTED: ITEM.REPLIED},
}


def next_status(table: Mapping[str, Mapping[Enum, Enum]], operation: str, current: Enum) -> Enum | None:
    return table.get(operation, {}).get(current)


def operations_allowed_from(status: PurchaseRequestStatus) -> list[str]:
    return [operation for operation, moves in PURCHASE_REQUEST_TRANSITIONS.items() if status in moves]


def parse_purchase_request_status(value: str | None) -> PurchaseRequestStatus | None:
    normalized = str(value or "").strip().lower()
    if not normalized:
        return None
    try:
        return PurchaseRequestStatus(normalized)
    except ValueError:
        return None
