from __future__ import annotations

from typing import Dict, List

from purchasing.contexts.procurement.domain.status import (
    RFQ_ITEM_TRANSITIONS,
    PurchaseRequestStatus,
    RfqItemStatus,
    operations_allowed_from,
    parse_purchase_request_status,
)
from purchasing.ui_strings import action_label


PROCESS_STAGES: List[Dict[str, str]] = [
    {"key": "request", "label": "Request"},
    {"key": "quotation", "label": "Quotation"},
    {"key": "decision", "label": "Decision"},
    {"key": "order", "label": "Order"},
    {"key": "done", "label": "Done"},
]


PRIMARY_ACTIONS: Dict[PurchaseRequestStatus, str | None] = {
    PurchaseRequestStatus.DRAFT: "send_rfq",
    PurchaseRequestStatus.RFQ_SENT: "select_vendor",
    PurchaseRequestStatus.VENDOR_SELECTED: "mark_ordered",
    PurchaseRequestStatus.ORDERED: "close",
    PurchaseRequestStatus.CLOSED: None,
    PurchaseRequestStatus.CANCELED: None,
}


STAGE_BY_STATUS: Dict[PurchaseRequestStatus, str] = {
    PurchaseRequestStatus.DRAFT: "request",
    PurchaseRequestStatus.RFQ_SENT: "quotation",
    PurchaseRequestStatus.VENDOR_SELECTED: "decision",
    PurchaseRequestStatus.ORDERED: "order",
    PurchaseRequestStatus.CLOSED: "done",
    PurchaseRequestStatus.CANCELED: "request",
}


# Aggregate operation -> the item transition it drives.
ITEM_OPERATIONS: Dict[str, str] = {
    "record_rfq_reply": "record_reply",
    "mark_rfq_no_response": "mark_no_response",
    "reject_rfq": "reject",
    "select_vendor": "select",
    "revert_vendor_selection": "deselect",
}


def allowed_actions(status: str | None) -> List[str]:
    parsed = parse_purchase_request_status(status)
    if parsed is None:
        return []
    return operations_allowed_from(parsed)


def primary_action(status: str | None) -> str | None:
    parsed = parse_purchase_request_status(status)
    if parsed is None:
        return None
    return PRIMARY_ACTIONS.get(parsed)


def action_allowed(status: str | None, action: str) -> bool:
    if not action:
        return False
    return action in set(allowed_actions(status))


def item_actions(status: str | None, item_status: str | None) -> List[str]:
    """Operations that would succeed on one RFQ item given both statuses."""
    try:
        parsed_item = RfqItemStatus(str(item_status or "").strip().lower())
    except ValueError:
        return []
    header_actions = set(allowed_actions(status))
    return [
        operation
        for operation, item_operation in ITEM_OPERATIONS.items()
        if operation in header_actions and parsed_item in RFQ_ITEM_TRANSITIONS[item_operation]
    ]


def stage_for_status(status: str | None) -> str:
    parsed = parse_purchase_request_status(status)
    if parsed is None:
        return "request"
    return STAGE_BY_STATUS[parsed]


def flow_meta(status: str | None) -> Dict[str, object]:
    actions = allowed_actions(status)
    return {
        "stage": stage_for_status(status),
        "status": status,
        "allowed_actions": actions,
        "primary_action": primary_action(status),
        "action_labels": {action: action_label(action) for action in actions},
    }


def _stage_index(stage: str) -> int:
    for idx, item in enumerate(PROCESS_STAGES):
        if item["key"] == stage:
            return idx
    return 0


def build_process_steps(current_stage: str) -> List[Dict[str, object]]:
    current_idx = _stage_index(current_stage)
    steps: List[Dict[str, object]] = []
    for idx, stage in enumerate(PROCESS_STAGES):
        state = "future"
        if idx < current_idx:
            state = "completed"
        elif idx == current_idx:
            state = "current"
        steps.append({"key": stage["key"], "label": stage["label"], "state": state})
    return steps
