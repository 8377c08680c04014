from __future__ import annotations

from typing import Dict, List


STATUS_GROUPS: Dict[str, List[Dict[str, str]]] = {
    "purchase_request": [
        {
            "key": "draft",
            "label": "Draft",
            "description": "Request is being prepared and can still be edited.",
        },
        {
            "key": "rfq_sent",
            "label": "RFQ sent",
            "description": "Vendors were asked for quotes; replies are being collected.",
        },
        {
            "key": "vendor_selected",
            "label": "Vendor selected",
            "description": "One vendor quote was chosen; a purchase order can be issued.",
        },
        {
            "key": "ordered",
            "label": "Ordered",
            "description": "A purchase order was issued to the selected vendor.",
        },
        {
            "key": "closed",
            "label": "Closed",
            "description": "The order was received and the request is complete.",
        },
        {
            "key": "canceled",
            "label": "Canceled",
            "description": "The request was canceled and accepts no further actions.",
        },
    ],
    "rfq_item": [
        {
            "key": "sent",
            "label": "Awaiting reply",
            "description": "Quote requested from the vendor.",
        },
        {
            "key": "replied",
            "label": "Replied",
            "description": "Vendor sent a price and lead time.",
        },
        {
            "key": "no_response",
            "label": "No response",
            "description": "Vendor did not answer the request.",
        },
        {
            "key": "selected",
            "label": "Selected",
            "description": "Winning quote for this request.",
        },
        {
            "key": "rejected",
            "label": "Rejected",
            "description": "Quote was not chosen.",
        },
    ],
}


ACTION_LABELS: Dict[str, str] = {
    "update": "Edit request",
    "add_rfq_item": "Add vendor",
    "send_rfq": "Send RFQ",
    "record_rfq_reply": "Record quote",
    "mark_rfq_no_response": "Mark no response",
    "reject_rfq": "Reject quote",
    "select_vendor": "Select vendor",
    "revert_vendor_selection": "Revert selection",
    "mark_ordered": "Mark ordered",
    "close": "Close request",
    "cancel": "Cancel request",
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "error": {
        "invalid_transition": "This action is not allowed for the current status.",
        "vendor_already_selected": "Another vendor is already selected for this request.",
        "item_not_found": "Vendor quote not found in this purchase request.",
        "invalid_input": "Some fields are missing or invalid.",
        "purchase_request_not_found": "Purchase request not found.",
        "selected_quote_not_found": "No vendor is selected for this purchase request.",
        "concurrent_update": "The purchase request was changed by someone else. Reload and try again.",
        "validation_error": "Some fields are missing or invalid.",
        "action_invalid": "Invalid action for this operation.",
        "not_found": "Resource not found.",
        "unexpected_error": "The operation could not be completed. Please try again shortly.",
    },
}


def status_keys_for_group(group: str) -> List[str]:
    return [item["key"] for item in STATUS_GROUPS.get(group, [])]


def status_label(group: str, key: str | None) -> str | None:
    for item in STATUS_GROUPS.get(group, []):
        if item["key"] == key:
            return item["label"]
    return key


def action_label(action: str, fallback: str | None = None) -> str:
    label = ACTION_LABELS.get(action)
    if label:
        return label
    if fallback is not None:
        return fallback
    return action


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)
