from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


def _status_value(status: Any) -> str | None:
    if status is None:
        return None
    if isinstance(status, Enum):
        return str(status.value)
    return str(status)


class PurchaseRequestError(Exception):
    """Base class for domain failures raised by the purchase request aggregate."""

    kind = "purchase_request_error"

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.kind}


class InvalidTransition(PurchaseRequestError):
    kind = "invalid_transition"

    def __init__(self, operation: str, current_status: Any, *, item_id: int | None = None) -> None:
        self.operation = operation
        self.current_status = current_status
        self.item_id = item_id
        subject = f"rfq item {item_id}" if item_id is not None else "purchase request"
        super().__init__(f"Cannot {operation} for {subject} in {_status_value(current_status)} status")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.kind,
            "operation": self.operation,
            "current_status": _status_value(self.current_status),
        }
        if self.item_id is not None:
            payload["item_id"] = self.item_id
        return payload


class VendorAlreadySelected(PurchaseRequestError):
    kind = "vendor_already_selected"

    def __init__(self, selected_item_id: int, requested_item_id: int) -> None:
        self.selected_item_id = selected_item_id
        self.requested_item_id = requested_item_id
        super().__init__(
            f"Rfq item {selected_item_id} is already selected; cannot select rfq item {requested_item_id}"
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error": self.kind,
            "selected_item_id": self.selected_item_id,
            "requested_item_id": self.requested_item_id,
        }


class ItemNotFound(PurchaseRequestError):
    kind = "item_not_found"

    def __init__(self, item_id: Any) -> None:
        self.item_id = item_id
        super().__init__(f"Rfq item {item_id} not found in purchase request")

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.kind, "item_id": self.item_id}


class InvalidPurchaseRequest(PurchaseRequestError, ValueError):
    kind = "invalid_input"

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.kind, "field": self.field, "reason": self.reason}


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of PurchaseRequest.execute; callers branch on ``ok``/``error_kind``."""

    operation: str
    status: Any
    value: Any = None
    error: PurchaseRequestError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> str | None:
        if self.error is None:
            return None
        return self.error.kind
