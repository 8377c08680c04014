from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Sequence, Tuple

from purchasing.contexts.procurement.domain.errors import (
    InvalidPurchaseRequest,
    InvalidTransition,
    ItemNotFound,
    PurchaseRequestError,
    TransitionResult,
    VendorAlreadySelected,
)
from purchasing.contexts.procurement.domain.rfq_item import RfqItem, isoformat_utc
from purchasing.contexts.procurement.domain.status import (
    PURCHASE_REQUEST_TRANSITIONS,
    PurchaseRequestKind,
    PurchaseRequestStatus,
    RfqItemStatus,
    next_status,
)


Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StatusChange:
    operation: str
    entity: str
    from_status: str | None
    to_status: str
    occurred_at: datetime
    item_id: int | None = None


# Operations reachable through PurchaseRequest.execute.
OPERATIONS = frozenset(
    {
        "update",
        "add_rfq_item",
        "send_rfq",
        "record_rfq_reply",
        "mark_rfq_no_response",
        "reject_rfq",
        "select_vendor",
        "revert_vendor_selection",
        "mark_ordered",
        "close",
        "cancel",
    }
)


class PurchaseRequest:
    """Aggregate root for one internal purchasing need and its vendor RFQs.

    All mutations go through the methods below. Each one validates against
    the current header and item statuses first and only then writes, so a
    failed call leaves the aggregate exactly as it was.
    """

    def __init__(
        self,
        *,
        kind: PurchaseRequestKind | str,
        description: str,
        quantity: Decimal | int | str,
        required_date: date | str,
        uom: str | None = None,
        service_category_id: int | None = None,
        material_id: int | None = None,
        project_id: int | None = None,
        created_by: str | None = None,
        status: PurchaseRequestStatus | str = PurchaseRequestStatus.DRAFT,
        rfq_items: Iterable[RfqItem] = (),
        purchase_request_id: int | None = None,
        request_number: str | None = None,
        version: int = 0,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._clock = clock or _utc_now
        self._kind = _coerce_kind(kind)
        _check_kind_references(self._kind, service_category_id, material_id)
        self._service_category_id = service_category_id
        self._material_id = material_id
        self._project_id = project_id
        self._created_by = _optional_text(created_by)
        self._description = _require_text("description", description)
        self._quantity = _positive_decimal("quantity", quantity)
        self._uom = _optional_text(uom)
        self._required_date = _require_date("required_date", required_date)
        self._status = PurchaseRequestStatus(status)
        self._items: List[RfqItem] = _checked_items(rfq_items)
        self._id = purchase_request_id
        self._request_number = _optional_text(request_number)
        self._version = int(version or 0)
        self._created_at = created_at or self._clock()
        self._updated_at = updated_at or self._created_at
        self._changes: List[StatusChange] = []

    @classmethod
    def create(
        cls,
        *,
        kind: PurchaseRequestKind | str,
        description: str,
        quantity: Decimal | int | str,
        required_date: date | str,
        uom: str | None = None,
        service_category_id: int | None = None,
        material_id: int | None = None,
        project_id: int | None = None,
        created_by: str | None = None,
        clock: Clock | None = None,
    ) -> "PurchaseRequest":
        """New request in DRAFT with no RFQ items and no identity yet."""
        return cls(
            kind=kind,
            description=description,
            quantity=quantity,
            required_date=required_date,
            uom=uom,
            service_category_id=service_category_id,
            material_id=material_id,
            project_id=project_id,
            created_by=created_by,
            clock=clock,
        )

    # -- read side ---------------------------------------------------------

    @property
    def id(self) -> int | None:
        return self._id

    @property
    def request_number(self) -> str | None:
        return self._request_number

    @property
    def version(self) -> int:
        return self._version

    @property
    def kind(self) -> PurchaseRequestKind:
        return self._kind

    @property
    def service_category_id(self) -> int | None:
        return self._service_category_id

    @property
    def material_id(self) -> int | None:
        return self._material_id

    @property
    def project_id(self) -> int | None:
        return self._project_id

    @property
    def created_by(self) -> str | None:
        return self._created_by

    @property
    def description(self) -> str:
        return self._description

    @property
    def quantity(self) -> Decimal:
        return self._quantity

    @property
    def uom(self) -> str | None:
        return self._uom

    @property
    def required_date(self) -> date:
        return self._required_date

    @property
    def status(self) -> PurchaseRequestStatus:
        return self._status

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    @property
    def rfq_items(self) -> Tuple[RfqItem, ...]:
        return tuple(self._items)

    def get_rfq_item_by_id(self, item_id: int) -> RfqItem | None:
        for item in self._items:
            if item.item_id == item_id:
                return item
        return None

    def get_selected_rfq_item(self) -> RfqItem | None:
        for item in self._items:
            if item.status == RfqItemStatus.SELECTED:
                return item
        return None

    def can_send_rfq(self) -> bool:
        return self._allows("send_rfq")

    def can_cancel(self) -> bool:
        return self._allows("cancel")

    def can_update(self) -> bool:
        return self._allows("update")

    def can_add_rfq_item(self) -> bool:
        return self._allows("add_rfq_item")

    # -- persistence hooks -------------------------------------------------

    def assign_identity(self, purchase_request_id: int, request_number: str) -> None:
        if self._id is not None:
            raise InvalidPurchaseRequest("id", "already assigned")
        number = _require_text("request_number", request_number)
        if self._request_number is not None and self._request_number != number:
            raise InvalidPurchaseRequest("request_number", "already assigned")
        self._id = int(purchase_request_id)
        self._request_number = number

    def record_saved(self, version: int) -> None:
        self._version = int(version)

    def pull_status_changes(self) -> List[StatusChange]:
        changes = list(self._changes)
        self._changes.clear()
        return changes

    # -- header operations -------------------------------------------------

    def update(
        self,
        *,
        description: str | None = None,
        quantity: Decimal | int | str | None = None,
        uom: str | None = None,
        required_date: date | str | None = None,
    ) -> None:
        target = self._require("update")
        new_description = self._description if description is None else _require_text("description", description)
        new_quantity = self._quantity if quantity is None else _positive_decimal("quantity", quantity)
        new_uom = self._uom if uom is None else _optional_text(uom)
        new_required_date = (
            self._required_date if required_date is None else _require_date("required_date", required_date)
        )

        self._description = new_description
        self._quantity = new_quantity
        self._uom = new_uom
        self._required_date = new_required_date
        self._commit("update", target, self._clock())

    def send_rfq(self) -> None:
        target = self._require("send_rfq")
        if target == self._status:
            return
        self._commit("send_rfq", target, self._clock())

    def mark_ordered(self) -> None:
        self._commit("mark_ordered", self._require("mark_ordered"), self._clock())

    def close(self) -> None:
        self._commit("close", self._require("close"), self._clock())

    def cancel(self) -> None:
        self._commit("cancel", self._require("cancel"), self._clock())

    # -- rfq item operations -----------------------------------------------

    def add_rfq_item(self, vendor_id: int, vendor_offering_id: int | None = None) -> int:
        target = self._require("add_rfq_item")
        if vendor_id is None:
            raise InvalidPurchaseRequest("vendor_id", "required")

        now = self._clock()
        item_id = max((item.item_id for item in self._items), default=0) + 1
        item = RfqItem(
            item_id=item_id,
            vendor_id=vendor_id,
            vendor_offering_id=vendor_offering_id,
            sent_at=now,
        )
        self._changes.append(
            StatusChange("add_rfq_item", "rfq_item", None, item.status.value, now, item_id=item_id)
        )
        self._commit("add_rfq_item", target, now, items=[*self._items, item])
        return item_id

    def record_rfq_reply(
        self,
        item_id: int,
        price: Decimal | int | str,
        lead_time: int | None = None,
        notes: str | None = None,
    ) -> None:
        target = self._require("record_rfq_reply")
        index = self._index_of(item_id)
        self._items[index].ensure_can("record_reply")
        quoted_price = _non_negative_decimal("price", price)
        quoted_lead_time = _optional_non_negative_int("lead_time", lead_time)
        now = self._clock()
        updated = self._items[index].record_reply(quoted_price, quoted_lead_time, _optional_text(notes), now)
        self._commit("record_rfq_reply", target, now, items=self._replaced(index, updated))

    def mark_rfq_no_response(self, item_id: int) -> None:
        target = self._require("mark_rfq_no_response")
        index = self._index_of(item_id)
        updated = self._items[index].mark_no_response()
        self._commit("mark_rfq_no_response", target, self._clock(), items=self._replaced(index, updated))

    def reject_rfq(self, item_id: int) -> None:
        target = self._require("reject_rfq")
        index = self._index_of(item_id)
        updated = self._items[index].reject()
        self._commit("reject_rfq", target, self._clock(), items=self._replaced(index, updated))

    def select_vendor(self, item_id: int) -> None:
        target = self._require("select_vendor")
        # Checked before resolving the target, so re-selecting the
        # selected item is reported as VendorAlreadySelected too.
        selected = self.get_selected_rfq_item()
        if selected is not None:
            raise VendorAlreadySelected(selected.item_id, item_id)
        index = self._index_of(item_id)
        updated = self._items[index].select()
        self._commit("select_vendor", target, self._clock(), items=self._replaced(index, updated))

    def revert_vendor_selection(self, item_id: int) -> None:
        """Resume procurement after the order built from a selection was canceled."""
        target = self._require("revert_vendor_selection")
        index = self._index_of(item_id)

        items = list(self._items)
        if items[index].status == RfqItemStatus.SELECTED:
            items[index] = items[index].deselect()
        for position, item in enumerate(items):
            if item.status == RfqItemStatus.REJECTED:
                items[position] = item.unreject()

        self._commit("revert_vendor_selection", target, self._clock(), items=items)

    # -- result-returning entry point ----------------------------------------

    def execute(self, operation: str, *args: Any, **kwargs: Any) -> TransitionResult:
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown purchase request operation: {operation}")
        try:
            value = getattr(self, operation)(*args, **kwargs)
        except PurchaseRequestError as exc:
            return TransitionResult(operation=operation, status=self._status, error=exc)
        return TransitionResult(operation=operation, status=self._status, value=value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self._id,
            "request_number": self._request_number,
            "kind": self._kind.value,
            "service_category_id": self._service_category_id,
            "material_id": self._material_id,
            "project_id": self._project_id,
            "created_by": self._created_by,
            "description": self._description,
            "quantity": str(self._quantity),
            "uom": self._uom,
            "required_date": self._required_date.isoformat(),
            "status": self._status.value,
            "version": self._version,
            "created_at": isoformat_utc(self._created_at),
            "updated_at": isoformat_utc(self._updated_at),
            "rfq_items": [item.to_dict() for item in self._items],
        }

    # -- guard internals -----------------------------------------------------

    def _allows(self, operation: str) -> bool:
        return next_status(PURCHASE_REQUEST_TRANSITIONS, operation, self._status) is not None

    def _require(self, operation: str) -> PurchaseRequestStatus:
        target = next_status(PURCHASE_REQUEST_TRANSITIONS, operation, self._status)
        if target is None:
            raise InvalidTransition(operation, self._status)
        return target

    def _index_of(self, item_id: int) -> int:
        for index, item in enumerate(self._items):
            if item.item_id == item_id:
                return index
        raise ItemNotFound(item_id)

    def _replaced(self, index: int, item: RfqItem) -> List[RfqItem]:
        items = list(self._items)
        items[index] = item
        return items

    def _commit(
        self,
        operation: str,
        target: PurchaseRequestStatus,
        now: datetime,
        *,
        items: Sequence[RfqItem] | None = None,
    ) -> None:
        if items is not None:
            previous = {item.item_id: item.status for item in self._items}
            for item in items:
                before = previous.get(item.item_id)
                if before is not None and before != item.status:
                    self._changes.append(
                        StatusChange(operation, "rfq_item", before.value, item.status.value, now, item_id=item.item_id)
                    )
            self._items = list(items)
        if target != self._status:
            self._changes.append(
                StatusChange(operation, "purchase_request", self._status.value, target.value, now)
            )
            self._status = target
        self._updated_at = now

    def __repr__(self) -> str:
        return (
            f"PurchaseRequest(id={self._id!r}, request_number={self._request_number!r}, "
            f"status={self._status.value!r}, rfq_items={len(self._items)})"
        )


def _coerce_kind(value: PurchaseRequestKind | str) -> PurchaseRequestKind:
    try:
        return PurchaseRequestKind(str(getattr(value, "value", value) or "").strip().lower())
    except ValueError:
        raise InvalidPurchaseRequest("kind", "must be service or material") from None


def _check_kind_references(kind: PurchaseRequestKind, service_category_id: int | None, material_id: int | None) -> None:
    if kind == PurchaseRequestKind.SERVICE:
        if service_category_id is None:
            raise InvalidPurchaseRequest("service_category_id", "required for service requests")
        if material_id is not None:
            raise InvalidPurchaseRequest("material_id", "not allowed for service requests")
    else:
        if material_id is None:
            raise InvalidPurchaseRequest("material_id", "required for material requests")
        if service_category_id is not None:
            raise InvalidPurchaseRequest("service_category_id", "not allowed for material requests")


def _optional_text(value: Any) -> str | None:
    text = str(value or "").strip()
    return text or None


def _require_text(field: str, value: Any) -> str:
    text = _optional_text(value)
    if text is None:
        raise InvalidPurchaseRequest(field, "required")
    return text


def _to_decimal(field: str, value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        raise InvalidPurchaseRequest(field, "must be a number")
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidPurchaseRequest(field, "must be a number") from None
    if not parsed.is_finite():
        raise InvalidPurchaseRequest(field, "must be a number")
    return parsed


def _positive_decimal(field: str, value: Any) -> Decimal:
    parsed = _to_decimal(field, value)
    if parsed <= 0:
        raise InvalidPurchaseRequest(field, "must be greater than zero")
    return parsed


def _non_negative_decimal(field: str, value: Any) -> Decimal:
    parsed = _to_decimal(field, value)
    if parsed < 0:
        raise InvalidPurchaseRequest(field, "must not be negative")
    return parsed


def _optional_non_negative_int(field: str, value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise InvalidPurchaseRequest(field, "must be a whole number of days")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise InvalidPurchaseRequest(field, "must be a whole number of days") from None
    if parsed < 0:
        raise InvalidPurchaseRequest(field, "must not be negative")
    return parsed


def _checked_items(items: Iterable[RfqItem]) -> List[RfqItem]:
    checked = list(items)
    item_ids = [item.item_id for item in checked]
    if len(set(item_ids)) != len(item_ids):
        raise InvalidPurchaseRequest("rfq_items", "item_id values must be unique")
    if sum(1 for item in checked if item.status == RfqItemStatus.SELECTED) > 1:
        raise InvalidPurchaseRequest("rfq_items", "at most one item can be selected")
    return checked


def _require_date(field: str, value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _optional_text(value)
    if text is None:
        raise InvalidPurchaseRequest(field, "required")
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise InvalidPurchaseRequest(field, "must be an ISO date (YYYY-MM-DD)") from None
