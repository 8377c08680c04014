from __future__ import annotations

import logging
from typing import Callable, Iterable

from purchasing.contexts.procurement.application.service import PurchaseRequestService
from purchasing.contexts.procurement.domain import PurchaseRequestStatus
from purchasing.core import (
    EventBus,
    PurchaseOrderCanceled,
    PurchaseOrderCreated,
    PurchaseOrderReceived,
)
from purchasing.errors import ConflictError, UserActionError


logger = logging.getLogger("purchasing.procurement")

ServiceFactory = Callable[[str], PurchaseRequestService]


class PurchaseRequestEventHandler:
    """Moves purchase requests along when the downstream purchase order changes.

    Events whose target request is in a status the operation does not accept
    are logged and skipped; the order side does not need to know the request
    state machine.
    """

    def __init__(self, *, db_provider: Callable[[], object], service_factory: ServiceFactory) -> None:
        self.db_provider = db_provider
        self.service_factory = service_factory

    def register(self, bus: EventBus) -> None:
        bus.subscribe(PurchaseOrderCreated, self.on_purchase_order_created)
        bus.subscribe(PurchaseOrderCanceled, self.on_purchase_order_canceled)
        bus.subscribe(PurchaseOrderReceived, self.on_purchase_order_received)

    def on_purchase_order_created(self, event: PurchaseOrderCreated) -> None:
        self._apply(event, "mark_ordered", {PurchaseRequestStatus.VENDOR_SELECTED})

    def on_purchase_order_canceled(self, event: PurchaseOrderCanceled) -> None:
        self._apply(
            event,
            "revert_vendor_selection",
            {PurchaseRequestStatus.VENDOR_SELECTED, PurchaseRequestStatus.ORDERED},
            event.rfq_item_id,
        )

    def on_purchase_order_received(self, event: PurchaseOrderReceived) -> None:
        self._apply(event, "close", {PurchaseRequestStatus.ORDERED})

    def _apply(self, event, operation: str, accepted: Iterable[PurchaseRequestStatus], *args) -> None:
        service = self.service_factory(event.tenant_id)
        db = self.db_provider()
        aggregate = service.load(db, event.purchase_request_id)
        if aggregate.status not in set(accepted):
            self._log_skipped(event, operation, aggregate.status.value, "status_not_accepted")
            return

        try:
            getattr(service, operation)(db, event.purchase_request_id, *args)
        except UserActionError as exc:
            # The request moved between the status check and the write.
            if not isinstance(exc, ConflictError) and exc.code != "invalid_transition":
                raise
            self._log_skipped(event, operation, exc.payload.get("current_status"), exc.code)
            return

        logger.info(
            "purchase_order_event_applied",
            extra={
                "event_type": type(event).__name__,
                "event_id": event.event_id,
                "tenant_id": event.tenant_id,
                "purchase_request_id": event.purchase_request_id,
                "purchase_order_id": event.purchase_order_id,
                "po_number": event.po_number,
                "operation": operation,
            },
        )

    @staticmethod
    def _log_skipped(event, operation: str, status: str | None, reason: str) -> None:
        logger.info(
            "purchase_order_event_skipped",
            extra={
                "event_type": type(event).__name__,
                "event_id": event.event_id,
                "tenant_id": event.tenant_id,
                "purchase_request_id": event.purchase_request_id,
                "purchase_order_id": event.purchase_order_id,
                "status": status,
                "operation": operation,
                "reason": reason,
            },
        )
