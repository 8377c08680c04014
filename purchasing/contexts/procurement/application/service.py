from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

from purchasing.contexts.procurement.domain import (
    PurchaseRequest,
    PurchaseRequestError,
    StatusChange,
    TransitionResult,
)
from purchasing.contexts.procurement.infrastructure.repositories import (
    PurchaseRequestRepository,
    StaleAggregateError,
    StatusEventRepository,
)
from purchasing.core import (
    EventBus,
    PurchaseRequestCreated,
    PurchaseRequestStatusChanged,
    get_event_bus,
)
from purchasing.domain.contracts import (
    PurchaseRequestCreateInput,
    PurchaseRequestUpdateInput,
    RfqItemCreateInput,
    RfqReplyInput,
    SendRfqInput,
    ServiceOutput,
)
from purchasing.errors import ConflictError, NotFoundError, from_domain_error
from purchasing.observability import (
    observe_purchase_request_operation,
    observe_purchase_request_save_conflict,
)
from purchasing.procurement.flow_policy import flow_meta, item_actions


logger = logging.getLogger("purchasing.procurement")

Step = Callable[[PurchaseRequest], TransitionResult]


class PurchaseRequestService:
    """Application facade: load one aggregate, apply one operation, save it.

    Every mutating call runs inside a retry loop. A stale save (someone else
    saved the same request first) reloads the aggregate and re-applies the
    call, up to ``save_retries`` extra attempts.
    """

    def __init__(
        self,
        *,
        tenant_id: str,
        repository: PurchaseRequestRepository | None = None,
        status_events: StatusEventRepository | None = None,
        event_bus: EventBus | None = None,
        clock=None,
        number_prefix: str = "PR",
        save_retries: int = 2,
        list_limit: int = 200,
    ) -> None:
        self.tenant_id = tenant_id
        self.repository = repository or PurchaseRequestRepository(tenant_id=tenant_id)
        self.status_events = status_events or StatusEventRepository(tenant_id=tenant_id)
        self.event_bus = event_bus or get_event_bus()
        self.clock = clock
        self.number_prefix = str(number_prefix or "PR").strip() or "PR"
        self.save_retries = max(0, int(save_retries))
        self.list_limit = max(1, int(list_limit))

    @classmethod
    def from_config(cls, config, *, tenant_id: str, event_bus: EventBus | None = None) -> "PurchaseRequestService":
        return cls(
            tenant_id=tenant_id,
            event_bus=event_bus,
            number_prefix=config.get("PURCHASE_REQUEST_NUMBER_PREFIX", "PR"),
            save_retries=config.get("PURCHASE_REQUEST_SAVE_RETRIES", 2),
            list_limit=config.get("PURCHASE_REQUEST_LIST_LIMIT", 200),
        )

    # -- queries -------------------------------------------------------------

    def list_summary(self, db, *, status: str | None = None, limit: int | None = None) -> ServiceOutput:
        effective_limit = min(int(limit or self.list_limit), self.list_limit)
        items = self.repository.list_summary(db, status=status, limit=effective_limit)
        return ServiceOutput({"items": items})

    def load(self, db, purchase_request_id: int) -> PurchaseRequest:
        aggregate = self.repository.load(db, purchase_request_id)
        if aggregate is None:
            raise NotFoundError(
                code="purchase_request_not_found",
                message_key="purchase_request_not_found",
                payload={"purchase_request_id": purchase_request_id},
            )
        return aggregate

    def get_detail(self, db, purchase_request_id: int) -> ServiceOutput:
        aggregate = self.load(db, purchase_request_id)
        payload = self._payload(aggregate)
        payload["history"] = self.status_events.list_for_entity(db, entity_id=purchase_request_id)
        return ServiceOutput(payload)

    def selected_quote(self, db, purchase_request_id: int) -> ServiceOutput:
        aggregate = self.load(db, purchase_request_id)
        item = aggregate.get_selected_rfq_item()
        if item is None:
            raise NotFoundError(
                code="selected_quote_not_found",
                message_key="selected_quote_not_found",
                payload={"purchase_request_id": purchase_request_id},
            )
        return ServiceOutput(
            {
                "purchase_request_id": aggregate.id,
                "request_number": aggregate.request_number,
                "item_id": item.item_id,
                "vendor_id": item.vendor_id,
                "vendor_offering_id": item.vendor_offering_id,
                "quoted_price": str(item.quoted_price) if item.quoted_price is not None else None,
                "quoted_lead_time": item.quoted_lead_time,
                "notes": item.notes,
            }
        )

    # -- commands ------------------------------------------------------------

    def create(self, db, create_input: PurchaseRequestCreateInput) -> ServiceOutput:
        try:
            aggregate = PurchaseRequest.create(
                kind=create_input.kind,
                description=create_input.description,
                quantity=create_input.quantity,
                required_date=create_input.required_date,
                uom=create_input.uom,
                service_category_id=create_input.service_category_id,
                material_id=create_input.material_id,
                project_id=create_input.project_id,
                created_by=create_input.created_by,
                clock=self.clock,
            )
        except PurchaseRequestError as exc:
            observe_purchase_request_operation("create", exc.kind)
            raise from_domain_error(exc) from exc

        purchase_request_id = self.repository.add(db, aggregate, prefix=self.number_prefix)
        self.status_events.add_event(
            db,
            entity="purchase_request",
            entity_id=purchase_request_id,
            operation="create",
            from_status=None,
            to_status=aggregate.status.value,
        )
        db.commit()

        observe_purchase_request_operation("create", "ok")
        logger.info(
            "purchase_request_created",
            extra={
                "tenant_id": self.tenant_id,
                "purchase_request_id": purchase_request_id,
                "request_number": aggregate.request_number,
                "kind": aggregate.kind.value,
            },
        )
        self.event_bus.publish(
            PurchaseRequestCreated(
                tenant_id=self.tenant_id,
                purchase_request_id=purchase_request_id,
                request_number=aggregate.request_number or "",
                kind=aggregate.kind.value,
            )
        )
        return ServiceOutput(self._payload(aggregate), 201)

    def update(self, db, purchase_request_id: int, update_input: PurchaseRequestUpdateInput) -> ServiceOutput:
        return self._run(
            db,
            purchase_request_id,
            "update",
            lambda aggregate: aggregate.execute(
                "update",
                description=update_input.description,
                quantity=update_input.quantity,
                uom=update_input.uom,
                required_date=update_input.required_date,
            ),
        )

    def add_rfq_item(self, db, purchase_request_id: int, item_input: RfqItemCreateInput) -> ServiceOutput:
        output = self._run(
            db,
            purchase_request_id,
            "add_rfq_item",
            lambda aggregate: aggregate.execute(
                "add_rfq_item", item_input.vendor_id, vendor_offering_id=item_input.vendor_offering_id
            ),
        )
        return ServiceOutput(output.payload, 201)

    def send_rfq(self, db, purchase_request_id: int, send_input: SendRfqInput | None = None) -> ServiceOutput:
        vendor_ids = list((send_input or SendRfqInput()).vendor_ids)

        def _apply(aggregate: PurchaseRequest) -> TransitionResult:
            for vendor_id in vendor_ids:
                added = aggregate.execute("add_rfq_item", vendor_id)
                if not added.ok:
                    return added
            return aggregate.execute("send_rfq")

        return self._run(db, purchase_request_id, "send_rfq", _apply)

    def record_reply(self, db, purchase_request_id: int, reply_input: RfqReplyInput) -> ServiceOutput:
        return self._run(
            db,
            purchase_request_id,
            "record_rfq_reply",
            lambda aggregate: aggregate.execute(
                "record_rfq_reply",
                reply_input.item_id,
                reply_input.price,
                lead_time=reply_input.lead_time,
                notes=reply_input.notes,
            ),
        )

    def mark_no_response(self, db, purchase_request_id: int, item_id: int) -> ServiceOutput:
        return self._run_operation(db, purchase_request_id, "mark_rfq_no_response", item_id)

    def reject(self, db, purchase_request_id: int, item_id: int) -> ServiceOutput:
        return self._run_operation(db, purchase_request_id, "reject_rfq", item_id)

    def select_vendor(self, db, purchase_request_id: int, item_id: int) -> ServiceOutput:
        return self._run_operation(db, purchase_request_id, "select_vendor", item_id)

    def revert_vendor_selection(self, db, purchase_request_id: int, item_id: int) -> ServiceOutput:
        return self._run_operation(db, purchase_request_id, "revert_vendor_selection", item_id)

    def mark_ordered(self, db, purchase_request_id: int) -> ServiceOutput:
        return self._run_operation(db, purchase_request_id, "mark_ordered")

    def close(self, db, purchase_request_id: int) -> ServiceOutput:
        return self._run_operation(db, purchase_request_id, "close")

    def cancel(self, db, purchase_request_id: int) -> ServiceOutput:
        return self._run_operation(db, purchase_request_id, "cancel")

    # -- internals -----------------------------------------------------------

    def _run_operation(self, db, purchase_request_id: int, operation: str, *args: Any) -> ServiceOutput:
        return self._run(db, purchase_request_id, operation, lambda aggregate: aggregate.execute(operation, *args))

    def _run(self, db, purchase_request_id: int, operation: str, step: Step) -> ServiceOutput:
        attempts = self.save_retries + 1
        for attempt in range(1, attempts + 1):
            aggregate = self.load(db, purchase_request_id)
            result = step(aggregate)
            if not result.ok:
                db.rollback()
                observe_purchase_request_operation(operation, result.error_kind or "error")
                raise from_domain_error(result.error) from result.error

            try:
                self.repository.save(db, aggregate)
            except StaleAggregateError:
                db.rollback()
                observe_purchase_request_save_conflict()
                logger.warning(
                    "purchase_request_save_conflict",
                    extra={
                        "tenant_id": self.tenant_id,
                        "purchase_request_id": purchase_request_id,
                        "operation": operation,
                        "attempt": attempt,
                        "max_attempts": attempts,
                    },
                )
                continue

            changes = aggregate.pull_status_changes()
            self.status_events.add_changes(db, purchase_request_id, changes)
            db.commit()

            observe_purchase_request_operation(operation, "ok")
            logger.info(
                "purchase_request_saved",
                extra={
                    "tenant_id": self.tenant_id,
                    "purchase_request_id": purchase_request_id,
                    "operation": operation,
                    "status": aggregate.status.value,
                    "version": aggregate.version,
                    "status_changes": len(changes),
                },
            )
            self._publish_changes(purchase_request_id, changes)

            payload = self._payload(aggregate)
            if result.value is not None:
                payload["item_id"] = result.value
            return ServiceOutput(payload)

        observe_purchase_request_operation(operation, "conflict")
        raise ConflictError(
            details=f"purchase request {purchase_request_id} kept changing during {operation}",
            payload={"purchase_request_id": purchase_request_id, "operation": operation},
        )

    def _publish_changes(self, purchase_request_id: int, changes: List[StatusChange]) -> None:
        for change in changes:
            self.event_bus.publish(
                PurchaseRequestStatusChanged(
                    tenant_id=self.tenant_id,
                    purchase_request_id=purchase_request_id,
                    operation=change.operation,
                    entity=change.entity,
                    from_status=change.from_status,
                    to_status=change.to_status,
                    rfq_item_id=change.item_id,
                    occurred_at=change.occurred_at,
                )
            )

    @staticmethod
    def _payload(aggregate: PurchaseRequest) -> Dict[str, Any]:
        data = aggregate.to_dict()
        status = data["status"]
        for item in data["rfq_items"]:
            item["allowed_actions"] = item_actions(status, item["status"])
        return {"purchase_request": data, "flow": flow_meta(status)}
