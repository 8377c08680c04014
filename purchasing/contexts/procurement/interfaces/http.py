from __future__ import annotations

from typing import Any, Dict, List

from flask import Blueprint, current_app, jsonify, request

from purchasing.contexts.procurement.application.service import PurchaseRequestService
from purchasing.contexts.procurement.domain.status import parse_purchase_request_status
from purchasing.db import get_db
from purchasing.domain.contracts import (
    PurchaseRequestCreateInput,
    PurchaseRequestUpdateInput,
    RfqItemCreateInput,
    RfqReplyInput,
    SendRfqInput,
    ServiceOutput,
)
from purchasing.errors import ValidationError
from purchasing.tenant import scoped_tenant_id


purchase_requests_bp = Blueprint("purchase_requests", __name__, url_prefix="/api/purchase-requests")


def _service() -> PurchaseRequestService:
    return PurchaseRequestService.from_config(current_app.config, tenant_id=scoped_tenant_id())


def _respond(result: ServiceOutput):
    return jsonify(result.payload), result.status_code


def _json_payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError(details="request body must be a JSON object")
    return payload


def _invalid_field(field: str, reason: str) -> ValidationError:
    return ValidationError(
        code="invalid_input",
        message_key="invalid_input",
        details=f"{field}: {reason}",
        payload={"field": field, "reason": reason},
    )


def _optional_int(payload: Dict[str, Any], field: str) -> int | None:
    value = payload.get(field)
    if value is None or value == "":
        return None
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise _invalid_field(field, "must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise _invalid_field(field, "must be an integer") from None


def _required_int(payload: Dict[str, Any], field: str) -> int:
    value = _optional_int(payload, field)
    if value is None:
        raise _invalid_field(field, "required")
    return value


def _int_list(payload: Dict[str, Any], field: str) -> List[int]:
    values = payload.get(field)
    if values is None:
        return []
    if not isinstance(values, list):
        raise _invalid_field(field, "must be a list of integers")
    return [_required_int({field: value}, field) for value in values]


def _parse_int(value: str | None, default: int, min_value: int, max_value: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return max(min_value, min(parsed, max_value))


@purchase_requests_bp.route("", methods=["GET"])
def list_purchase_requests():
    status_filter = request.args.get("status")
    status = None
    if status_filter:
        parsed = parse_purchase_request_status(status_filter)
        if parsed is None:
            raise _invalid_field("status", "unknown status")
        status = parsed.value
    max_limit = int(current_app.config.get("PURCHASE_REQUEST_LIST_LIMIT", 200))
    limit = _parse_int(request.args.get("limit"), default=max_limit, min_value=1, max_value=max_limit)
    return _respond(_service().list_summary(get_db(), status=status, limit=limit))


@purchase_requests_bp.route("/<string:kind>", methods=["POST"])
def create_purchase_request(kind: str):
    if kind not in {"service", "material"}:
        raise _invalid_field("kind", "must be service or material")
    payload = _json_payload()
    create_input = PurchaseRequestCreateInput(
        kind=kind,
        description=payload.get("description"),
        quantity=payload.get("quantity"),
        required_date=payload.get("required_date"),
        uom=payload.get("uom"),
        service_category_id=_optional_int(payload, "service_category_id"),
        material_id=_optional_int(payload, "material_id"),
        project_id=_optional_int(payload, "project_id"),
        created_by=payload.get("created_by"),
    )
    return _respond(_service().create(get_db(), create_input))


@purchase_requests_bp.route("/<int:purchase_request_id>", methods=["GET"])
def purchase_request_detail(purchase_request_id: int):
    return _respond(_service().get_detail(get_db(), purchase_request_id))


@purchase_requests_bp.route("/<int:purchase_request_id>", methods=["PUT"])
def update_purchase_request(purchase_request_id: int):
    payload = _json_payload()
    update_input = PurchaseRequestUpdateInput(
        description=payload.get("description"),
        quantity=payload.get("quantity"),
        uom=payload.get("uom"),
        required_date=payload.get("required_date"),
    )
    return _respond(_service().update(get_db(), purchase_request_id, update_input))


@purchase_requests_bp.route("/<int:purchase_request_id>", methods=["DELETE"])
def cancel_purchase_request(purchase_request_id: int):
    return _respond(_service().cancel(get_db(), purchase_request_id))


@purchase_requests_bp.route("/<int:purchase_request_id>/rfq-items", methods=["POST"])
def add_rfq_item(purchase_request_id: int):
    payload = _json_payload()
    item_input = RfqItemCreateInput(
        vendor_id=_required_int(payload, "vendor_id"),
        vendor_offering_id=_optional_int(payload, "vendor_offering_id"),
    )
    return _respond(_service().add_rfq_item(get_db(), purchase_request_id, item_input))


@purchase_requests_bp.route("/<int:purchase_request_id>/send-rfq", methods=["POST"])
def send_rfq(purchase_request_id: int):
    payload = _json_payload()
    send_input = SendRfqInput(vendor_ids=_int_list(payload, "vendor_ids"))
    return _respond(_service().send_rfq(get_db(), purchase_request_id, send_input))


@purchase_requests_bp.route("/<int:purchase_request_id>/rfq-items/<int:item_id>/reply", methods=["POST"])
def record_rfq_reply(purchase_request_id: int, item_id: int):
    payload = _json_payload()
    reply_input = RfqReplyInput(
        item_id=item_id,
        price=payload.get("price"),
        lead_time=payload.get("lead_time"),
        notes=payload.get("notes"),
    )
    return _respond(_service().record_reply(get_db(), purchase_request_id, reply_input))


@purchase_requests_bp.route("/<int:purchase_request_id>/rfq-items/<int:item_id>/no-response", methods=["POST"])
def mark_rfq_no_response(purchase_request_id: int, item_id: int):
    return _respond(_service().mark_no_response(get_db(), purchase_request_id, item_id))


@purchase_requests_bp.route("/<int:purchase_request_id>/rfq-items/<int:item_id>/reject", methods=["POST"])
def reject_rfq(purchase_request_id: int, item_id: int):
    return _respond(_service().reject(get_db(), purchase_request_id, item_id))


@purchase_requests_bp.route("/<int:purchase_request_id>/rfq-items/<int:item_id>/select", methods=["POST"])
def select_vendor(purchase_request_id: int, item_id: int):
    return _respond(_service().select_vendor(get_db(), purchase_request_id, item_id))


@purchase_requests_bp.route("/<int:purchase_request_id>/rfq-items/<int:item_id>/revert", methods=["POST"])
def revert_vendor_selection(purchase_request_id: int, item_id: int):
    """Reopen quoting. Only a SELECTED ``item_id`` is deselected; naming any
    other item still reopens the request but keeps the current selection."""
    return _respond(_service().revert_vendor_selection(get_db(), purchase_request_id, item_id))


@purchase_requests_bp.route("/<int:purchase_request_id>/mark-ordered", methods=["POST"])
def mark_ordered(purchase_request_id: int):
    return _respond(_service().mark_ordered(get_db(), purchase_request_id))


@purchase_requests_bp.route("/<int:purchase_request_id>/close", methods=["POST"])
def close_purchase_request(purchase_request_id: int):
    return _respond(_service().close(get_db(), purchase_request_id))


@purchase_requests_bp.route("/<int:purchase_request_id>/selected-quote", methods=["GET"])
def selected_quote(purchase_request_id: int):
    return _respond(_service().selected_quote(get_db(), purchase_request_id))
