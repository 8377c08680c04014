from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class ServiceOutput:
    payload: Dict[str, Any]
    status_code: int = 200


@dataclass(frozen=True)
class PurchaseRequestCreateInput:
    kind: str
    description: str
    quantity: Any
    required_date: Any
    uom: str | None = None
    service_category_id: int | None = None
    material_id: int | None = None
    project_id: int | None = None
    created_by: str | None = None


@dataclass(frozen=True)
class PurchaseRequestUpdateInput:
    description: str | None = None
    quantity: Any = None
    uom: str | None = None
    required_date: Any = None


@dataclass(frozen=True)
class RfqItemCreateInput:
    vendor_id: int
    vendor_offering_id: int | None = None


@dataclass(frozen=True)
class RfqReplyInput:
    item_id: int
    price: Any
    lead_time: Any = None
    notes: str | None = None


@dataclass(frozen=True)
class SendRfqInput:
    vendor_ids: List[int] = field(default_factory=list)
