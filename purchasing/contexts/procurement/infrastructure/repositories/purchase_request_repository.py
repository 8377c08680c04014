from __future__ import annotations

import re

from purchasing.contexts.procurement.domain import PurchaseRequest, PurchaseRequestStatus
from purchasing.contexts.procurement.domain.rfq_item import isoformat_utc
from purchasing.contexts.procurement.infrastructure.repositories.rfq_item_repository import RfqItemRepository
from purchasing.contexts.procurement.infrastructure.repositories.values import (
    decimal_or_none,
    int_or_none,
    parse_date,
    parse_datetime,
)
from purchasing.infrastructure.repositories.base import BaseRepository


class StaleAggregateError(RuntimeError):
    """Raised when a save finds the stored version moved past the loaded one."""

    def __init__(self, purchase_request_id: int | None, expected_version: int) -> None:
        self.purchase_request_id = purchase_request_id
        self.expected_version = expected_version
        super().__init__(
            f"Purchase request {purchase_request_id} was modified concurrently (expected version {expected_version})"
        )


class PurchaseRequestRepository(BaseRepository):
    def __init__(self, *, tenant_id: str | None = None, items: RfqItemRepository | None = None) -> None:
        super().__init__(tenant_id=tenant_id)
        self.items = items or RfqItemRepository(tenant_id=self.tenant_id)

    def next_request_number(self, db, *, prefix: str, year: int) -> str:
        stem = f"{prefix}-{int(year):04d}-"
        row = db.execute(
            """
            SELECT request_number
            FROM purchase_requests
            WHERE tenant_id = ? AND request_number LIKE ?
            ORDER BY request_number DESC
            LIMIT 1
            """,
            (self.tenant_id, f"{stem}%"),
        ).fetchone()
        sequence = 0
        if row:
            match = re.search(r"(\d+)$", str(dict(row)["request_number"]))
            if match:
                sequence = int(match.group(1))
        return f"{stem}{sequence + 1:06d}"

    def add(self, db, aggregate: PurchaseRequest, *, prefix: str = "PR") -> int:
        if aggregate.id is not None:
            raise ValueError("Purchase request already persisted")
        request_number = aggregate.request_number or self.next_request_number(
            db, prefix=prefix, year=aggregate.created_at.year
        )
        cursor = db.execute(
            """
            INSERT INTO purchase_requests (
                request_number, kind, service_category_id, material_id, project_id, description, quantity,
                uom, required_date, status, created_by, version, tenant_id, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?, ?)
            RETURNING id
            """,
            (
                request_number,
                aggregate.kind.value,
                aggregate.service_category_id,
                aggregate.material_id,
                aggregate.project_id,
                aggregate.description,
                str(aggregate.quantity),
                aggregate.uom,
                aggregate.required_date.isoformat(),
                aggregate.status.value,
                aggregate.created_by,
                self.tenant_id,
                isoformat_utc(aggregate.created_at),
                isoformat_utc(aggregate.updated_at),
            ),
        )
        purchase_request_id = self.inserted_id(cursor)
        self.items.upsert_many(db, purchase_request_id, aggregate.rfq_items)
        aggregate.assign_identity(purchase_request_id, request_number)
        aggregate.record_saved(1)
        return purchase_request_id

    def save(self, db, aggregate: PurchaseRequest) -> int:
        if aggregate.id is None:
            raise ValueError("Purchase request must be added before it can be saved")
        expected_version = aggregate.version
        cursor = db.execute(
            """
            UPDATE purchase_requests
            SET description = ?, quantity = ?, uom = ?, required_date = ?, status = ?,
                updated_at = ?, version = version + 1
            WHERE id = ? AND version = ? AND tenant_id = ?
            """,
            (
                aggregate.description,
                str(aggregate.quantity),
                aggregate.uom,
                aggregate.required_date.isoformat(),
                aggregate.status.value,
                isoformat_utc(aggregate.updated_at),
                aggregate.id,
                expected_version,
                self.tenant_id,
            ),
        )
        if int(cursor.rowcount or 0) != 1:
            raise StaleAggregateError(aggregate.id, expected_version)
        self.items.upsert_many(db, aggregate.id, aggregate.rfq_items)
        aggregate.record_saved(expected_version + 1)
        return aggregate.version

    def load(self, db, purchase_request_id: int) -> PurchaseRequest | None:
        row = db.execute(
            """
            SELECT *
            FROM purchase_requests
            WHERE id = ? AND tenant_id = ?
            LIMIT 1
            """,
            self.scoped_params((purchase_request_id,)),
        ).fetchone()
        if not row:
            return None
        header = dict(row)
        return PurchaseRequest(
            purchase_request_id=int(header["id"]),
            request_number=header["request_number"],
            kind=header["kind"],
            service_category_id=int_or_none(header.get("service_category_id")),
            material_id=int_or_none(header.get("material_id")),
            project_id=int_or_none(header.get("project_id")),
            created_by=header.get("created_by"),
            description=header["description"],
            quantity=decimal_or_none(header["quantity"]),
            uom=header.get("uom"),
            required_date=parse_date(header["required_date"]),
            status=PurchaseRequestStatus(str(header["status"])),
            rfq_items=self.items.list_for_request(db, int(header["id"])),
            version=int(header["version"]),
            created_at=parse_datetime(header.get("created_at")),
            updated_at=parse_datetime(header.get("updated_at")),
        )

    def list_summary(self, db, *, status: str | None = None, limit: int = 200) -> list[dict]:
        params: list = [self.tenant_id]
        status_clause = ""
        if status:
            status_clause = "AND pr.status = ?"
            params.append(status)
        params.append(int(limit))
        rows = db.execute(
            f"""
            SELECT pr.id, pr.request_number, pr.kind, pr.description, pr.quantity, pr.uom,
                   pr.required_date, pr.status, pr.updated_at,
                   (SELECT COUNT(*) FROM rfq_items ri WHERE ri.purchase_request_id = pr.id) AS rfq_items_total
            FROM purchase_requests pr
            WHERE pr.tenant_id = ? {status_clause}
            ORDER BY pr.id DESC
            LIMIT ?
            """,
            tuple(params),
        ).fetchall()
        summaries = self.rows_to_dicts(rows)
        for summary in summaries:
            summary["quantity"] = str(summary["quantity"])
            summary["required_date"] = parse_date(summary["required_date"]).isoformat()
            summary["updated_at"] = isoformat_utc(parse_datetime(summary["updated_at"]))
            summary["rfq_items_total"] = int(summary["rfq_items_total"] or 0)
        return summaries

    def count(self, db) -> int:
        row = db.execute(
            "SELECT COUNT(*) AS total FROM purchase_requests WHERE tenant_id = ?",
            (self.tenant_id,),
        ).fetchone()
        return int(dict(row)["total"]) if row else 0
