from __future__ import annotations

from purchasing.contexts.procurement.domain import StatusChange
from purchasing.contexts.procurement.domain.rfq_item import isoformat_utc
from purchasing.infrastructure.repositories.base import BaseRepository


class StatusEventRepository(BaseRepository):
    def add_event(
        self,
        db,
        *,
        entity: str,
        entity_id: int,
        from_status: str | None,
        to_status: str | None,
        operation: str | None = None,
        rfq_item_id: int | None = None,
        reason: str | None = None,
        occurred_at: str | None = None,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO status_events (
                entity, entity_id, rfq_item_id, operation, from_status, to_status, reason, occurred_at, tenant_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP), ?)
            RETURNING id
            """,
            self.scoped_params((entity, entity_id, rfq_item_id, operation, from_status, to_status, reason, occurred_at)),
        )
        return self.inserted_id(cursor)

    def add_changes(self, db, purchase_request_id: int, changes: list[StatusChange]) -> int:
        for change in changes:
            self.add_event(
                db,
                entity=change.entity,
                entity_id=purchase_request_id,
                rfq_item_id=change.item_id,
                operation=change.operation,
                from_status=change.from_status,
                to_status=change.to_status,
                occurred_at=isoformat_utc(change.occurred_at),
            )
        return len(changes)

    def list_for_entity(self, db, *, entity_id: int, entity: str | None = None, limit: int = 120) -> list[dict]:
        params: list = [entity_id, self.tenant_id]
        entity_clause = ""
        if entity:
            entity_clause = "AND entity = ?"
            params.append(entity)
        params.append(int(limit))
        rows = db.execute(
            f"""
            SELECT id, entity, entity_id, rfq_item_id, operation, from_status, to_status, reason, occurred_at
            FROM status_events
            WHERE entity_id = ? AND tenant_id = ? {entity_clause}
            ORDER BY id DESC
            LIMIT ?
            """,
            tuple(params),
        ).fetchall()
        return self.rows_to_dicts(rows)
