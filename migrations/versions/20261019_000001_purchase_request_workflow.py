"""Purchase request workflow baseline: requests, RFQ items and status history.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


PURCHASE_REQUEST_STATUSES = ("draft", "rfq_sent", "vendor_selected", "ordered", "closed", "canceled")
RFQ_ITEM_STATUSES = ("sent", "replied", "no_response", "selected", "rejected")
PURCHASE_REQUEST_KINDS = ("service", "material")


def _is_postgres(bind) -> bool:
    return str(getattr(getattr(bind, "dialect", None), "name", "") or "").lower().startswith("postgres")


def _now_default(bind):
    # NOW() in PostgreSQL, CURRENT_TIMESTAMP in SQLite test runs.
    return sa.text("NOW()") if _is_postgres(bind) else sa.text("CURRENT_TIMESTAMP")


def _in_check(column: str, values: Sequence[str]) -> str:
    quoted = ",".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


def _table_exists(bind, table_name: str) -> bool:
    inspector = sa.inspect(bind)
    return bool(inspector.has_table(table_name))


def _index_exists(bind, table_name: str, index_name: str) -> bool:
    inspector = sa.inspect(bind)
    if not inspector.has_table(table_name):
        return False
    for index in inspector.get_indexes(table_name):
        if str(index.get("name") or "") == index_name:
            return True
    return False


def _create_index_if_missing(bind, index_name: str, table_name: str, columns: list[str]) -> None:
    if not _index_exists(bind, table_name, index_name):
        op.create_index(index_name, table_name, columns, unique=False)


def upgrade() -> None:
    bind = op.get_bind()
    now_default = _now_default(bind)
    big_id = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

    if not _table_exists(bind, "purchase_requests"):
        op.create_table(
            "purchase_requests",
            sa.Column("id", big_id, primary_key=True, autoincrement=True),
            sa.Column("request_number", sa.Text(), nullable=False),
            sa.Column("kind", sa.Text(), nullable=False),
            sa.Column("service_category_id", sa.BigInteger(), nullable=True),
            sa.Column("material_id", sa.BigInteger(), nullable=True),
            sa.Column("project_id", sa.BigInteger(), nullable=True),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("quantity", sa.Numeric(12, 2), nullable=False),
            sa.Column("uom", sa.Text(), nullable=True),
            sa.Column("required_date", sa.Date(), nullable=False),
            sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'draft'")),
            sa.Column("created_by", sa.Text(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
            sa.Column("tenant_id", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=now_default),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=now_default),
            sa.CheckConstraint(_in_check("kind", PURCHASE_REQUEST_KINDS), name="ck_purchase_requests_kind"),
            sa.CheckConstraint(_in_check("status", PURCHASE_REQUEST_STATUSES), name="ck_purchase_requests_status"),
            sa.UniqueConstraint("tenant_id", "request_number", name="uq_purchase_requests_tenant_number"),
        )
    _create_index_if_missing(
        bind, "idx_purchase_requests_tenant_status", "purchase_requests", ["tenant_id", "status"]
    )

    if not _table_exists(bind, "rfq_items"):
        op.create_table(
            "rfq_items",
            sa.Column("id", big_id, primary_key=True, autoincrement=True),
            sa.Column(
                "purchase_request_id",
                sa.BigInteger(),
                sa.ForeignKey("purchase_requests.id", name="fk_rfq_items_purchase_request"),
                nullable=False,
            ),
            sa.Column("item_id", sa.Integer(), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False),
            sa.Column("vendor_id", sa.BigInteger(), nullable=False),
            sa.Column("vendor_offering_id", sa.BigInteger(), nullable=True),
            sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'sent'")),
            sa.Column("quoted_price", sa.Numeric(14, 2), nullable=True),
            sa.Column("quoted_lead_time", sa.Integer(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("replied_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("tenant_id", sa.Text(), nullable=False),
            sa.CheckConstraint(_in_check("status", RFQ_ITEM_STATUSES), name="ck_rfq_items_status"),
            sa.UniqueConstraint("purchase_request_id", "item_id", name="uq_rfq_items_request_item"),
        )
    _create_index_if_missing(
        bind, "idx_rfq_items_purchase_request", "rfq_items", ["purchase_request_id", "position"]
    )
    if not _index_exists(bind, "rfq_items", "uq_rfq_items_one_selected"):
        op.create_index(
            "uq_rfq_items_one_selected",
            "rfq_items",
            ["purchase_request_id"],
            unique=True,
            sqlite_where=sa.text("status = 'selected'"),
            postgresql_where=sa.text("status = 'selected'"),
        )

    if not _table_exists(bind, "status_events"):
        op.create_table(
            "status_events",
            sa.Column("id", big_id, primary_key=True, autoincrement=True),
            sa.Column("entity", sa.Text(), nullable=False),
            sa.Column("entity_id", sa.BigInteger(), nullable=False),
            sa.Column("rfq_item_id", sa.Integer(), nullable=True),
            sa.Column("operation", sa.Text(), nullable=True),
            sa.Column("from_status", sa.Text(), nullable=True),
            sa.Column("to_status", sa.Text(), nullable=True),
            sa.Column("reason", sa.Text(), nullable=True),
            sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=now_default),
            sa.Column("tenant_id", sa.Text(), nullable=False),
        )
    _create_index_if_missing(
        bind, "idx_status_events_entity", "status_events", ["tenant_id", "entity", "entity_id"]
    )


def downgrade() -> None:
    bind = op.get_bind()

    if _index_exists(bind, "status_events", "idx_status_events_entity"):
        op.drop_index("idx_status_events_entity", table_name="status_events")
    if _index_exists(bind, "rfq_items", "uq_rfq_items_one_selected"):
        op.drop_index("uq_rfq_items_one_selected", table_name="rfq_items")
    if _index_exists(bind, "rfq_items", "idx_rfq_items_purchase_request"):
        op.drop_index("idx_rfq_items_purchase_request", table_name="rfq_items")
    if _index_exists(bind, "purchase_requests", "idx_purchase_requests_tenant_status"):
        op.drop_index("idx_purchase_requests_tenant_status", table_name="purchase_requests")

    op.execute("DROP TABLE IF EXISTS status_events")
    op.execute("DROP TABLE IF EXISTS rfq_items")
    op.execute("DROP TABLE IF EXISTS purchase_requests")
