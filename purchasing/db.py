import sqlite3
from typing import Iterable

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g


PURCHASE_REQUEST_STATUSES = ("draft", "rfq_sent", "vendor_selected", "ordered", "closed", "canceled")
RFQ_ITEM_STATUSES = ("sent", "replied", "no_response", "selected", "rejected")
PURCHASE_REQUEST_KINDS = ("service", "material")


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection

    def execute(self, sql: str, params: Iterable | None = None):
        if self.backend == "postgres":
            cursor = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            if params:
                sql = _convert_qmark_to_pg(sql)
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return cursor
        return self._conn.execute(sql, params or ())

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def _check_list(values: Iterable[str]) -> str:
    return ",".join(f"'{value}'" for value in values)


def connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 is not installed.")
        conn = psycopg2.connect(db_path)
        # Aggregate saves span several statements and must commit together.
        conn.autocommit = False
        return Database("postgres", conn)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return Database("sqlite", conn)


def get_db():
    if "db" not in g:
        db_path = current_app.config["DB_PATH"]
        g.db = connect_database(db_path)
    return g.db


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db():
    db = get_db()
    create_schema(db)
    db.commit()


def create_schema(db: Database) -> None:
    if db.backend == "postgres":
        _init_db_postgres(db)
    else:
        _init_db_sqlite(db)


def _init_db_sqlite(db: Database):
    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS purchase_requests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            request_number TEXT NOT NULL,
            kind TEXT NOT NULL CHECK (kind IN ({_check_list(PURCHASE_REQUEST_KINDS)})),
            service_category_id INTEGER,
            material_id INTEGER,
            project_id INTEGER,
            description TEXT NOT NULL,
            quantity TEXT NOT NULL,
            uom TEXT,
            required_date TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'draft' CHECK (
                status IN ({_check_list(PURCHASE_REQUEST_STATUSES)})
            ),
            created_by TEXT,
            version INTEGER NOT NULL DEFAULT 1,
            tenant_id TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (tenant_id, request_number)
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS rfq_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            purchase_request_id INTEGER NOT NULL REFERENCES purchase_requests(id),
            item_id INTEGER NOT NULL,
            position INTEGER NOT NULL,
            vendor_id INTEGER NOT NULL,
            vendor_offering_id INTEGER,
            status TEXT NOT NULL DEFAULT 'sent' CHECK (
                status IN ({_check_list(RFQ_ITEM_STATUSES)})
            ),
            quoted_price TEXT,
            quoted_lead_time INTEGER,
            notes TEXT,
            sent_at TEXT,
            replied_at TEXT,
            tenant_id TEXT NOT NULL,
            UNIQUE (purchase_request_id, item_id)
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS status_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            entity TEXT NOT NULL,
            entity_id INTEGER NOT NULL,
            rfq_item_id INTEGER,
            operation TEXT,
            from_status TEXT,
            to_status TEXT,
            reason TEXT,
            occurred_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            tenant_id TEXT NOT NULL
        )
        """
    )

    _create_indexes(db)


def _init_db_postgres(db: Database) -> None:
    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS purchase_requests (
            id BIGSERIAL PRIMARY KEY,
            request_number TEXT NOT NULL,
            kind TEXT NOT NULL CHECK (kind IN ({_check_list(PURCHASE_REQUEST_KINDS)})),
            service_category_id BIGINT,
            material_id BIGINT,
            project_id BIGINT,
            description TEXT NOT NULL,
            quantity NUMERIC(12, 2) NOT NULL,
            uom TEXT,
            required_date DATE NOT NULL,
            status TEXT NOT NULL DEFAULT 'draft' CHECK (
                status IN ({_check_list(PURCHASE_REQUEST_STATUSES)})
            ),
            created_by TEXT,
            version INTEGER NOT NULL DEFAULT 1,
            tenant_id TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (tenant_id, request_number)
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS rfq_items (
            id BIGSERIAL PRIMARY KEY,
            purchase_request_id BIGINT NOT NULL REFERENCES purchase_requests(id),
            item_id INTEGER NOT NULL,
            position INTEGER NOT NULL,
            vendor_id BIGINT NOT NULL,
            vendor_offering_id BIGINT,
            status TEXT NOT NULL DEFAULT 'sent' CHECK (
                status IN ({_check_list(RFQ_ITEM_STATUSES)})
            ),
            quoted_price NUMERIC(14, 2),
            quoted_lead_time INTEGER,
            notes TEXT,
            sent_at TIMESTAMPTZ,
            replied_at TIMESTAMPTZ,
            tenant_id TEXT NOT NULL,
            UNIQUE (purchase_request_id, item_id)
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS status_events (
            id BIGSERIAL PRIMARY KEY,
            entity TEXT NOT NULL,
            entity_id BIGINT NOT NULL,
            rfq_item_id INTEGER,
            operation TEXT,
            from_status TEXT,
            to_status TEXT,
            reason TEXT,
            occurred_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            tenant_id TEXT NOT NULL
        )
        """
    )

    _create_indexes(db)


def _create_indexes(db: Database) -> None:
    db.execute(
        "CREATE INDEX IF NOT EXISTS idx_purchase_requests_tenant_status ON purchase_requests (tenant_id, status)"
    )
    db.execute(
        "CREATE INDEX IF NOT EXISTS idx_rfq_items_purchase_request ON rfq_items (purchase_request_id, position)"
    )
    db.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS uq_rfq_items_one_selected ON rfq_items (purchase_request_id) "
        "WHERE status = 'selected'"
    )
    db.execute(
        "CREATE INDEX IF NOT EXISTS idx_status_events_entity ON status_events (tenant_id, entity, entity_id)"
    )
