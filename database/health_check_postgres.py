from __future__ import annotations

import os
import sys

import psycopg2


REQUIRED_TABLES = ("purchase_requests", "rfq_items", "status_events")


def main() -> None:
    db_url = os.environ.get("DATABASE_URL")
    if not db_url:
        raise RuntimeError("Set DATABASE_URL to the Postgres instance.")

    conn = psycopg2.connect(db_url)
    conn.autocommit = True
    try:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
            cur.fetchone()
            cur.execute(
                """
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = 'public'
                ORDER BY table_name
                """
            )
            tables = [row[0] for row in cur.fetchall()]
    finally:
        conn.close()

    missing = [name for name in REQUIRED_TABLES if name not in tables]
    if missing:
        raise RuntimeError(f"Missing tables: {', '.join(missing)}. Run `flask db upgrade`.")
    print("Postgres OK. Tables:", ", ".join(tables))


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:
        print(f"Health check failed: {exc}")
        sys.exit(1)
