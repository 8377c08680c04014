import os
import sqlite3
import unittest

from purchasing import create_app
from purchasing.config import Config
from purchasing.core import reset_event_bus_for_tests
from purchasing.db import close_db
from tests.helpers.temp_db import TempDbSandbox


def _table_exists(db_path: str, table_name: str) -> bool:
    conn = sqlite3.connect(db_path)
    try:
        row = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name = ?",
            (table_name,),
        ).fetchone()
        return row is not None
    finally:
        conn.close()


class DbMigrationsTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_event_bus_for_tests()
        self.sandbox = TempDbSandbox(prefix="purchasing_migrations_test")
        self.db_path = self.sandbox.db_path
        self._prev_env = os.environ.get("FLASK_ENV")
        os.environ["FLASK_ENV"] = "development"

    def tearDown(self) -> None:
        if self._prev_env is None:
            os.environ.pop("FLASK_ENV", None)
        else:
            os.environ["FLASK_ENV"] = self._prev_env
        reset_event_bus_for_tests()
        self.sandbox.cleanup()

    def _build_app(self, *, db_auto_init: bool):
        return create_app(self.sandbox.make_config(Config, TESTING=False, DB_AUTO_INIT=db_auto_init))

    def test_schema_not_created_by_default(self) -> None:
        app = self._build_app(db_auto_init=False)
        with app.app_context():
            close_db()

        self.assertFalse(_table_exists(self.db_path, "purchase_requests"))

    def test_schema_created_with_explicit_dev_flag(self) -> None:
        app = self._build_app(db_auto_init=True)
        with app.app_context():
            close_db()

        for table_name in ("purchase_requests", "rfq_items", "status_events"):
            self.assertTrue(_table_exists(self.db_path, table_name), table_name)

    def test_auto_init_is_ignored_outside_development(self) -> None:
        os.environ["FLASK_ENV"] = "staging"
        app = self._build_app(db_auto_init=True)
        with app.app_context():
            close_db()

        self.assertFalse(_table_exists(self.db_path, "purchase_requests"))

    def test_flask_db_upgrade_and_downgrade(self) -> None:
        app = self._build_app(db_auto_init=False)
        runner = app.test_cli_runner()

        upgrade_result = runner.invoke(args=["db", "upgrade"])
        self.assertEqual(upgrade_result.exit_code, 0, msg=upgrade_result.output)
        self.assertTrue(_table_exists(self.db_path, "purchase_requests"))
        self.assertTrue(_table_exists(self.db_path, "rfq_items"))
        self.assertTrue(_table_exists(self.db_path, "status_events"))

        downgrade_result = runner.invoke(args=["db", "downgrade", "base"])
        self.assertEqual(downgrade_result.exit_code, 0, msg=downgrade_result.output)
        self.assertFalse(_table_exists(self.db_path, "purchase_requests"))
        self.assertFalse(_table_exists(self.db_path, "rfq_items"))

        reupgrade_result = runner.invoke(args=["db", "upgrade"])
        self.assertEqual(reupgrade_result.exit_code, 0, msg=reupgrade_result.output)
        self.assertTrue(_table_exists(self.db_path, "purchase_requests"))

    def test_flask_db_init_creates_schema(self) -> None:
        app = self._build_app(db_auto_init=False)

        result = app.test_cli_runner().invoke(args=["db", "init"])

        self.assertEqual(result.exit_code, 0, msg=result.output)
        self.assertTrue(_table_exists(self.db_path, "status_events"))


if __name__ == "__main__":
    unittest.main()
