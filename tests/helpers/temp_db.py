from __future__ import annotations

import shutil
import tempfile
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

from purchasing.db import Database, connect_database, create_schema


_REPO_ROOT = Path(__file__).resolve().parents[2]
_TEMP_ROOT = Path(tempfile.gettempdir()).resolve()


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def assert_safe_temp_db_path(db_path: str) -> None:
    resolved = Path(db_path).resolve()
    if not _is_within(resolved, _TEMP_ROOT):
        raise ValueError(f"Temporary DB must live under TEMP: {resolved}")
    if _is_within(resolved, _REPO_ROOT):
        raise ValueError(f"Temporary DB cannot live inside repository: {resolved}")


def remove_tree_with_retry(path: str, attempts: int = 8, base_delay: float = 0.05) -> None:
    root = Path(path)
    for attempt in range(attempts):
        if not root.exists():
            return
        try:
            shutil.rmtree(root)
            return
        except FileNotFoundError:
            return
        except OSError:
            time.sleep(base_delay * (2**attempt))


@dataclass
class TempDbSandbox:
    """Throwaway sqlite database under the system temp dir.

    ``make_config`` builds a ``Config`` subclass pointing the app at it;
    ``connect`` opens the same file without an app for repository tests.
    """

    prefix: str = "purchasing_tests"
    db_name: str = "purchasing_test.db"

    def __post_init__(self) -> None:
        folder = _TEMP_ROOT / f"{self.prefix}_{uuid.uuid4().hex}"
        folder.mkdir(parents=True, exist_ok=False)
        self.temp_dir = str(folder)
        self.db_path = str(folder / self.db_name)
        assert_safe_temp_db_path(self.db_path)

    def make_config(self, base_config, **overrides):
        attrs = {
            "DATABASE_DIR": self.temp_dir,
            "DB_PATH": self.db_path,
            "TESTING": True,
            "LOG_JSON": False,
        }
        attrs.update(overrides)
        return type("TempConfig", (base_config,), attrs)

    def connect(self, *, init_schema: bool = True) -> Database:
        db = connect_database(self.db_path)
        if init_schema:
            create_schema(db)
            db.commit()
        return db

    def cleanup(self) -> None:
        remove_tree_with_retry(self.temp_dir)
