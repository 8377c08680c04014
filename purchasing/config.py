import os


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    BASE_DIR = os.path.dirname(os.path.dirname(__file__))
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_DIR = None if DATABASE_URL else os.path.join(BASE_DIR, "database")
    DB_PATH = DATABASE_URL or os.path.join(DATABASE_DIR, "purchasing.db")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", False)

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-purchasing")
    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    PURCHASE_REQUEST_NUMBER_PREFIX = os.environ.get("PURCHASE_REQUEST_NUMBER_PREFIX", "PR")
    PURCHASE_REQUEST_SAVE_RETRIES = _int_env("PURCHASE_REQUEST_SAVE_RETRIES", 2)
    PURCHASE_REQUEST_LIST_LIMIT = _int_env("PURCHASE_REQUEST_LIST_LIMIT", 200)

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not set for production.")
        if env == "production" and self.SECRET_KEY == "dev-secret-purchasing":
            raise RuntimeError("SECRET_KEY is insecure for production.")
