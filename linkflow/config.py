import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


def _extensions(raw: str) -> tuple[str, ...]:
    items = [item.strip().lower() for item in raw.split(",")]
    return tuple(item if item.startswith(".") else f".{item}" for item in items if item)


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'linkflow.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    IMPORT_MAX_BYTES = int(os.environ.get("IMPORT_MAX_BYTES", str(5 * 1024 * 1024)))
    IMPORT_ALLOWED_EXTENSIONS = _extensions(
        os.environ.get("IMPORT_ALLOWED_EXTENSIONS", ".html,.htm")
    )
    # multipart framing overhead on top of the raw upload
    MAX_CONTENT_LENGTH = IMPORT_MAX_BYTES + 64 * 1024
    IMPORT_NOTIFICATIONS_ENABLED = (
        os.environ.get("IMPORT_NOTIFICATIONS_ENABLED", "1") == "1"
    )


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    IMPORT_MAX_BYTES = 4096
    MAX_CONTENT_LENGTH = None
