import os
from dotenv import load_dotenv
from pathlib import Path

load_dotenv()


def _read_env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _read_int(name: str, default: int) -> int:
    value = _read_env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {value!r}") from exc


PROJECT_ROOT = Path(__file__).resolve().parents[1]

SECRET_KEY = _read_env("SECRET_KEY") or "dev-secret-change-me"
ACCESS_TOKEN_EXPIRE_MINUTES = _read_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60)
CORS_ORIGINS = [origin.strip() for origin in (_read_env("CORS_ORIGINS") or "*").split(",") if origin.strip()]

EXPORT_DIR = Path(_read_env("EXPORT_DIR") or PROJECT_ROOT / "exports")
USERS_FILE = Path(_read_env("USERS_FILE") or PROJECT_ROOT / "users.json")

# 10 MiB, the upload limit the dashboard advertises
MAX_UPLOAD_BYTES = _read_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)
EXCEL_FORMAT_VERSION = _read_env("EXCEL_FORMAT_VERSION") or "1.1"
BACKUP_VERSION = _read_env("BACKUP_VERSION") or "1.0"
