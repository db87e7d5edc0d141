from __future__ import annotations

import re
from datetime import datetime, UTC
from urllib.parse import quote

XLSX_SUFFIX = ".xlsx"


def sanitize_name(value: str, fallback: str = "aquatron_data") -> str:
    if not value:
        return fallback
    sanitized = re.sub(r"[^\w\s.-]", "", value, flags=re.UNICODE).strip()
    sanitized = re.sub(r"\s+", "_", sanitized)
    sanitized = sanitized.lstrip(".")
    return sanitized or fallback


def build_xlsx_filename(value: str | None, fallback: str = "aquatron_data") -> str:
    sanitized = sanitize_name(value or "", fallback)
    if sanitized.lower().endswith(XLSX_SUFFIX):
        sanitized = sanitized[: -len(XLSX_SUFFIX)] or fallback
    return f"{sanitized}{XLSX_SUFFIX}"


def dated_backup_filename(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return f"aquatron_backup_{now.date().isoformat()}{XLSX_SUFFIX}"


def content_disposition(filename: str) -> str:
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'
