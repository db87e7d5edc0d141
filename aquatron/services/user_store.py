from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import HTTPException
from passlib.context import CryptContext

from aquatron import config

ROLES = ("user", "admin", "superadmin")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def users_path() -> Path:
    return Path(config.USERS_FILE)


def _read_users() -> Dict[str, Dict[str, Any]]:
    path = users_path()
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        raise HTTPException(status_code=500, detail=f"Failed to read {path.name}: {exc}") from exc
    if not isinstance(data, dict):
        raise HTTPException(status_code=500, detail=f"{path.name} must contain a JSON object")
    return data


def _write_users(data: Dict[str, Dict[str, Any]]) -> None:
    path = users_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            json.dump(data, fh, ensure_ascii=False, indent=2)
    except OSError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to save {path.name}: {exc}") from exc


def get_user(username: str) -> Optional[Dict[str, str]]:
    entry = _read_users().get(username)
    if not entry:
        return None
    return {"username": username, "role": entry.get("role", "user")}


def authenticate_user(username: str, password: str) -> Optional[Dict[str, str]]:
    entry = _read_users().get(username)
    if not entry or not entry.get("password_hash"):
        return None
    if not pwd_context.verify(password, entry["password_hash"]):
        return None
    return {"username": username, "role": entry.get("role", "user")}


def save_user(username: str, password: str, role: str = "user") -> Dict[str, str]:
    if role not in ROLES:
        raise ValueError(f"Unknown role '{role}'")
    data = _read_users()
    data[username] = {"password_hash": pwd_context.hash(password), "role": role}
    _write_users(data)
    return {"username": username, "role": role}
