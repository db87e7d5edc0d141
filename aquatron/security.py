from datetime import datetime, timedelta, UTC
from typing import Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from aquatron import config
from aquatron.services import user_store

ALGORITHM = "HS256"

ROLE_PRIORITY = {"user": 1, "admin": 2, "superadmin": 3}

bearer_required = HTTPBearer(auto_error=True)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=ALGORITHM)


def _decode_token(token: str) -> str:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials")
    username = payload.get("sub")
    if not username:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return str(username)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_required),
) -> Dict[str, str]:
    username = _decode_token(credentials.credentials)
    user = user_store.get_user(username)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return user


def _ensure_role(user: Dict[str, str], minimum: str):
    user_level = ROLE_PRIORITY.get(user.get("role"), 0)
    min_level = ROLE_PRIORITY.get(minimum, 0)
    if user_level < min_level:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")


async def require_read_access(current_user: Dict[str, str] = Depends(get_current_user)):
    return current_user


async def require_admin_access(current_user: Dict[str, str] = Depends(get_current_user)):
    _ensure_role(current_user, "admin")
    return current_user
