from typing import Dict

from fastapi import APIRouter, Depends, HTTPException

from aquatron import schemas
from aquatron.security import create_access_token, require_read_access
from aquatron.services import user_store

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=schemas.Token)
async def login(payload: schemas.LoginRequest):
    user = user_store.authenticate_user(payload.username, payload.password)
    if not user:
        raise HTTPException(status_code=400, detail="Invalid username or password")

    token = create_access_token({"sub": user["username"], "role": user["role"]})
    return schemas.Token(access_token=token, token_type="bearer", role=user["role"])


@router.get("/me", response_model=schemas.UserRead)
async def read_me(current_user: Dict[str, str] = Depends(require_read_access)):
    return current_user
