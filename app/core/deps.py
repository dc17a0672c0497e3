from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.core.security import ROLE_ADMIN, ROLE_CUSTOMER, TokenError, decode_token

# Tokens are issued by the storefront's auth service; this backend only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


@dataclass(frozen=True)
class Principal:
    id: int
    role: str


def _principal_from_token(token: str) -> Principal:
    try:
        payload = decode_token(token)
    except TokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    # Support common claim keys
    principal_id = payload.get("sub") or payload.get("user_id") or payload.get("id")
    if principal_id is None:
        raise HTTPException(status_code=401, detail="Token missing principal id (sub)")

    try:
        principal_id_int = int(principal_id)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid principal id in token")

    role = payload.get("role")
    if role not in (ROLE_ADMIN, ROLE_CUSTOMER):
        raise HTTPException(status_code=401, detail="Token has unknown role")

    return Principal(id=principal_id_int, role=role)


async def get_current_principal(token: str | None = Depends(oauth2_scheme)) -> Principal:
    if not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return _principal_from_token(token)


async def get_optional_principal(token: str | None = Depends(oauth2_scheme)) -> Principal | None:
    # Guests check out without a token; a token that is present must still be valid.
    if not token:
        return None
    return _principal_from_token(token)


def require_admin(current: Principal = Depends(get_current_principal)) -> Principal:
    if current.role != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Admin only")
    return current
