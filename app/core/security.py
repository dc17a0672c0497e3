from __future__ import annotations

import jwt
from datetime import datetime, timedelta, timezone

from app.core.config import settings

ROLE_ADMIN = "admin"
ROLE_CUSTOMER = "customer"


class TokenError(Exception):
    pass


# -------------------------
# JWT tokens
# -------------------------
def create_access_token(*, principal_id: int, role: str, minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = minutes if minutes is not None else settings.JWT_ACCESS_MINUTES
    payload = {
        "sub": str(principal_id),
        "role": role,
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl)).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except jwt.ExpiredSignatureError as e:
        raise TokenError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenError("Invalid token") from e
