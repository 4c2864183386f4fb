# campusquest/auth/token.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from campusquest.core.config import settings
from campusquest.core.errors import Unauthenticated

# Key/alg
SECRET_KEY = settings.JWT_SECRET
ALGORITHM = settings.JWT_ALG
ACCESS_TOKEN_EXPIRE_MINUTES = 60


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Mint a token shaped like the identity provider's. Used by tests and local tooling."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    if settings.JWT_AUDIENCE and "aud" not in to_encode:
        to_encode["aud"] = settings.JWT_AUDIENCE
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    options = {"verify_aud": bool(settings.JWT_AUDIENCE)}
    try:
        payload = jwt.decode(
            token,
            SECRET_KEY,
            algorithms=[ALGORITHM],
            audience=settings.JWT_AUDIENCE or None,
            options=options,
        )
    except JWTError:
        raise Unauthenticated("Invalid or expired token")

    sub = payload.get("sub")
    if not sub or not isinstance(sub, str):
        raise Unauthenticated("Invalid token payload")
    return payload
