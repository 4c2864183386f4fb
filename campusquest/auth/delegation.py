"""
Per-request data-access handles.

Every read and write made on behalf of a caller goes through a
`DelegatedHandle` built from that caller's bearer token. The handle is passed
explicitly to each service call; there is no module-level privileged handle
to fall back to.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from campusquest.auth.token import decode_access_token
from campusquest.core.errors import Unauthenticated
from campusquest.database import CALLER_CLAIMS_KEY, bind_caller, get_db


@dataclass
class DelegatedHandle:
    token: str
    db: Session
    _claims: Optional[dict] = field(default=None, repr=False)

    def claims(self) -> dict:
        # Decoded lazily: building a handle never touches the token contents
        if self._claims is None:
            self._claims = decode_access_token(self.token)
            self._bind_session()
        return self._claims

    def _bind_session(self) -> None:
        # Transactions begun from here on run as the caller
        self.db.info[CALLER_CLAIMS_KEY] = json.dumps(self._claims)
        if self.db.in_transaction():
            bind_caller(self.db, None, self.db.connection())

    def actor_id(self) -> str:
        return self.claims()["sub"]


def bearer_token(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    parts = header.strip().split(None, 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def handle_from_authorization(header: Optional[str], db: Session) -> Optional[DelegatedHandle]:
    """
    Build a handle scoped to the token in an `Authorization` header.

    Returns None for a missing or malformed header; callers must treat that as
    an authentication failure.
    """
    token = bearer_token(header)
    if token is None:
        return None
    return DelegatedHandle(token=token, db=db)


def get_optional_handle(request: Request, db: Session = Depends(get_db)) -> Optional[DelegatedHandle]:
    return handle_from_authorization(request.headers.get("Authorization"), db)


def get_handle(handle: Optional[DelegatedHandle] = Depends(get_optional_handle)) -> DelegatedHandle:
    if handle is None:
        raise Unauthenticated("Missing or malformed Authorization header")
    # Reject bad tokens at the boundary instead of deep inside a service call
    handle.actor_id()
    return handle
