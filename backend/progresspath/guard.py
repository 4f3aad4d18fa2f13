# progresspath/guard.py
from __future__ import annotations

import hmac
from typing import Optional

from .errors import AuthorizationError


def _bearer_token(authorization: Optional[str]) -> str:
    auth = (authorization or "").strip()
    if not auth.lower().startswith("bearer "):
        return ""
    return auth.split(" ", 1)[1].strip()


def verify_bearer(authorization: Optional[str], secret: Optional[str]) -> None:
    """
    Accept only "Authorization: Bearer <secret>".
    Raises AuthorizationError before anything else happens.
    """
    expected = (secret or "").strip()
    token = _bearer_token(authorization)

    if not token:
        raise AuthorizationError("Missing Authorization Bearer token")
    if not expected or not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        raise AuthorizationError("Invalid trigger secret")
