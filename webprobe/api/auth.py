"""Bearer-header check applied to every ``/api`` route.

Only the shape of the header is verified: ``Authorization: Bearer <token>``
with a non-empty token.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException


def require_bearer(authorization: Optional[str] = Header(default=None)) -> str:
    """Return the bearer token or reject the request with 401."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")
    if not parts[1]:
        raise HTTPException(status_code=401, detail="Token not found")
    return parts[1]
