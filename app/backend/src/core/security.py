"""Bearer-token validation for report endpoints.

Tokens are issued and refreshed by the identity service; this module only
checks the signature and reads the member id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from app.backend.src.core.config import get_settings

LOGGER = structlog.get_logger(__name__)

_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentMember:
    member_id: int
    login_id: str | None = None


def _decode_token(token: str, *, secret: str, algorithm: str) -> dict[str, Any]:
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except ExpiredSignatureError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
        ) from exc
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc


def _member_id_from_claims(claims: dict[str, Any]) -> int:
    raw = claims.get("memberId", claims.get("sub"))
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing member id",
        ) from exc


def get_current_member(
    credentials: HTTPAuthorizationCredentials | None = Depends(_scheme),
) -> CurrentMember:
    """Resolve the authenticated member from the bearer token."""

    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    settings = get_settings()
    if not settings.jwt_secret:
        LOGGER.error("jwt_secret_missing")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication is not configured",
        )

    claims = _decode_token(
        credentials.credentials,
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    login_id = claims.get("sub") if isinstance(claims.get("sub"), str) else None
    return CurrentMember(member_id=_member_id_from_claims(claims), login_id=login_id)


__all__ = ["CurrentMember", "get_current_member"]
