"""
FastAPI Authentication Dependencies

The identity provider sits in front of the service; the gateway forwards the
authenticated subject as headers. These dependencies read them and never
verify credentials themselves.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from fastapi import Header, HTTPException, Request, status

logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    """Identity forwarded by the gateway"""
    external_id: str
    email: str = ""
    first_name: Optional[str] = None


async def require_user(
    request: Request,
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    user_id: Optional[str] = Header(None, alias="user-id"),
    x_user_email: Optional[str] = Header(None, alias="X-User-Email"),
    x_user_first_name: Optional[str] = Header(None, alias="X-User-First-Name"),
) -> AuthContext:
    """
    Authentication dependency: a user identity is required.

    Raises:
        HTTPException 401: no identity header present
    """
    external_id = (x_user_id or user_id or "").strip()
    if not external_id:
        logger.debug(f"Unauthenticated request to {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    return AuthContext(
        external_id=external_id,
        email=(x_user_email or "").strip(),
        first_name=(x_user_first_name or "").strip() or None,
    )


def extract_api_key(
    x_api_key: Optional[str],
    authorization: Optional[str],
) -> Optional[str]:
    """Return the shared key from either an x-api-key or a Bearer header"""
    if x_api_key:
        return x_api_key.strip()
    if authorization:
        value = authorization.strip()
        if value.lower().startswith("bearer "):
            return value[7:].strip()
        return value
    return None


__all__ = [
    "AuthContext",
    "require_user",
    "extract_api_key",
]
