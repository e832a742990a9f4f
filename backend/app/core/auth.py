"""
Authentication boundary for the profit sharing backend.

Tokens are issued by the external identity provider and signed with the
shared SECRET_KEY. This module only verifies them and turns the claims into
an Actor that is passed explicitly into the profit sharing services.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from app.core.config import settings


# Security scheme
security = HTTPBearer(auto_error=False)

ROLE_ADMIN = "admin"
ROLE_USER = "user"


@dataclass(frozen=True)
class Actor:
    """The authenticated identity performing an action."""
    user_id: str
    email: Optional[str] = None
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        if self.role == ROLE_ADMIN:
            return True
        admin_emails = {e.lower() for e in settings.PROFIT_SHARING_ADMIN_EMAILS}
        return bool(self.email) and self.email.lower() in admin_emails


class AuthError(HTTPException):
    """Authentication error."""
    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except JWTError as e:
        if "expired" in str(e).lower():
            raise AuthError("Token has expired")
        raise AuthError("Invalid token")


def actor_from_claims(payload: dict) -> Actor:
    """Build an Actor from decoded token claims."""
    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Token has no subject")
    return Actor(
        user_id=str(user_id),
        email=payload.get("email"),
        role=payload.get("role") or ROLE_USER,
    )


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    """
    Dependency to get the current authenticated actor.
    """
    if credentials is None:
        raise AuthError("Authentication required")

    return actor_from_claims(decode_token(credentials.credentials))


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Dependency for admin-only endpoints."""
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Profit sharing admin access required",
        )
    return actor
