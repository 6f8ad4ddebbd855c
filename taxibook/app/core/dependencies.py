"""
Session dependencies for FastAPI.

Identity is carried by an explicit SessionContext built from the bearer token
and handed to the endpoints that need it. Guests simply have no session.
"""

from dataclasses import dataclass
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from taxibook.app.core.jwt import decode_session_token
from taxibook.app.core.exceptions import AuthenticationError
from taxibook.app.models.enums import UserRole

# HTTP Bearer security scheme (auto_error disabled so guests pass through)
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class SessionContext:
    """Signed-in identity for the lifetime of one request."""
    user_id: str
    role: UserRole
    display_name: Optional[str] = None
    driver_id: Optional[str] = None

    @property
    def is_driver(self) -> bool:
        return self.role == UserRole.DRIVER

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def session_from_token(token: str) -> SessionContext:
    """
    Build a SessionContext from a bearer token.

    Raises:
        AuthenticationError: if the token is invalid, expired or incomplete
    """
    payload = decode_session_token(token)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    user_id = payload.get("user_id")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    try:
        role = UserRole(payload.get("role"))
    except ValueError:
        raise AuthenticationError("Invalid role in token")

    driver_id = payload.get("driver_id")
    if role == UserRole.DRIVER and not driver_id:
        raise AuthenticationError("Driver token is missing driver_id")

    return SessionContext(
        user_id=str(user_id),
        role=role,
        display_name=payload.get("sub"),
        driver_id=driver_id,
    )


async def get_optional_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[SessionContext]:
    """Session for the request, or None for guests."""
    if credentials is None:
        return None
    return session_from_token(credentials.credentials)


async def get_current_session(
    session: Optional[SessionContext] = Depends(get_optional_session),
) -> SessionContext:
    """
    FastAPI dependency for endpoints that require a signed-in user.

    Raises:
        AuthenticationError: 401 if no valid bearer token was sent
    """
    if session is None:
        raise AuthenticationError("Not authenticated")
    return session
