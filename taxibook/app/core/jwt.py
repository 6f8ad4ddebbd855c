"""
Session tokens.

Signed JWTs carrying the claims a SessionContext is built from:

    {"sub": "Grace", "user_id": "c2a4...", "role": "DRIVER", "driver_id": "d91f...", "exp": ...}

Tokens are minted by the sign-in service; this service only verifies them
(plus the debug-only test-token endpoint).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from taxibook.app.core.config import settings


def create_session_token(
    user_id: str,
    role: str,
    driver_id: Optional[str] = None,
    display_name: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": display_name or user_id,
        "user_id": user_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    if driver_id:
        claims["driver_id"] = driver_id
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_session_token(token: str) -> Optional[Dict[str, Any]]:
    """Verified claims, or None for a bad signature, malformed token or expired token."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
