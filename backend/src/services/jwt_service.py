"""
JWT Service for access token verification and OAuth state signing.

Sessions are issued by the identity provider; this service only verifies the
bearer tokens it signs with the shared secret, and signs the short-lived
state parameter of the calendar OAuth flow.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from pydantic import BaseModel

from core.config import JWT_ALGORITHM, JWT_SECRET_KEY


class TokenPayload(BaseModel):
    """Payload structure for JWT tokens."""
    sub: str  # User ID
    role: str  # "patient", "doctor" or "admin"
    email: Optional[str] = None
    email_verified: bool = False
    iat: Optional[int] = None
    exp: Optional[int] = None


class JWTService:
    """Service for JWT token operations."""

    ALGORITHM = JWT_ALGORITHM
    OAUTH_STATE_EXPIRE_MINUTES = 10

    @classmethod
    def verify_token(cls, token: str) -> Optional[TokenPayload]:
        """Verify and decode a JWT token."""
        try:
            payload = jwt.decode(token, cls._get_secret_key(), algorithms=[cls.ALGORITHM])
            return TokenPayload(**payload)
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def sign_oauth_state(cls, state_data: Dict[str, Any]) -> str:
        """Sign OAuth state parameter to prevent tampering."""
        now = datetime.now(timezone.utc)
        payload = {
            **state_data,
            "iat": now,
            "exp": now + timedelta(minutes=cls.OAUTH_STATE_EXPIRE_MINUTES)
        }
        return jwt.encode(payload, cls._get_secret_key(), algorithm=cls.ALGORITHM)

    @classmethod
    def verify_oauth_state(cls, signed_state: str) -> Optional[Dict[str, Any]]:
        """Verify and decode signed OAuth state parameter."""
        try:
            payload = jwt.decode(signed_state, cls._get_secret_key(), algorithms=[cls.ALGORITHM])
            # Remove JWT claims, return only the state data
            return {k: v for k, v in payload.items() if k not in ['iat', 'exp']}
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def _get_secret_key(cls) -> str:
        """Get the JWT secret key."""
        return JWT_SECRET_KEY


# Global instance
jwt_service = JWTService()
