# pyright: reportMissingTypeStubs=false
"""
Authentication and authorization dependencies for FastAPI.

Identity is managed by the external identity provider; requests carry its
JWT bearer token, from which we build the caller's context.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from services.jwt_service import TokenPayload, jwt_service

logger = logging.getLogger(__name__)

ROLE_PATIENT = "patient"
ROLE_DOCTOR = "doctor"
ROLE_ADMIN = "admin"


class UserContext:
    """Authenticated user context extracted from JWT token."""

    def __init__(self, user_id: int, role: str, email: Optional[str] = None, email_verified: bool = False):
        self.user_id = user_id  # Patient ID or doctor ID depending on role
        self.role = role
        self.email = email
        self.email_verified = email_verified

    def is_patient(self) -> bool:
        return self.role == ROLE_PATIENT

    def is_doctor(self) -> bool:
        return self.role == ROLE_DOCTOR

    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self) -> str:
        return f"UserContext(user_id={self.user_id}, role='{self.role}')"


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenPayload]:
    """Extract and validate JWT token payload."""
    if not credentials:
        return None
    return jwt_service.verify_token(credentials.credentials)


def get_current_user(payload: Optional[TokenPayload] = Depends(get_token_payload)) -> UserContext:
    """Get authenticated user context from JWT token."""
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials not provided"
        )

    try:
        user_id = int(payload.sub)
    except ValueError:
        logger.warning(f"Token subject is not a user ID: {payload.sub}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject"
        )

    if payload.role not in (ROLE_PATIENT, ROLE_DOCTOR, ROLE_ADMIN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user role"
        )

    return UserContext(
        user_id=user_id,
        role=payload.role,
        email=payload.email,
        email_verified=payload.email_verified,
    )


def require_patient(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require a patient with a verified email."""
    if not user.is_patient():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Patient access required"
        )
    if not user.email_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Please verify your email before booking"
        )
    return user


def require_doctor(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require doctor role."""
    if not user.is_doctor():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Doctor access required"
        )
    return user


def require_patient_or_doctor(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require patient or doctor role."""
    if not (user.is_patient() or user.is_doctor()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Patient or doctor access required"
        )
    return user
