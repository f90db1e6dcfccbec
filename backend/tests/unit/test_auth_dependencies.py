"""
Unit tests for authentication dependencies.
"""

import pytest
from fastapi import HTTPException

from auth.dependencies import (
    UserContext,
    get_current_user,
    require_doctor,
    require_patient,
    require_patient_or_doctor,
)
from services.jwt_service import TokenPayload


class TestGetCurrentUser:
    def test_missing_token(self):
        with pytest.raises(HTTPException) as exc_info:
            get_current_user(None)
        assert exc_info.value.status_code == 401

    def test_non_numeric_subject(self):
        with pytest.raises(HTTPException) as exc_info:
            get_current_user(TokenPayload(sub="auth0|abc", role="patient"))
        assert exc_info.value.status_code == 401

    def test_unknown_role(self):
        with pytest.raises(HTTPException) as exc_info:
            get_current_user(TokenPayload(sub="1", role="nurse"))
        assert exc_info.value.status_code == 401

    def test_valid_payload(self):
        user = get_current_user(TokenPayload(sub="5", role="doctor", email="dr@example.com"))
        assert user.user_id == 5
        assert user.is_doctor()


class TestRoleChecks:
    def test_require_patient_needs_verified_email(self):
        with pytest.raises(HTTPException) as exc_info:
            require_patient(UserContext(user_id=1, role="patient", email_verified=False))
        assert exc_info.value.status_code == 403

        user = UserContext(user_id=1, role="patient", email_verified=True)
        assert require_patient(user) is user

    def test_require_patient_rejects_doctor(self):
        with pytest.raises(HTTPException) as exc_info:
            require_patient(UserContext(user_id=1, role="doctor", email_verified=True))
        assert exc_info.value.status_code == 403

    def test_require_doctor(self):
        with pytest.raises(HTTPException):
            require_doctor(UserContext(user_id=1, role="patient"))
        doctor = UserContext(user_id=2, role="doctor")
        assert require_doctor(doctor) is doctor

    def test_require_patient_or_doctor_rejects_admin(self):
        with pytest.raises(HTTPException):
            require_patient_or_doctor(UserContext(user_id=1, role="admin"))
