"""
Google OAuth2 flow for connecting a doctor's calendar.
"""

import logging
import urllib.parse
from datetime import timedelta
from typing import Any, Dict, Optional

import httpx

from core.config import API_BASE_URL, GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET
from core.constants import GOOGLE_CALENDAR_SCOPES
from core.exceptions import ValidationError
from services.jwt_service import jwt_service
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class GoogleOAuthService:
    """Service for handling Google OAuth2 flow for doctors"""

    AUTH_URL = "https://accounts.google.com/o/oauth2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    SCOPES = GOOGLE_CALENDAR_SCOPES

    def __init__(self, redirect_uri: Optional[str] = None) -> None:
        self.client_id = GOOGLE_CLIENT_ID
        self.client_secret = GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or f"{API_BASE_URL}/api/calendar/google/callback"

    def get_authorization_url(self, doctor_id: int) -> str:
        """Generate Google OAuth2 authorization URL"""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.SCOPES),
            "response_type": "code",
            "access_type": "offline",  # Request refresh token
            "prompt": "consent",  # Force consent screen to get refresh token
            "state": jwt_service.sign_oauth_state({"doctor_id": doctor_id})
        }
        return f"{self.AUTH_URL}?{urllib.parse.urlencode(params)}"

    def parse_state(self, state: str) -> int:
        """
        Parse signed state parameter to extract the doctor ID.

        Raises:
            ValidationError: If the state is invalid or expired
        """
        state_data = jwt_service.verify_oauth_state(state)
        if not state_data:
            raise ValidationError("Invalid or expired OAuth state")
        doctor_id = state_data.get("doctor_id")
        if not isinstance(doctor_id, int):
            raise ValidationError("Invalid OAuth state data")
        return doctor_id

    async def exchange_code_for_tokens(self, code: str) -> Dict[str, Any]:
        """Exchange authorization code for access and refresh tokens"""
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri
        }

        async with httpx.AsyncClient() as client:
            response = await client.post(self.TOKEN_URL, data=data)
            response.raise_for_status()
            return response.json()

    async def get_user_info(self, access_token: str) -> Dict[str, Any]:
        """Get user information from Google"""
        headers = {"Authorization": f"Bearer {access_token}"}

        async with httpx.AsyncClient() as client:
            response = await client.get(self.USERINFO_URL, headers=headers)
            response.raise_for_status()
            return response.json()

    def build_credentials(self, token_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Convert a token response into the stored credentials format.

        The format is what ``Credentials.from_authorized_user_info`` reads,
        minus the client configuration.

        Raises:
            ValidationError: If Google did not return a refresh token
        """
        if not token_data.get("refresh_token"):
            raise ValidationError("Google did not return a refresh token; please grant offline access")

        expiry = None
        if token_data.get("expires_in"):
            # google-auth expects a naive UTC timestamp
            expiry = (utc_now() + timedelta(seconds=int(token_data["expires_in"]))).replace(tzinfo=None)

        return {
            "token": token_data.get("access_token"),
            "refresh_token": token_data["refresh_token"],
            "token_uri": self.TOKEN_URL,
            "scopes": (token_data.get("scope") or " ".join(self.SCOPES)).split(),
            "expiry": expiry.isoformat() + "Z" if expiry else None,
        }


google_oauth_service = GoogleOAuthService()
