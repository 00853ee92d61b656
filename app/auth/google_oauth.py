"""
Google OAuth Client
-------------------
Minimal OAuth 2.0 authorization-code client for Google sign-in, built on httpx.

Flow:
1. ``build_consent_url`` - browser is redirected to Google's consent screen
   (offline access, consent always prompted)
2. ``exchange_code`` - the callback's code is exchanged for an access token
3. ``fetch_userinfo`` - the access token is used to read the profile
"""

from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from loguru import logger

from app.core.config_manager import settings

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_SCOPES = "openid email profile"


class GoogleOAuthError(Exception):
    """Provider-side failure; the message is logged, never shown to users."""


class GoogleOAuthClient:
    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.client_id = client_id or settings.google_client_id
        self.client_secret = client_secret or settings.google_client_secret
        self.redirect_uri = redirect_uri or settings.google_redirect_uri
        self._transport = transport
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    def build_consent_url(self, state: Optional[str] = None) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": GOOGLE_SCOPES,
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    async def exchange_code(self, code: str) -> str:
        """
        Exchange an authorization code for an access token.

        Raises:
            GoogleOAuthError: If the provider rejects the code or is unreachable
        """
        try:
            async with self._client() as client:
                response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
        except httpx.HTTPError as e:
            raise GoogleOAuthError(f"Token endpoint unreachable: {e}")

        if response.status_code != 200:
            raise GoogleOAuthError(f"Token exchange failed with HTTP {response.status_code}")
        access_token = response.json().get("access_token")
        if not access_token:
            raise GoogleOAuthError("Token response carried no access_token")
        return access_token

    async def fetch_userinfo(self, access_token: str) -> Dict[str, Any]:
        """
        Returns:
            Profile dict with at least ``id`` and ``email``

        Raises:
            GoogleOAuthError: On HTTP failure or an incomplete profile
        """
        try:
            async with self._client() as client:
                response = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as e:
            raise GoogleOAuthError(f"Userinfo endpoint unreachable: {e}")

        if response.status_code != 200:
            raise GoogleOAuthError(f"Userinfo request failed with HTTP {response.status_code}")
        profile = response.json()
        if not profile.get("id") or not profile.get("email"):
            raise GoogleOAuthError("Userinfo response missing id or email")
        logger.debug(f"Fetched Google profile for {profile['email']}")
        return profile


def get_google_client() -> GoogleOAuthClient:
    """FastAPI dependency; overridden in tests."""
    return GoogleOAuthClient()
