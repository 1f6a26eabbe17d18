# oauth.py
import logging
import secrets
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import httpx
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .errors import OAuthError
from .settings import Settings
from .users import OAuthProfile

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

SCOPES = ["openid", "email", "profile"]


class GoogleOAuthClient:
    def __init__(self, settings: Settings, http: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http = http or httpx.AsyncClient(timeout=httpx.Timeout(10.0, connect=5.0))
        self._state = URLSafeTimedSerializer(settings.SECRET_KEY, salt="booklib.oauth.state.v1")

    @property
    def configured(self) -> bool:
        return bool(self.settings.GOOGLE_CLIENT_ID and self.settings.GOOGLE_CLIENT_SECRET)

    def _require_config(self) -> None:
        if not self.configured:
            raise OAuthError("Google sign-in is not configured")

    # ---- state ----

    def create_state(self) -> Tuple[str, str]:
        """returns (state, nonce); the nonce is pinned to the browser in a cookie"""
        nonce = secrets.token_urlsafe(16)
        return self._state.dumps({"n": nonce}), nonce

    def validate_state(self, state: Optional[str], nonce: Optional[str]) -> None:
        if not state:
            raise OAuthError("Missing OAuth state")
        try:
            data = self._state.loads(state, max_age=self.settings.OAUTH_STATE_MAX_AGE)
        except SignatureExpired:
            raise OAuthError("OAuth state expired")
        except BadSignature:
            raise OAuthError("Invalid OAuth state")
        if not nonce or not secrets.compare_digest(str(data.get("n", "")), nonce):
            raise OAuthError("OAuth state does not match this browser")

    # ---- flow ----

    def build_authorize_url(self, redirect_uri: str, state: str) -> str:
        self._require_config()
        params = {
            "client_id": self.settings.GOOGLE_CLIENT_ID,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "state": state,
            "access_type": "online",
            "prompt": "select_account",
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        self._require_config()
        try:
            resp = await self._http.post(TOKEN_URL, data={
                "code": code,
                "client_id": self.settings.GOOGLE_CLIENT_ID,
                "client_secret": self.settings.GOOGLE_CLIENT_SECRET,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            })
        except httpx.HTTPError as e:
            raise OAuthError("Could not reach Google token endpoint") from e

        if resp.status_code != 200:
            logger.warning("google token exchange failed: HTTP %s", resp.status_code)
            raise OAuthError("Google rejected the authorization code")

        token = resp.json().get("access_token")
        if not token:
            raise OAuthError("Google token response had no access_token")
        return token

    async def fetch_profile(self, access_token: str) -> OAuthProfile:
        try:
            resp = await self._http.get(
                USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
            )
        except httpx.HTTPError as e:
            raise OAuthError("Could not reach Google userinfo endpoint") from e

        if resp.status_code != 200:
            logger.warning("google userinfo failed: HTTP %s", resp.status_code)
            raise OAuthError("Could not load Google profile")
        return profile_from_userinfo(resp.json())

    async def complete(self, code: str, redirect_uri: str) -> OAuthProfile:
        token = await self.exchange_code(code, redirect_uri)
        return await self.fetch_profile(token)

    async def aclose(self) -> None:
        await self._http.aclose()


def profile_from_userinfo(info: Dict[str, Any]) -> OAuthProfile:
    subject = info.get("sub")
    email = info.get("email")
    if not subject or not email:
        raise OAuthError("Google profile is missing an id or email")
    return OAuthProfile(
        subject=str(subject),
        email=email,
        display_name=info.get("name") or email,
        photo=info.get("picture"),
    )
