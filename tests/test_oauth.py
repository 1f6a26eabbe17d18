from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from booklib.errors import OAuthError
from booklib.oauth import AUTHORIZE_URL, GoogleOAuthClient, profile_from_userinfo


def test_authorize_url_carries_client_and_state(test_settings, google_http):
    oauth = GoogleOAuthClient(test_settings, http=google_http)
    state, _ = oauth.create_state()

    url = oauth.build_authorize_url("http://testserver/oauth/callback", state)

    parsed = urlparse(url)
    assert url.startswith(AUTHORIZE_URL)
    query = parse_qs(parsed.query)
    assert query["client_id"] == ["test-client-id"]
    assert query["redirect_uri"] == ["http://testserver/oauth/callback"]
    assert query["state"] == [state]
    assert query["scope"] == ["openid email profile"]


def test_state_must_match_browser_nonce(test_settings, google_http):
    oauth = GoogleOAuthClient(test_settings, http=google_http)
    state, nonce = oauth.create_state()

    oauth.validate_state(state, nonce)
    with pytest.raises(OAuthError):
        oauth.validate_state(state, "other-nonce")
    with pytest.raises(OAuthError):
        oauth.validate_state(state + "x", nonce)
    with pytest.raises(OAuthError):
        oauth.validate_state(None, nonce)


def test_unconfigured_client_refuses(test_settings, google_http):
    cfg = test_settings.model_copy(update={"GOOGLE_CLIENT_ID": None})
    oauth = GoogleOAuthClient(cfg, http=google_http)
    with pytest.raises(OAuthError):
        oauth.build_authorize_url("http://testserver/oauth/callback", "s")


async def test_complete_returns_profile(test_settings, google_http):
    oauth = GoogleOAuthClient(test_settings, http=google_http)

    profile = await oauth.complete("auth-code", "http://testserver/oauth/callback")

    assert profile.subject == "google-sub-123"
    assert profile.email == "reader@example.com"
    assert profile.display_name == "Reader One"
    assert profile.photo == "https://example.com/reader.jpg"


async def test_rejected_code_raises(test_settings):
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda req: httpx.Response(400)))
    oauth = GoogleOAuthClient(test_settings, http=http)
    with pytest.raises(OAuthError):
        await oauth.exchange_code("bad-code", "http://testserver/oauth/callback")


def test_profile_requires_subject_and_email():
    with pytest.raises(OAuthError):
        profile_from_userinfo({"sub": "1"})
    profile = profile_from_userinfo({"sub": "1", "email": "x@y.com"})
    assert profile.display_name == "x@y.com"
    assert profile.photo is None
