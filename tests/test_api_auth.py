import logging
from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient

from booklib.main import create_app
from booklib.oauth import GoogleOAuthClient

from conftest import login, signup


def test_root_and_health(client):
    assert "Book Library API is running" in client.get("/").text
    assert client.get("/healthz").json() == {"ok": True}


def test_signup_returns_user_without_password(client):
    res = signup(client)
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["success"] is True
    assert body["user"]["_id"]
    assert body["user"]["email"] == "a@x.com"
    assert body["user"]["authProvider"] == "local"
    assert "password" not in body["user"]


def test_signup_validation_errors(client):
    res = client.post("/signup", json={"email": "bad", "password": "1"})
    assert res.status_code == 400
    body = res.json()
    assert body["error"] == "validation_failed"
    assert [d["field"] for d in body["details"]] == ["email", "password", "displayName"]


def test_duplicate_signup(client):
    assert signup(client).status_code == 201
    res = signup(client, password="another1", display_name="B")
    assert res.status_code == 400
    assert res.json()["error"] == "duplicate_account"


def test_full_session_flow(client):
    user_id = signup(client).json()["user"]["_id"]

    bad = login(client, password="wrong")
    assert bad.status_code == 401
    assert bad.json() == {
        "success": False,
        "error": "invalid_credentials",
        "message": "Invalid email or password",
    }

    ok = login(client)
    assert ok.status_code == 200, ok.text
    assert ok.json()["user"]["_id"] == user_id
    assert "booklib_sid" in ok.cookies

    status = client.get("/session/status").json()
    assert status["authenticated"] is True
    assert status["user"]["_id"] == user_id

    out = client.get("/logout")
    assert out.status_code == 200
    assert out.json()["success"] is True

    assert client.get("/session/status").json() == {"authenticated": False, "message": "Not logged in"}


def test_old_cookie_rejected_after_logout(client):
    signup(client)
    cookie = login(client).cookies["booklib_sid"]
    client.get("/logout")

    replay = {"Cookie": f"booklib_sid={cookie}"}
    assert client.get("/session/status", headers=replay).json()["authenticated"] is False
    assert client.get("/books", headers=replay).status_code == 401


def test_logout_without_session_is_ok(client):
    assert client.get("/logout").status_code == 200


def test_session_cookie_attributes(client):
    signup(client)
    res = login(client)
    header = res.headers["set-cookie"].lower()
    assert "httponly" in header
    assert "max-age=86400" in header
    assert "samesite=lax" in header
    assert "; secure" not in header


def test_relogin_retires_the_replaced_cookie(client):
    signup(client)
    first = login(client).cookies["booklib_sid"]
    second = login(client).cookies["booklib_sid"]
    assert first != second

    client.cookies.clear()
    replay = {"Cookie": f"booklib_sid={first}"}
    assert client.get("/session/status", headers=replay).json()["authenticated"] is False
    current = {"Cookie": f"booklib_sid={second}"}
    assert client.get("/session/status", headers=current).json()["authenticated"] is True


def test_session_cookie_is_secure_outside_development(test_settings, mongo_client, google_http):
    prod = test_settings.model_copy(update={"ENVIRONMENT": "production"})
    app = create_app(prod, mongo_client=mongo_client, oauth_client=GoogleOAuthClient(prod, http=google_http))
    with TestClient(app) as c:
        signup(c)
        header = login(c).headers["set-cookie"].lower()
    assert "; secure" in header
    assert "httponly" in header


def test_request_bodies_are_documented(client):
    paths = client.get("/openapi.json").json()["paths"]
    for path in ("/signup", "/login", "/books", "/authors"):
        assert "requestBody" in paths[path]["post"], path


def test_email_is_case_insensitive_for_login(client):
    signup(client, email="Mixed@Example.com")
    assert login(client, email="mixed@example.com").status_code == 200


def _start_oauth(client):
    res = client.get("/oauth/start", follow_redirects=False)
    assert res.status_code == 302
    location = res.headers["location"]
    assert location.startswith("https://accounts.google.com/")
    return parse_qs(urlparse(location).query)["state"][0]


def test_oauth_login_creates_session(client):
    state = _start_oauth(client)

    res = client.get(f"/oauth/callback?code=abc&state={state}", follow_redirects=False)
    assert res.status_code == 302
    assert res.headers["location"] == "/docs"

    status = client.get("/session/status").json()
    assert status["authenticated"] is True
    assert status["user"]["authProvider"] == "google"
    assert status["user"]["email"] == "reader@example.com"
    assert status["user"]["photo"] == "https://example.com/reader.jpg"


def test_oauth_relogin_keeps_id_and_updates_profile(client, google_profile):
    client.get(f"/oauth/callback?code=abc&state={_start_oauth(client)}", follow_redirects=False)
    first = client.get("/session/status").json()["user"]

    google_profile["name"] = "Renamed Reader"
    client.get(f"/oauth/callback?code=abc&state={_start_oauth(client)}", follow_redirects=False)
    second = client.get("/session/status").json()["user"]

    assert second["_id"] == first["_id"]
    assert second["displayName"] == "Renamed Reader"


def test_google_account_local_login_gets_provider_hint(client):
    client.get(f"/oauth/callback?code=abc&state={_start_oauth(client)}", follow_redirects=False)
    client.get("/logout")

    res = login(client, email="reader@example.com", password="whatever")
    assert res.status_code == 401
    assert res.json()["error"] == "provider_account_mismatch"
    assert "Google" in res.json()["message"]


def test_oauth_callback_with_forged_state_fails(client):
    _start_oauth(client)
    res = client.get("/oauth/callback?code=abc&state=forged", follow_redirects=False)
    assert res.status_code == 302
    assert res.headers["location"] == "/oauth/failure"
    assert client.get("/session/status").json()["authenticated"] is False


def test_oauth_callback_without_code_fails(client):
    res = client.get("/oauth/callback?error=access_denied", follow_redirects=False)
    assert res.headers["location"] == "/oauth/failure"

    failure = client.get("/oauth/failure")
    assert failure.status_code == 401
    assert failure.json()["success"] is False


def test_oauth_success_returns_the_signed_in_user(client):
    anonymous = client.get("/oauth/success")
    assert anonymous.status_code == 401
    assert anonymous.json()["error"] == "unauthorized"

    client.get(f"/oauth/callback?code=abc&state={_start_oauth(client)}", follow_redirects=False)
    res = client.get("/oauth/success")
    assert res.status_code == 200
    assert res.json()["message"] == "Authentication successful"
    assert res.json()["user"]["email"] == "reader@example.com"


def test_logins_are_logged_with_the_strategy_name(client, caplog):
    signup(client)
    with caplog.at_level(logging.INFO, logger="booklib"):
        login(client)
        client.get(f"/oauth/callback?code=abc&state={_start_oauth(client)}", follow_redirects=False)
    messages = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("local login for user") for m in messages)
    assert any(m.startswith("google login for user") for m in messages)
