import httpx
import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from booklib.db import Store
from booklib.main import create_app
from booklib.oauth import TOKEN_URL, USERINFO_URL, GoogleOAuthClient
from booklib.settings import Settings
from booklib.users import UserDirectory


class MockMongoClient(AsyncMongoMockClient):
    # nothing to release for the in-process store
    def close(self):
        pass


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        ENVIRONMENT="development",
        DB_NAME="bookLibraryTest",
        SECRET_KEY="test-secret-key",
        BCRYPT_ROUNDS=4,
        GOOGLE_CLIENT_ID="test-client-id",
        GOOGLE_CLIENT_SECRET="test-client-secret",
        OAUTH_SUCCESS_REDIRECT="/docs",
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def mongo_client():
    return MockMongoClient()


@pytest.fixture
async def store(mongo_client, test_settings) -> Store:
    s = Store(mongo_client, test_settings.DB_NAME)
    await s.init_indexes()
    return s


@pytest.fixture
def users(store) -> UserDirectory:
    return UserDirectory(store, rounds=4)


@pytest.fixture
def google_profile() -> dict:
    """Userinfo returned by the mocked Google endpoint; tests may mutate it"""
    return {
        "sub": "google-sub-123",
        "email": "reader@example.com",
        "name": "Reader One",
        "picture": "https://example.com/reader.jpg",
    }


@pytest.fixture
def google_http(google_profile):
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url == TOKEN_URL:
            return httpx.Response(200, json={"access_token": "test-access-token"})
        if url.startswith(USERINFO_URL):
            if request.headers.get("Authorization") != "Bearer test-access-token":
                return httpx.Response(401)
            return httpx.Response(200, json=google_profile)
        return httpx.Response(404)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def client(test_settings, mongo_client, google_http):
    app = create_app(
        test_settings,
        mongo_client=mongo_client,
        oauth_client=GoogleOAuthClient(test_settings, http=google_http),
    )
    with TestClient(app) as c:
        yield c


def signup(client, email="a@x.com", password="secret1", display_name="A"):
    return client.post(
        "/signup", json={"email": email, "password": password, "displayName": display_name}
    )


def login(client, email="a@x.com", password="secret1"):
    return client.post("/login", json={"email": email, "password": password})


VALID_BOOK = {
    "title": "The Great Gatsby",
    "author": "F. Scott Fitzgerald",
    "isbn": "978-0743273565",
    "publishYear": 1925,
    "genre": "Classic Fiction",
    "description": "A classic American novel set in the Jazz Age.",
    "availableCopies": 5,
    "totalCopies": 5,
}

VALID_AUTHOR = {
    "name": "Chinua Achebe",
    "birthYear": 1930,
    "nationality": "Nigerian",
    "biography": "Novelist, poet and critic, author of Things Fall Apart.",
    "books": ["Things Fall Apart", "No Longer at Ease"],
}
