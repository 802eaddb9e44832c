"""
Google sign-in tests. Network calls to Google are replaced by a fake client.
"""
from urllib.parse import parse_qs, urlparse

import pytest

from storefront.api.auth import get_google_client
from storefront.main import app
from storefront.models.user import User
from storefront.services.google_oauth_service import (
    STATE_COOKIE_NAME,
    GoogleAuthError,
    GoogleOAuthClient,
)
from storefront.services.token_codec import AUTH_COOKIE_NAME


class FakeGoogleClient(GoogleOAuthClient):
    def __init__(self, profile=None, fail_exchange=False):
        super().__init__("client-id", "client-secret")
        self.profile = profile or {
            "sub": "123",
            "email": "Shopper@Gmail.com",
            "name": "Shopper",
            "picture": "https://lh3.example/p.png",
            "email_verified": True,
        }
        self.fail_exchange = fail_exchange
        self.exchanged = []

    async def exchange_code(self, code, redirect_uri):
        if self.fail_exchange:
            raise GoogleAuthError("Unable to complete Google login")
        self.exchanged.append((code, redirect_uri))
        return {"access_token": "ya29.token"}

    async def fetch_profile(self, access_token):
        return self.profile


@pytest.fixture
def google():
    fake = FakeGoogleClient()
    app.dependency_overrides[get_google_client] = lambda: fake
    return fake


def _error_of(response):
    return parse_qs(urlparse(response.headers["location"]).query)["error"][0]


def test_redirect_requires_configuration(client):
    response = client.get("/auth/google/redirect", follow_redirects=False)
    assert response.status_code == 500


def test_redirect_sets_state_cookie(client, google):
    response = client.get("/auth/google/redirect", follow_redirects=False)

    assert response.status_code == 302
    location = urlparse(response.headers["location"])
    params = parse_qs(location.query)
    assert location.netloc == "accounts.google.com"
    assert params["scope"] == ["openid email profile"]
    assert params["redirect_uri"] == ["http://testserver/auth/google/callback"]
    assert len(params["state"][0]) == 32
    assert client.cookies.get(STATE_COOKIE_NAME) == params["state"][0]
    assert "max-age=600" in response.headers["set-cookie"].lower()


def test_callback_rejects_state_mismatch(client, google):
    client.cookies.set(STATE_COOKIE_NAME, "expected")
    response = client.get("/auth/google/callback?code=abc&state=other", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"].startswith("http://testserver/login?")
    assert _error_of(response) == "Invalid Google response"
    assert google.exchanged == []


def test_callback_unconfigured(client):
    response = client.get("/auth/google/callback?code=abc&state=s", follow_redirects=False)
    assert _error_of(response) == "Google auth disabled"


def test_callback_creates_user_and_session(client, db, google):
    client.cookies.set(STATE_COOKIE_NAME, "s1")
    response = client.get("/auth/google/callback?code=abc&state=s1", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "http://testserver/"
    assert client.cookies.get(AUTH_COOKIE_NAME)

    user = db.query(User).filter(User.email == "shopper@gmail.com").one()
    assert user.role == "customer"
    assert user.is_admin == 0
    assert user.email_verified is True
    assert user.password_hash is None

    session = client.get("/auth/session")
    assert session.status_code == 200
    assert session.json()["user"]["id"] == str(user.id)


def test_callback_rejects_deactivated_account(client, db, google):
    db.add(User(email="shopper@gmail.com", name="Old", is_active=False))
    db.commit()
    client.cookies.set(STATE_COOKIE_NAME, "s1")

    response = client.get("/auth/google/callback?code=abc&state=s1", follow_redirects=False)
    assert _error_of(response) == "Account is deactivated"


def test_callback_exchange_failure(client):
    app.dependency_overrides[get_google_client] = lambda: FakeGoogleClient(fail_exchange=True)
    client.cookies.set(STATE_COOKIE_NAME, "s1")

    response = client.get("/auth/google/callback?code=abc&state=s1", follow_redirects=False)
    assert _error_of(response) == "Unable to complete Google login"
