import time

import jwt
import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_dashboard_loader, get_identity_provider
from app.core.exceptions import AuthenticationError
from app.main import app
from app.schemas.auth import AuthSession, OAuthRedirect, UserOut
from app.services.dashboard_loader import DashboardLoader
from tests.conftest import TODAY


class FakeIdentityProvider:
    def __init__(self):
        self.signed_out = []

    async def sign_in_with_password(self, email, password):
        if password != "correct-horse":
            raise AuthenticationError("Invalid login credentials")
        return AuthSession(access_token=make_token(email), expires_in=3600, user=UserOut(id="u1", email=email))

    def build_oauth_redirect(self, provider, redirect_to):
        return OAuthRedirect(
            url=f"https://example.supabase.co/auth/v1/authorize?provider={provider}&redirect_to={redirect_to}",
            code_verifier="verifier-xyz",
        )

    async def exchange_code_for_session(self, auth_code, code_verifier):
        if auth_code != "good-code" or code_verifier != "verifier-xyz":
            raise AuthenticationError("invalid flow state, no valid flow state found")
        return AuthSession(access_token=make_token("oauth@example.com"), expires_in=3600)

    async def get_user(self, access_token):
        raise AuthenticationError("not used when the JWT secret is configured")

    async def sign_out(self, access_token):
        self.signed_out.append(access_token)


def make_token(email, secret="test-jwt-secret"):
    now = int(time.time())
    return jwt.encode(
        {"sub": "u1", "email": email, "role": "authenticated", "aud": "authenticated", "iat": now, "exp": now + 3600},
        secret,
        algorithm="HS256",
    )


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def loader(seeded, weather):
    return DashboardLoader(session_factory=seeded, weather_client=weather, today=lambda: TODAY)


@pytest.fixture
def client(identity, loader):
    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.dependency_overrides[get_dashboard_loader] = lambda: loader
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def signed_in(client):
    client.cookies.set("sb-access-token", make_token("pm@example.com"))
    return client
