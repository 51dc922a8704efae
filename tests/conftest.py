"""Shared pytest fixtures.

The gateway is exercised through FastAPI's TestClient with the provider
client factory overridden, so no test talks to a real identity provider.
"""

import os

# Required settings must exist before anything calls get_settings()
os.environ.setdefault("GATEWAY_PROVIDER_URL", "https://project.supabase.co")
os.environ.setdefault("GATEWAY_PROVIDER_API_KEY", "anon-key")

from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from auth_gateway.auth.auth_middleware import get_provider_factory
from auth_gateway.core.config import Settings
from auth_gateway.main import create_app
from auth_gateway.models.identity_models import (
    OAuthStart,
    ProviderResult,
    ProviderSession,
    ProviderUser,
)

VALID_TOKEN = "Bearer valid-token"
ALICE = ProviderUser(
    id="user-alice",
    email="alice@example.com",
    role="authenticated",
    app_metadata={"provider": "github"},
)


class FakeIdentityBackend:
    """In-memory stand-in for the identity provider shared by every fake client."""

    def __init__(self) -> None:
        self.users: Dict[str, ProviderUser] = {VALID_TOKEN: ALICE}
        self.revoked: set = set()
        self.oauth_result: ProviderResult = ProviderResult[OAuthStart](
            data=OAuthStart(
                url="https://project.supabase.co/auth/v1/authorize?provider=github",
                code_verifier="verifier-123",
            )
        )
        self.exchange_result: ProviderResult = ProviderResult[ProviderSession](
            data=ProviderSession(
                access_token="access-abc",
                refresh_token="refresh-def",
                expires_in=3600,
                expires_at=1700003600,
                user=ALICE,
            )
        )
        self.function_result: ProviderResult = ProviderResult[Any](data={"id": 42, "status": "recorded"})
        self.failures: Dict[str, Exception] = {}
        self.calls: List[Tuple[str, Optional[str], tuple]] = []
        self.clients: List["FakeIdentityProvider"] = []

    def calls_to(self, method: str) -> List[Tuple[str, Optional[str], tuple]]:
        return [call for call in self.calls if call[0] == method]

    def _record(self, method: str, authorization: Optional[str], *args: Any) -> None:
        self.calls.append((method, authorization, args))
        if method in self.failures:
            raise self.failures[method]


class FakeIdentityProvider:
    def __init__(self, backend: FakeIdentityBackend, authorization: Optional[str] = None):
        self.backend = backend
        self.authorization = authorization

    async def begin_oauth(self, provider: str, redirect_to: str) -> ProviderResult:
        self.backend._record("begin_oauth", self.authorization, provider, redirect_to)
        return self.backend.oauth_result

    async def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> ProviderResult:
        self.backend._record("exchange_code", self.authorization, code, code_verifier)
        return self.backend.exchange_result

    async def get_user(self) -> ProviderResult:
        self.backend._record("get_user", self.authorization)
        if self.authorization in self.backend.revoked:
            return ProviderResult.failure("Session not found", 403)
        user = self.backend.users.get(self.authorization)
        if user is None:
            return ProviderResult.failure("invalid JWT: unable to parse or verify signature", 401)
        return ProviderResult[ProviderUser](data=user)

    async def sign_out(self) -> ProviderResult:
        self.backend._record("sign_out", self.authorization)
        if self.authorization not in self.backend.users or self.authorization in self.backend.revoked:
            return ProviderResult.failure("Session not found", 404)
        self.backend.revoked.add(self.authorization)
        return ProviderResult.success()

    async def invoke_function(self, name: str, payload: Any) -> ProviderResult:
        self.backend._record("invoke_function", self.authorization, name, payload)
        return self.backend.function_result


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        PROVIDER_URL="https://project.supabase.co",
        PROVIDER_API_KEY="anon-key",
    )


@pytest.fixture
def backend() -> FakeIdentityBackend:
    return FakeIdentityBackend()


@pytest.fixture
def app(settings, backend):
    app = create_app(settings)

    def build(authorization: Optional[str] = None) -> FakeIdentityProvider:
        client = FakeIdentityProvider(backend, authorization)
        backend.clients.append(client)
        return client

    app.dependency_overrides[get_provider_factory] = lambda: build
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, follow_redirects=False)
