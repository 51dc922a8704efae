import httpx
import pytest

from auth_gateway.models.identity_models import ProviderResult

from conftest import ALICE, VALID_TOKEN, FakeIdentityProvider


def test_me_returns_only_id_and_email(client):
    resp = client.get("/api/me", headers={"Authorization": VALID_TOKEN})

    assert resp.status_code == 200
    assert resp.json() == {"id": ALICE.id, "email": ALICE.email}


def test_me_forwards_header_verbatim(client, backend):
    client.get("/api/me", headers={"Authorization": VALID_TOKEN})
    assert backend.calls_to("get_user")[0][1] == VALID_TOKEN


@pytest.mark.parametrize("headers", [
    {},
    {"Authorization": "Bearer expired-token"},
    {"Authorization": "not even a bearer"},
])
def test_me_rejects_missing_or_invalid_token(client, headers):
    resp = client.get("/api/me", headers=headers)

    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized or invalid token"}


def test_me_treats_empty_success_as_unauthorized(client, backend, monkeypatch):
    async def no_user(self):
        return ProviderResult()

    monkeypatch.setattr(FakeIdentityProvider, "get_user", no_user)

    resp = client.get("/api/me", headers={"Authorization": VALID_TOKEN})

    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized or invalid token"}


def test_me_network_failure_is_generic_500(client, backend):
    backend.failures["get_user"] = httpx.ReadTimeout("timed out")

    resp = client.get("/api/me", headers={"Authorization": VALID_TOKEN})

    assert resp.status_code == 500
    assert resp.json() == {"error": "An unexpected server error occurred"}


def test_each_request_gets_its_own_provider_client(client, backend):
    client.get("/api/me", headers={"Authorization": VALID_TOKEN})
    client.get("/api/me")

    assert len(backend.clients) == 2
    assert backend.clients[0] is not backend.clients[1]
    assert backend.clients[0].authorization == VALID_TOKEN
    assert backend.clients[1].authorization is None
