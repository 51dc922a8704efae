# File: auth_gateway/auth/auth_middleware.py
from fastapi import Request, Header, Cookie, Depends, status
from typing import Optional, Annotated
import structlog
import httpx

from auth_gateway.core.config import Settings, get_settings
from auth_gateway.auth.auth_service import ACCESS_TOKEN_COOKIE
from auth_gateway.core.errors import GatewayError
from auth_gateway.services.identity_provider_client import IdentityProviderClient

log = structlog.get_logger(__name__)


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared connection pool created in the app lifespan."""
    client = getattr(request.app.state, "http_client", None)
    if client is None or client.is_closed:
        log.error("HTTP client dependency failed: Client not available or closed.")
        raise GatewayError(status.HTTP_503_SERVICE_UNAVAILABLE, "Gateway service is unavailable.")
    return client


class ProviderClientFactory:
    """
    Builds request-scoped identity provider clients, either anonymous or
    carrying the caller's Authorization header.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self.settings = settings
        self.http_client = http_client

    def __call__(self, authorization: Optional[str] = None) -> IdentityProviderClient:
        return IdentityProviderClient(
            http_client=self.http_client,
            base_url=self.settings.provider_base_url,
            api_key=self.settings.PROVIDER_API_KEY.get_secret_value(),
            authorization=authorization,
        )


def get_provider_factory(
    settings: Annotated[Settings, Depends(get_settings)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> ProviderClientFactory:
    return ProviderClientFactory(settings, http_client)


def get_bearer_credential(
    authorization: Annotated[Optional[str], Header()] = None,
    session_cookie: Annotated[Optional[str], Cookie(alias=ACCESS_TOKEN_COOKIE)] = None,
) -> Optional[str]:
    """
    Raw Authorization header, forwarded verbatim. Never parsed here.
    Without the header, the access token cookie set by the OAuth callback
    (cookie session delivery) is used as the bearer credential.
    """
    if authorization is not None:
        return authorization
    if session_cookie:
        log.debug("No Authorization header; using session cookie.")
        return f"Bearer {session_cookie}"
    log.debug("No Authorization header or session cookie found.")
    return None


async def get_anonymous_provider(
    factory: Annotated[ProviderClientFactory, Depends(get_provider_factory)],
) -> IdentityProviderClient:
    return factory()


async def get_credentialed_provider(
    factory: Annotated[ProviderClientFactory, Depends(get_provider_factory)],
    authorization: Annotated[Optional[str], Depends(get_bearer_credential)],
) -> IdentityProviderClient:
    return factory(authorization)


# --- Annotated types used by the routers ---
AnonymousProvider = Annotated[IdentityProviderClient, Depends(get_anonymous_provider)]
CredentialedProvider = Annotated[IdentityProviderClient, Depends(get_credentialed_provider)]
