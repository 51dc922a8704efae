# File: auth_gateway/services/identity_provider_client.py
import base64
import hashlib
import secrets
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

import httpx
import structlog

from auth_gateway.models.identity_models import (
    OAuthStart,
    ProviderResult,
    ProviderSession,
    ProviderUser,
)

log = structlog.get_logger(__name__)

# Keys GoTrue / Edge Functions use for the human readable error text, in priority order
_ERROR_MESSAGE_KEYS = ("msg", "message", "error_description", "error")


def generate_code_verifier() -> str:
    """Random PKCE verifier (RFC 7636, 43-128 chars)."""
    return secrets.token_urlsafe(48)


def code_challenge_for(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def extract_error_message(response: httpx.Response) -> str:
    """Best-effort human readable message from a provider error response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in _ERROR_MESSAGE_KEYS:
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    if response.text and not isinstance(body, dict):
        return response.text
    return f"Identity provider returned status {response.status_code}"


class IdentityProviderClient:
    """
    Request-scoped handle to the identity provider.

    Built per request; optionally carries the caller's Authorization header,
    which is attached verbatim to every call made through it. The underlying
    connection pool is shared but holds no credentials.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        api_key: str,
        authorization: Optional[str] = None,
    ):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.authorization = authorization
        self.log = log.bind(provider_url=self.base_url, credentialed=authorization is not None)

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": self.authorization if self.authorization is not None else f"Bearer {self.api_key}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        """Sends one request. Transport errors propagate; HTTP error statuses are returned to the caller."""
        url = f"{self.base_url}{path}"
        self.log.debug("Requesting identity provider", method=method, path=path, params=params)
        try:
            response = await self.http_client.request(
                method, url, params=params, json=json, headers=self._headers()
            )
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            self.log.error("Network error when calling identity provider", path=path, error=str(e))
            raise
        self.log.info("Received response from identity provider", path=path, status_code=response.status_code)
        return response

    async def begin_oauth(self, provider: str, redirect_to: str) -> ProviderResult[OAuthStart]:
        """
        Builds the provider's authorization URL for a PKCE OAuth flow.
        No network call is made; the provider validates `provider` when the browser arrives.
        """
        code_verifier = generate_code_verifier()
        query = urlencode(
            {
                "provider": provider,
                "redirect_to": redirect_to,
                "code_challenge": code_challenge_for(code_verifier),
                "code_challenge_method": "s256",
            },
            quote_via=quote,
        )
        url = f"{self.base_url}/auth/v1/authorize?{query}"
        self.log.info("OAuth authorization URL built", oauth_provider=provider, redirect_to=redirect_to)
        return ProviderResult[OAuthStart](data=OAuthStart(url=url, code_verifier=code_verifier))

    async def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> ProviderResult[ProviderSession]:
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "pkce"},
            json={"auth_code": code, "code_verifier": code_verifier},
        )
        if response.is_error:
            message = extract_error_message(response)
            self.log.warning("Code exchange rejected by provider", status_code=response.status_code, error=message)
            return ProviderResult[ProviderSession].failure(message, response.status_code)
        session = ProviderSession.model_validate(response.json())
        return ProviderResult[ProviderSession](data=session)

    async def get_user(self) -> ProviderResult[ProviderUser]:
        response = await self._request("GET", "/auth/v1/user")
        if response.is_error:
            message = extract_error_message(response)
            self.log.info("Provider did not resolve a user", status_code=response.status_code, error=message)
            return ProviderResult[ProviderUser].failure(message, response.status_code)
        body = response.json()
        if not body:
            return ProviderResult[ProviderUser](data=None)
        return ProviderResult[ProviderUser](data=ProviderUser.model_validate(body))

    async def sign_out(self, scope: str = "global") -> ProviderResult[Any]:
        response = await self._request("POST", "/auth/v1/logout", params={"scope": scope})
        if response.is_error:
            message = extract_error_message(response)
            self.log.warning("Sign out rejected by provider", status_code=response.status_code, error=message)
            return ProviderResult[Any].failure(message, response.status_code)
        return ProviderResult[Any](data=None)

    async def invoke_function(self, name: str, payload: Any) -> ProviderResult[Any]:
        response = await self._request("POST", f"/functions/v1/{quote(name, safe='')}", json=payload)
        if response.headers.get("x-relay-error") == "true":
            message = extract_error_message(response)
            self.log.error("Edge function relay error", function=name, error=message)
            return ProviderResult[Any].failure(message, response.status_code)
        if response.is_error:
            message = extract_error_message(response)
            self.log.warning("Edge function returned an error", function=name, status_code=response.status_code, error=message)
            return ProviderResult[Any].failure(message, response.status_code)

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if content_type == "application/json":
            data = response.json()
        else:
            data = response.text
        self.log.info("Edge function invoked", function=name, status_code=response.status_code)
        return ProviderResult[Any](data=data)
