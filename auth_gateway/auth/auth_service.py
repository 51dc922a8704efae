# File: auth_gateway/auth/auth_service.py
from typing import Optional
from urllib.parse import urlencode
import structlog
from fastapi import Response

from auth_gateway.core.config import Settings
from auth_gateway.models.identity_models import ProviderSession, ProviderUser
from auth_gateway.services.identity_provider_client import IdentityProviderClient

log = structlog.get_logger(__name__)

PKCE_VERIFIER_COOKIE = "sb-code-verifier"
ACCESS_TOKEN_COOKIE = "sb-access-token"
REFRESH_TOKEN_COOKIE = "sb-refresh-token"
CALLBACK_PATH = "/api/auth/callback"


async def resolve_current_user(provider: IdentityProviderClient) -> Optional[ProviderUser]:
    """
    Asks the provider who owns the credential carried by `provider`.
    Returns None when the provider reports an error or no user; a failed
    call and an empty answer are treated the same.
    """
    result = await provider.get_user()
    if not result.ok:
        log.info("User resolution failed", error=result.error.message, provider_status=result.error.status)
        return None
    if result.data is None:
        log.info("User resolution returned no user")
        return None
    return result.data


def session_redirect_url(dashboard_url: str, session: ProviderSession) -> str:
    """Dashboard URL carrying the session in its fragment (never sent to servers)."""
    fragment = {
        "access_token": session.access_token,
        "token_type": session.token_type,
    }
    if session.refresh_token:
        fragment["refresh_token"] = session.refresh_token
    if session.expires_in is not None:
        fragment["expires_in"] = str(session.expires_in)
    if session.expires_at is not None:
        fragment["expires_at"] = str(session.expires_at)
    if session.provider_token:
        fragment["provider_token"] = session.provider_token
    base = dashboard_url.split("#", 1)[0]
    return f"{base}#{urlencode(fragment)}"


def deliver_session(response: Response, settings: Settings, session: ProviderSession) -> None:
    """Sets the session cookies on the callback redirect (cookie delivery mode)."""
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        session.access_token,
        max_age=session.expires_in,
        domain=settings.SESSION_COOKIE_DOMAIN,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )
    if session.refresh_token:
        response.set_cookie(
            REFRESH_TOKEN_COOKIE,
            session.refresh_token,
            domain=settings.SESSION_COOKIE_DOMAIN,
            path="/",
            secure=True,
            httponly=True,
            samesite="lax",
        )


def set_code_verifier(response: Response, settings: Settings, code_verifier: str) -> None:
    response.set_cookie(
        PKCE_VERIFIER_COOKIE,
        code_verifier,
        max_age=settings.PKCE_COOKIE_MAX_AGE,
        path=CALLBACK_PATH,
        httponly=True,
        samesite="lax",
    )


def clear_code_verifier(response: Response) -> None:
    response.delete_cookie(PKCE_VERIFIER_COOKIE, path=CALLBACK_PATH)
