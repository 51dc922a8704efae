# File: auth_gateway/routers/auth_router.py
from typing import Annotated, Optional
from fastapi import APIRouter, Cookie, Depends, Request, status
from fastapi.responses import RedirectResponse
import structlog

from auth_gateway.auth.auth_middleware import AnonymousProvider, CredentialedProvider
from auth_gateway.auth import auth_service
from auth_gateway.core.config import Settings, get_settings
from auth_gateway.core.errors import GatewayError, GuardedRoute, unexpected_error_message
from auth_gateway.models.identity_models import ErrorResponse, LogoutResponse

log = structlog.get_logger(__name__)

# El prefijo /api/auth se define en main.py al incluir el router
router = APIRouter(route_class=GuardedRoute)


def _origin(request: Request) -> str:
    return f"{request.url.scheme}://{request.url.netloc}"


@router.get(
    "/login/{provider}",
    status_code=status.HTTP_302_FOUND,
    responses={500: {"model": ErrorResponse}},
    tags=["Authentication"],
    summary="Start an OAuth login with the given identity provider",
)
async def begin_login(
    provider: str,
    request: Request,
    identity: AnonymousProvider,
    settings: Annotated[Settings, Depends(get_settings)],
):
    callback_url = f"{_origin(request)}{auth_service.CALLBACK_PATH}"
    log_ctx = log.bind(request_id=getattr(request.state, 'request_id', 'N/A'), oauth_provider=provider)
    log_ctx.info("OAuth login requested", callback_url=callback_url)

    result = await identity.begin_oauth(provider, callback_url)
    if not result.ok:
        log_ctx.error("Provider refused to start OAuth flow", error=result.error.message)
        raise GatewayError(status.HTTP_500_INTERNAL_SERVER_ERROR, result.error.message)

    response = RedirectResponse(result.data.url, status_code=status.HTTP_302_FOUND)
    auth_service.set_code_verifier(response, settings, result.data.code_verifier)
    log_ctx.info("Redirecting to provider authorization URL")
    return response


@router.get(
    "/callback",
    status_code=status.HTTP_302_FOUND,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Authentication"],
    summary="OAuth callback: exchange the code for a session and go to the dashboard",
)
async def oauth_callback(
    request: Request,
    identity: AnonymousProvider,
    settings: Annotated[Settings, Depends(get_settings)],
    code: Optional[str] = None,
    code_verifier: Annotated[Optional[str], Cookie(alias=auth_service.PKCE_VERIFIER_COOKIE)] = None,
):
    log_ctx = log.bind(request_id=getattr(request.state, 'request_id', 'N/A'))
    if not code:
        log_ctx.warning("OAuth callback without code")
        raise GatewayError(status.HTTP_400_BAD_REQUEST, "No code provided")

    result = await identity.exchange_code(code, code_verifier)
    if not result.ok:
        log_ctx.error("Code exchange failed", error=result.error.message)
        raise GatewayError(status.HTTP_500_INTERNAL_SERVER_ERROR, result.error.message)

    session = result.data
    if settings.SESSION_DELIVERY == "cookie":
        response = RedirectResponse(settings.FRONTEND_DASHBOARD_URL, status_code=status.HTTP_302_FOUND)
        auth_service.deliver_session(response, settings, session)
    else:
        response = RedirectResponse(
            auth_service.session_redirect_url(settings.FRONTEND_DASHBOARD_URL, session),
            status_code=status.HTTP_302_FOUND,
        )
    auth_service.clear_code_verifier(response)
    log_ctx.info("Session established, redirecting to dashboard",
                 delivery=settings.SESSION_DELIVERY,
                 user_id=session.user.id if session.user else None)
    return response


@router.post(
    "/logout",
    response_model=LogoutResponse,
    responses={500: {"model": ErrorResponse}},
    tags=["Authentication"],
    summary="Sign out the session identified by the Authorization header",
)
@unexpected_error_message("An unexpected error occurred")
async def logout(request: Request, identity: CredentialedProvider):
    log_ctx = log.bind(request_id=getattr(request.state, 'request_id', 'N/A'))
    log_ctx.info("Logout requested", has_credential=identity.authorization is not None)

    result = await identity.sign_out()
    if not result.ok:
        log_ctx.error("Provider sign out failed", error=result.error.message)
        raise GatewayError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to sign out", details=result.error.message)

    log_ctx.info("Logout successful")
    return LogoutResponse(message="Successfully logged out")
