# File: auth_gateway/routers/user_router.py
from fastapi import APIRouter, Request, status
import structlog

from auth_gateway.auth.auth_middleware import CredentialedProvider
from auth_gateway.auth.auth_service import resolve_current_user
from auth_gateway.core.errors import GatewayError, GuardedRoute, unexpected_error_message
from auth_gateway.models.identity_models import ErrorResponse, MeResponse

log = structlog.get_logger(__name__)

router = APIRouter(route_class=GuardedRoute)


@router.get(
    "/me",
    response_model=MeResponse,
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Users"],
    summary="Identity behind the Authorization header",
)
@unexpected_error_message("An unexpected server error occurred")
async def read_current_user(request: Request, identity: CredentialedProvider):
    log_ctx = log.bind(request_id=getattr(request.state, 'request_id', 'N/A'))

    user = await resolve_current_user(identity)
    if user is None:
        raise GatewayError(status.HTTP_401_UNAUTHORIZED, "Unauthorized or invalid token")

    log_ctx.info("Current user resolved", user_id=user.id)
    # Only id and email leave the gateway
    return MeResponse(id=user.id, email=user.email)
