# File: auth_gateway/routers/exercise_router.py
from typing import Annotated, Any
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
import structlog

from auth_gateway.auth.auth_middleware import CredentialedProvider
from auth_gateway.auth.auth_service import resolve_current_user
from auth_gateway.core.config import Settings, get_settings
from auth_gateway.core.errors import GatewayError, GuardedRoute, unexpected_error_message
from auth_gateway.models.identity_models import ErrorResponse, ExerciseInvocation, ExerciseRequest

log = structlog.get_logger(__name__)

router = APIRouter(route_class=GuardedRoute)

MISSING_TIMES_ERROR = "Start time and end time are required."


async def _read_exercise_body(request: Request) -> ExerciseRequest:
    """Parses the JSON body leniently: anything unreadable counts as an empty body."""
    raw = await request.body()
    try:
        return ExerciseRequest.model_validate_json(raw or b"{}")
    except ValidationError:
        return ExerciseRequest()


@router.post(
    "/exercise",
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    tags=["Exercise"],
    summary="Record an exercise for the authenticated user",
    description="Body: {startTime, endTime, description?}. The remote function's result is returned as-is.",
)
@unexpected_error_message("An unexpected server error occurred.")
async def record_exercise(
    request: Request,
    identity: CredentialedProvider,
    settings: Annotated[Settings, Depends(get_settings)],
):
    log_ctx = log.bind(request_id=getattr(request.state, 'request_id', 'N/A'))

    user = await resolve_current_user(identity)
    if user is None:
        raise GatewayError(status.HTTP_401_UNAUTHORIZED, "Unauthorized")
    log_ctx = log_ctx.bind(user_id=user.id)

    exercise = await _read_exercise_body(request)
    if not exercise.has_time_range():
        log_ctx.info("Exercise rejected: missing time range")
        raise GatewayError(status.HTTP_400_BAD_REQUEST, MISSING_TIMES_ERROR)

    # user_id always comes from the verified identity, never from the body
    invocation = ExerciseInvocation(
        start_time=exercise.start_time,
        end_time=exercise.end_time,
        description=exercise.description,
        user_id=user.id,
    )
    function_name = settings.EXERCISE_FUNCTION_NAME
    log_ctx.info("Invoking exercise function", function=function_name)

    result = await identity.invoke_function(function_name, invocation.model_dump(exclude_none=True))
    if not result.ok:
        log_ctx.error("Exercise function invocation failed", error=result.error.message)
        raise GatewayError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to invoke exercise function.",
            details=result.error.message,
        )

    log_ctx.info("Exercise recorded")
    data: Any = result.data
    return JSONResponse(status_code=status.HTTP_200_OK, content=data)
