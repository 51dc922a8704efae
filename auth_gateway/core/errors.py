# File: auth_gateway/core/errors.py
from typing import Any, Callable, Optional
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

log = structlog.get_logger(__name__)

DEFAULT_UNEXPECTED_ERROR = "An unexpected server error occurred"


class GatewayError(Exception):
    """Error with a known HTTP status, rendered as {"error": ..., "details": ...}."""
    def __init__(self, status_code: int, error: str, details: Optional[str] = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details

    def to_body(self) -> dict:
        body: dict = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body


def unexpected_error_message(message: str) -> Callable:
    """Sets the generic 500 message GuardedRoute returns when the endpoint crashes."""
    def decorator(endpoint: Callable) -> Callable:
        endpoint.unexpected_error_message = message
        return endpoint
    return decorator


class GuardedRoute(APIRoute):
    """
    Route class that turns any exception escaping the endpoint (or its
    dependencies) into a 500 JSON body. Known errors pass through to the
    app's exception handlers.
    """

    def get_route_handler(self) -> Callable:
        original_route_handler = super().get_route_handler()
        message = getattr(self.endpoint, "unexpected_error_message", DEFAULT_UNEXPECTED_ERROR)
        route_path = self.path

        async def guarded_route_handler(request: Request) -> Any:
            try:
                return await original_route_handler(request)
            except (GatewayError, StarletteHTTPException, RequestValidationError):
                raise
            except Exception:
                log.exception(
                    "Endpoint crashed",
                    route=route_path,
                    request_id=getattr(request.state, "request_id", None),
                )
                return JSONResponse(status_code=500, content={"error": message})

        return guarded_route_handler


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    log.info(
        "Request rejected",
        status_code=exc.status_code,
        error=exc.error,
        details=exc.details,
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GatewayError, gateway_error_handler)
