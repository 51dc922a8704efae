# File: auth_gateway/main.py
import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auth_gateway.core.config import Settings, get_settings
from auth_gateway.core.errors import register_exception_handlers
from auth_gateway.core.logging_config import setup_logging
from auth_gateway.routers.auth_router import router as auth_router
from auth_gateway.routers.exercise_router import router as exercise_router
from auth_gateway.routers.user_router import router as user_router

log = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    # --- Lifespan Manager (Startup/Shutdown) ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("Auth Gateway: Initializing HTTPX client...")
        try:
            limits = httpx.Limits(
                max_keepalive_connections=settings.HTTP_CLIENT_MAX_KEEPALIVE_CONNECTIONS,
                max_connections=settings.HTTP_CLIENT_MAX_CONNECTIONS
            )
            timeout = httpx.Timeout(settings.HTTP_CLIENT_TIMEOUT, connect=15.0)
            app.state.http_client = httpx.AsyncClient(limits=limits, timeout=timeout)
            log.info("HTTPX client initialized successfully.")
        except Exception as e:
            log.exception("CRITICAL: Failed to initialize HTTPX client!", error=str(e))
            app.state.http_client = None

        yield

        log.info("Auth Gateway: Shutting down...")
        client = getattr(app.state, 'http_client', None)
        if client and not client.is_closed:
            await client.aclose()
            log.info("HTTPX client closed.")
        log.info("Shutdown complete.")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Stateless gateway forwarding OAuth login, session and exercise calls to the identity provider.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.dependency_overrides[get_settings] = lambda: settings

    # --- Middlewares ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )

    @app.middleware("http")
    async def request_context_timing_logging(request: Request, call_next):
        start_time = time.perf_counter()
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
        request.state.request_id = request_id

        request_log = log.bind(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown"
        )
        request_log.info("Request received")

        try:
            response = await call_next(request)
            process_time = (time.perf_counter() - start_time) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{process_time:.2f}ms"
            request_log.info("Request completed", status_code=response.status_code, duration_ms=round(process_time, 2))
            return response
        except Exception:
            process_time = (time.perf_counter() - start_time) * 1000
            request_log.exception("Unhandled exception during request", duration_ms=round(process_time, 2))
            return JSONResponse(status_code=500, content={"error": "Internal Server Error"})

    register_exception_handlers(app)

    # --- Router Inclusion ---
    app.include_router(auth_router, prefix="/api/auth")
    app.include_router(user_router, prefix="/api")
    app.include_router(exercise_router, prefix="/api")
    log.info("Routers included", prefixes=["/api/auth", "/api"])

    # --- Root & Health Endpoints ---
    @app.get("/", tags=["General"], include_in_schema=False)
    async def read_root():
        return JSONResponse({"message": f"{settings.PROJECT_NAME} is running!"})

    @app.get("/health", tags=["Health"], summary="Health check endpoint")
    async def health_check(request: Request):
        http_client = getattr(request.app.state, 'http_client', None)
        http_client_ok = http_client is not None and not http_client.is_closed

        if http_client_ok:
            return JSONResponse({"status": "healthy", "service": settings.PROJECT_NAME})
        else:
            log.error("Health check failed: HTTP client not available.")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unhealthy", "service": settings.PROJECT_NAME, "detail": "HTTP client is not available."}
            )

    return app


# --- Main Execution ---
if __name__ == "__main__":
    settings = get_settings()
    port = int(os.getenv("PORT", settings.PORT))
    host = os.getenv("HOST", "0.0.0.0")
    uvicorn.run(
        "auth_gateway.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=True,
        log_level=settings.LOG_LEVEL.lower()
    )
