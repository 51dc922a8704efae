# auth_gateway/gunicorn_conf.py
import os
from auth_gateway.core.config import get_settings

settings = get_settings()

# Gunicorn config variables
wsgi_app = "auth_gateway.main:create_app()"
workers = settings.WORKERS
worker_class = "uvicorn.workers.UvicornWorker"

# Bind to 0.0.0.0 to be accessible from outside the container
host = os.getenv("GATEWAY_HOST", "0.0.0.0")
port = str(settings.PORT)
bind = f"{host}:{port}"

# Logging is handled by structlog through the app factory

# Provider calls are bounded by HTTP_CLIENT_TIMEOUT; leave headroom on top of it
timeout = int(os.getenv("GATEWAY_GUNICORN_TIMEOUT", str(settings.HTTP_CLIENT_TIMEOUT + 30)))

# Print effective Gunicorn configuration for clarity
print("--- Gunicorn Configuration ---")
print(f"Workers: {workers}")
print(f"Worker Class: {worker_class}")
print(f"Bind: {bind}")
print(f"Timeout: {timeout}")
print("----------------------------")
