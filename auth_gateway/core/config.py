# File: auth_gateway/core/config.py
import sys
import logging
from typing import Literal, Optional
from pydantic import AliasChoices, Field, HttpUrl, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

DEFAULT_DASHBOARD_URL = "https://our-task-app.pages.dev/dashboard"

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_prefix='GATEWAY_',
        case_sensitive=False,
        env_file_encoding='utf-8',
        extra='ignore',
        populate_by_name=True,
    )

    PROJECT_NAME: str = "Auth Gateway"

    # Identity provider (GoTrue auth + Edge Functions). Both are required.
    PROVIDER_URL: HttpUrl = Field(
        validation_alias=AliasChoices("GATEWAY_PROVIDER_URL", "SUPABASE_URL", "PROVIDER_URL"),
    )
    PROVIDER_API_KEY: SecretStr = Field(
        validation_alias=AliasChoices("GATEWAY_PROVIDER_API_KEY", "SUPABASE_ANON_KEY", "PROVIDER_API_KEY"),
    )

    # Where the OAuth callback sends the browser once the session is established
    FRONTEND_DASHBOARD_URL: str = DEFAULT_DASHBOARD_URL
    SESSION_DELIVERY: Literal["fragment", "cookie"] = "fragment"
    SESSION_COOKIE_DOMAIN: Optional[str] = None
    PKCE_COOKIE_MAX_AGE: int = 600

    EXERCISE_FUNCTION_NAME: str = "new-exercise"

    # Configuración General
    LOG_LEVEL: str = "INFO"
    HTTP_CLIENT_TIMEOUT: int = 30
    HTTP_CLIENT_MAX_KEEPALIVE_CONNECTIONS: int = 100
    HTTP_CLIENT_MAX_CONNECTIONS: int = 200

    # gunicorn
    WORKERS: int = 2
    PORT: int = 8080

    @field_validator('LOG_LEVEL')
    @classmethod
    def check_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        normalized_v = v.upper()
        if normalized_v not in valid_levels:
            raise ValueError(f"Invalid LOG_LEVEL '{v}'. Must be one of {valid_levels}")
        return normalized_v

    @field_validator('EXERCISE_FUNCTION_NAME')
    @classmethod
    def check_function_name(cls, v):
        v = v.strip().strip("/")
        if not v:
            raise ValueError("EXERCISE_FUNCTION_NAME cannot be empty")
        return v

    @property
    def provider_base_url(self) -> str:
        return str(self.PROVIDER_URL).rstrip("/")

@lru_cache()
def get_settings() -> Settings:
    temp_log = logging.getLogger("auth_gateway.config.loader")
    if not temp_log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
        temp_log.addHandler(handler)
        temp_log.setLevel(logging.INFO)

    temp_log.info("Loading Auth Gateway settings...")
    try:
        settings_instance = Settings()
        temp_log.info("--- Auth Gateway Settings Loaded ---")
        temp_log.info(f"  PROJECT_NAME: {settings_instance.PROJECT_NAME}")
        temp_log.info(f"  PROVIDER_URL: {settings_instance.provider_base_url}")
        temp_log.info(f"  PROVIDER_API_KEY: {'*** SET ***' if settings_instance.PROVIDER_API_KEY.get_secret_value() else '!!! EMPTY !!!'}")
        temp_log.info(f"  FRONTEND_DASHBOARD_URL: {settings_instance.FRONTEND_DASHBOARD_URL}")
        temp_log.info(f"  SESSION_DELIVERY: {settings_instance.SESSION_DELIVERY}")
        temp_log.info(f"  LOG_LEVEL: {settings_instance.LOG_LEVEL}")
        temp_log.info(f"  HTTP_CLIENT_TIMEOUT: {settings_instance.HTTP_CLIENT_TIMEOUT}")
        temp_log.info("------------------------------------")
        return settings_instance
    except ValidationError as e:
        temp_log.critical("! FATAL: Error validating Gateway settings: %s", e)
        sys.exit("FATAL: Invalid Gateway configuration. Check logs.")
