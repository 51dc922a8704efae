# File: auth_gateway/models/identity_models.py
from typing import Any, Generic, Optional, TypeVar
from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


# --- Provider side ---

class ProviderError(BaseModel):
    """Failure descriptor reported by the identity provider."""
    message: str
    status: Optional[int] = None


class ProviderResult(BaseModel, Generic[T]):
    """
    Outcome of a provider call: either `data` or `error`.
    Transport failures are not represented here; they propagate as exceptions.
    """
    data: Optional[T] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Any = None) -> "ProviderResult":
        return cls(data=data)

    @classmethod
    def failure(cls, message: str, status: Optional[int] = None) -> "ProviderResult":
        return cls(error=ProviderError(message=message, status=status))


class ProviderUser(BaseModel):
    """User identity as returned by the provider. Extra attributes are kept but never exposed."""
    id: str
    email: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class ProviderSession(BaseModel):
    access_token: str
    token_type: str = "bearer"
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None
    provider_token: Optional[str] = None
    user: Optional[ProviderUser] = None

    model_config = ConfigDict(extra="ignore")


class OAuthStart(BaseModel):
    url: str
    code_verifier: str


# --- Gateway side ---

class MeResponse(BaseModel):
    id: str
    email: Optional[str] = None


class LogoutResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None


class ExerciseRequest(BaseModel):
    """Inbound body of POST /api/exercise. Any other field (e.g. user_id) is dropped."""
    start_time: Optional[Any] = Field(None, alias="startTime")
    end_time: Optional[Any] = Field(None, alias="endTime")
    description: Optional[Any] = None

    model_config = ConfigDict(extra="ignore")

    def has_time_range(self) -> bool:
        return _present(self.start_time) and _present(self.end_time)


class ExerciseInvocation(BaseModel):
    """Payload forwarded to the remote exercise function."""
    start_time: Any
    end_time: Any
    description: Optional[Any] = None
    user_id: str


def _present(value: Any) -> bool:
    return value is not None and value != ""
