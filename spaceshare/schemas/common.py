"""
SpaceShare Backend — Shared Schema Building Blocks
====================================================

What:  Base model with camelCase aliases, the error envelope, and the
       converter from pydantic validation failures to the app's
       ValidationError.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from spaceshare.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class CamelModel(BaseModel):
    """
    Base for every response model.

    Python code uses snake_case attributes; JSON uses camelCase keys
    (`tokenExpiration`, `hasNextPage`), which is what the web client expects.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    message: str


class ErrorResponse(BaseModel):
    """
    Standardized error envelope for all API errors.

    Example:
        {
            "message": "Could not find a place with provided id",
            "status": 404,
            "errors": []
        }
    """
    message: str = Field(description="Human-readable error description")
    status: int = Field(description="HTTP status code, repeated in the body")
    errors: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Field-level validation details, empty for non-validation errors",
    )


class HealthResponse(BaseModel):
    """Returned by GET /health for monitoring and load balancer probes."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")


def error_details(exc: PydanticValidationError) -> List[Dict[str, Any]]:
    """Flatten pydantic errors into [{"field": ..., "message": ...}]."""
    details = []
    for err in exc.errors():
        ctx_error = (err.get("ctx") or {}).get("error")
        details.append(
            {
                "field": ".".join(str(part) for part in err["loc"]) or None,
                "message": str(ctx_error) if ctx_error else err["msg"],
            }
        )
    return details


def build_command(model: Type[ModelT], message: Optional[str] = None, **data: Any) -> ModelT:
    """
    Construct a validated command model from raw request fields.

    Raises:
        ValidationError (422) carrying one entry per failing field.
    """
    try:
        return model(**data)
    except PydanticValidationError as exc:
        raise ValidationError(
            message=message or "Invalid inputs passed, please check your data",
            errors=error_details(exc),
        )
