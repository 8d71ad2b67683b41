"""
SpaceShare Backend — Custom Exception Hierarchy
=================================================

What:  Defines application-specific exceptions for different error scenarios.
How:   Each exception carries a user-facing message, the HTTP status it maps to,
       an `errors` list (field-level detail, returned to the client) and an
       optional context dict (logged server-side only). One global handler
       (registered in main.py) turns any of them into the error envelope:

           {"message": "...", "status": 404, "errors": []}

Who:   Raised by services and the authorization guard; caught by main.py.
When:  During request processing when a business rule or the store fails.

Exception Hierarchy:
    SpaceShareError (base)       → 500
    ├── ValidationError          → 422 Unprocessable Entity (client can fix)
    ├── UnauthorizedError        → 401 Unauthorized (missing/bad credentials)
    ├── ForbiddenError           → 403 Forbidden (not the owner)
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 422 Unprocessable Entity (duplicate key)
    ├── DatabaseError            → 500 Internal Server Error
    └── FileStorageError         → 500 Internal Server Error
"""

from typing import Any, Dict, List, Optional, Union

ErrorDetail = Dict[str, Any]


def _as_error_list(errors: Union[ErrorDetail, List[ErrorDetail], None]) -> List[ErrorDetail]:
    if errors is None:
        return []
    if isinstance(errors, list):
        return list(errors)
    return [errors]


class SpaceShareError(Exception):
    """
    Base exception for all SpaceShare application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        status:   HTTP status code for the response
        errors:   Field-level details returned to the client
        context:  Additional debug info (logged but NOT returned to client)
    """

    status: int = 500
    default_message = "Sorry, an unknown error occurred, we are already fixing it!"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Union[ErrorDetail, List[ErrorDetail], None] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.errors = _as_error_list(errors)
        self.context = context or {}
        super().__init__(self.message)

    def to_envelope(self) -> Dict[str, Any]:
        return {"message": self.message, "status": self.status, "errors": self.errors}


class ValidationError(SpaceShareError):
    """
    Raised when client input fails validation.

    When:    Missing fields, length constraints, bad image type/size,
             malformed identifiers.
    HTTP:    422 Unprocessable Entity

    Example response:
        {
            "message": "Invalid inputs passed, please check your data",
            "status": 422,
            "errors": [{"field": "title", "message": "Title must contain at least 3 characters"}]
        }
    """

    status = 422
    default_message = "Invalid inputs passed, please check your data"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        errors: Union[ErrorDetail, List[ErrorDetail], None] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if field and errors is None:
            errors = {"field": field, "message": message or self.default_message}
        super().__init__(message=message, errors=errors, context=context)
        self.field = field


class UnauthorizedError(SpaceShareError):
    """
    Raised when the caller could not be authenticated.

    When:    No/invalid bearer token, unknown email, wrong password.
    HTTP:    401 Unauthorized
    """

    status = 401
    default_message = "Authentication failed"


class ForbiddenError(SpaceShareError):
    """
    Raised when an authenticated user acts on a record they do not own.

    When:    Editing/deleting someone else's listing, creating a listing on
             behalf of another user, reading or editing another user's profile.
    HTTP:    403 Forbidden
    """

    status = 403
    default_message = "Not authorized"


class NotFoundError(SpaceShareError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing records; the service layer converts
    that into this exception so the route gets a 404 without HTTP logic
    leaking into the services.
    """

    status = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"Could not find a {resource} with provided id"
            if resource_id is None:
                message = f"The requested {resource} was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(SpaceShareError):
    """
    Raised when a unique key would be duplicated (e.g. email on signup).

    HTTP:    422 Unprocessable Entity, so clients handle it like any
             other rejected form field.
    """

    status = 422
    default_message = "Resource already exists"


class DatabaseError(SpaceShareError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic. Driver errors,
    SQL and constraint names are logged server-side only.
    """

    status = 500
    default_message = "Sorry, something went wrong, please try again later"


class FileStorageError(SpaceShareError):
    """
    Raised when an image could not be written to storage.

    Release (deletion) failures never raise this; they are best-effort
    and only logged.
    """

    status = 500
    default_message = "Failed to save uploaded image. Please try again."
