"""Error taxonomy shared by the API, the services and the client."""


class BlogError(Exception):
    """Base exception for all application errors.

    Carries the HTTP status the error maps to at the API boundary.
    """

    status_code: int = 500
    default_message: str = "Server Error"

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message or self.default_message)
        if status_code is not None:
            self.status_code = status_code

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(BlogError):
    """Raised when input is missing or has the wrong shape."""

    status_code = 400
    default_message = "Invalid input"


class AuthenticationError(BlogError):
    """Raised for a missing, invalid or expired token, or bad credentials."""

    status_code = 401
    default_message = "Not authorized to access this route"


class AuthorizationError(BlogError):
    """Raised when an authenticated user is not permitted to act."""

    status_code = 403
    default_message = "Not permitted to perform this action"


class NotFoundError(BlogError):
    """Raised when a referenced article or user does not exist."""

    status_code = 404
    default_message = "Resource not found"


class ConflictError(BlogError):
    """Raised when a unique value (username, email) is already taken."""

    status_code = 409
    default_message = "Resource already exists"


class StorageError(BlogError):
    """Raised when the database or the blob store fails."""

    status_code = 500
    default_message = "Storage failure"


ERRORS_BY_STATUS: dict[int, type[BlogError]] = {
    400: ValidationError,
    401: AuthenticationError,
    403: AuthorizationError,
    404: NotFoundError,
    409: ConflictError,
}


def error_for_status(status_code: int, message: str | None = None) -> BlogError:
    """Build the taxonomy error matching an HTTP status code."""
    error_class = ERRORS_BY_STATUS.get(status_code)
    if error_class is None and status_code >= 500:
        return StorageError(message, status_code=status_code)
    if error_class is None:
        return BlogError(message, status_code=status_code)
    return error_class(message)
