"""Domain exceptions raised by the service layer.

Each carries the HTTP status it maps to so ``main.py`` can render every
subclass through one handler.  Cache failures are never surfaced through
these; see ``article_api.cache``.
"""


class ApiError(Exception):
    """Base class for errors that reach the client as a JSON body."""

    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, error_code: str | None = None) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.error_code, "message": self.message}


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, "NOT_FOUND")


class ForbiddenError(ApiError):
    status_code = 403
    default_message = "Forbidden"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, "FORBIDDEN")


class AuthenticationError(ApiError):
    status_code = 401
    default_message = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, "AUTHENTICATION_ERROR")


class ConflictError(ApiError):
    status_code = 409
    default_message = "Resource already exists"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, "CONFLICT")
