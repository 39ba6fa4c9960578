class AppError(Exception):
    """Base application-layer error, independent from transport concerns.

    Every ``AppError`` is operational: its message is safe to show to clients.
    """

    status_code = 500
    is_operational = True

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"


class ValidationError(AppError):
    """Raised when application-level validation fails."""

    status_code = 400


class AuthenticationError(AppError):
    """Raised when the caller is not (or no longer) authenticated."""

    status_code = 401


class ForbiddenError(AppError):
    """Raised when operation is forbidden for the caller's role."""

    status_code = 403


class NotFoundError(AppError):
    """Raised when an expected entity or route does not exist."""

    status_code = 404


class PayloadTooLargeError(AppError):
    status_code = 413


class RateLimitExceededError(AppError):
    status_code = 429
