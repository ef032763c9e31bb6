"""Auth error taxonomy. Services raise these; app.main maps them to HTTP responses."""

# Single message for every credential failure so callers cannot tell a missing
# account from a wrong password.
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password."


class AuthServiceError(Exception):
    """Base class for errors raised by the auth services."""

    status_code = 500
    code = "server_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnauthorizedError(AuthServiceError):
    """Bad credentials, invalid/expired/stale token, or inactive account."""

    status_code = 401
    code = "unauthorized"


class AccountLockedError(UnauthorizedError):
    """Login blocked by the lockout window; carries the remaining wait in minutes."""

    code = "account_locked"

    def __init__(self, retry_after_minutes: int) -> None:
        self.retry_after_minutes = retry_after_minutes
        super().__init__(
            f"Account temporarily locked. Try again in {retry_after_minutes} minutes."
        )


class ForbiddenError(AuthServiceError):
    """Authenticated but not allowed (role, hierarchy, or tenant scope)."""

    status_code = 403
    code = "forbidden"


class BadRequestError(AuthServiceError):
    """Malformed input, weak password, or invalid/expired reset token."""

    status_code = 400
    code = "bad_request"


class NotFoundError(AuthServiceError):
    status_code = 404
    code = "not_found"


class ConflictError(AuthServiceError):
    """Duplicate email or an already-linked account."""

    status_code = 409
    code = "conflict"


class ServiceUnavailableError(AuthServiceError):
    """A bounded external call (store, mail) failed or timed out; safe to retry."""

    status_code = 503
    code = "service_unavailable"
