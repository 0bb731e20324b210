"""Client error types and their user-facing descriptions."""

from firebase_admin import exceptions as firebase_exceptions  # type: ignore[import-untyped]
from google.api_core import exceptions as google_exceptions  # type: ignore[import-untyped]
from requests import RequestException


class ShareItError(Exception):
    """Base class for errors raised by the client."""


class InputValidationError(ShareItError, ValueError):
    """User input was rejected before any network call."""


class NotFoundError(ShareItError):
    pass


class ForbiddenError(ShareItError):
    pass


class ConflictError(ShareItError):
    pass


class AuthError(ShareItError):
    """Identity Toolkit rejected a request; `code` is its error message code."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


_AUTH_MESSAGES = {
    "EMAIL_NOT_FOUND": "No account exists for this email.",
    "INVALID_PASSWORD": "Incorrect password.",
    "INVALID_LOGIN_CREDENTIALS": "Incorrect email or password.",
    "INVALID_EMAIL": "The email address is not valid.",
    "USER_DISABLED": "This account has been disabled.",
    "EMAIL_EXISTS": "An account already exists for this email.",
    "WEAK_PASSWORD": "The password is too weak.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Try again later.",
    "OPERATION_NOT_ALLOWED": "This sign-in method is disabled.",
}


def describe_error(error: BaseException) -> str:
    """Map an exception to a message that can be shown to the user."""
    if isinstance(error, AuthError):
        # Codes can carry a suffix, e.g. "WEAK_PASSWORD : Password should be..."
        code = error.code.split(":")[0].strip()
        return _AUTH_MESSAGES.get(code, "Authentication failed.")
    if isinstance(error, (InputValidationError, NotFoundError, ForbiddenError, ConflictError)):
        return str(error)
    if isinstance(error, (firebase_exceptions.NotFoundError, google_exceptions.NotFound)):
        return "The requested item no longer exists."
    if isinstance(
        error, (firebase_exceptions.PermissionDeniedError, google_exceptions.PermissionDenied)
    ):
        return "You don't have permission to do that."
    if isinstance(
        error,
        (
            firebase_exceptions.UnavailableError,
            firebase_exceptions.DeadlineExceededError,
            google_exceptions.ServiceUnavailable,
            google_exceptions.DeadlineExceeded,
            RequestException,
            ConnectionError,
            TimeoutError,
        ),
    ):
        return "Network unavailable. Check your connection and try again."
    if isinstance(error, (firebase_exceptions.FirebaseError, google_exceptions.GoogleAPICallError)):
        return "The server could not complete the request."
    return "Something went wrong. Please try again."
