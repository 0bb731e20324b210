"""Input validation for user-supplied values.

Every check runs before any network call and raises InputValidationError
with a message that can be shown as-is.
"""

import re

from .errors import InputValidationError

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
MIN_UPLOAD_BYTES = 100
ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
MAX_CAPTION_LENGTH = 500
MAX_COMMENT_LENGTH = 1000

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_DANGEROUS_EMAIL_CHARS = re.compile(r"[<>'\"&]")
_DISPLAY_NAME_RE = re.compile(r"^[a-zA-Z0-9\s\-_.]+$")
_SPECIAL_CHARS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")
_COMMON_PASSWORDS = frozenset({"password", "123456", "qwerty", "admin", "letmein"})


def validate_email(email: str | None) -> str:
    """Return the normalized (trimmed, lower-cased) email."""
    if not email:
        raise InputValidationError("Email is required")
    value = email.strip().lower()
    if not _EMAIL_RE.match(value):
        raise InputValidationError("Invalid email format")
    if len(value) > 254:
        raise InputValidationError("Email too long")
    if _DANGEROUS_EMAIL_CHARS.search(value):
        raise InputValidationError("Email contains invalid characters")
    return value


def password_problems(password: str) -> list[str]:
    """All rules the password breaks, in display order."""
    problems = []
    if len(password) < 8:
        problems.append("Password must be at least 8 characters long")
    if len(password) > 128:
        problems.append("Password must be less than 128 characters")
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        problems.append("Password must contain at least one number")
    if not _SPECIAL_CHARS.search(password):
        problems.append("Password must contain at least one special character")
    if password.lower() in _COMMON_PASSWORDS:
        problems.append("Password is too common")
    return problems


def validate_password(password: str | None) -> str:
    if not password:
        raise InputValidationError("Password is required")
    problems = password_problems(password)
    if problems:
        raise InputValidationError(problems[0])
    return password


def validate_display_name(name: str | None) -> str:
    if not name or not name.strip():
        raise InputValidationError("Display name is required")
    value = name.strip()
    if len(value) < 2:
        raise InputValidationError("Display name must be at least 2 characters")
    if len(value) > 50:
        raise InputValidationError("Display name must be less than 50 characters")
    if not _DISPLAY_NAME_RE.match(value):
        raise InputValidationError("Display name contains invalid characters")
    return value


def validate_image(data: bytes, content_type: str) -> None:
    """Reject uploads that are empty, oversized or not an allowed image type."""
    if not data:
        raise InputValidationError("File is required")
    if len(data) > MAX_UPLOAD_BYTES:
        raise InputValidationError(
            f"File too large (max {MAX_UPLOAD_BYTES // (1024 * 1024)}MB)"
        )
    if len(data) < MIN_UPLOAD_BYTES:
        raise InputValidationError("File too small")
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise InputValidationError(f"File type {content_type} is not allowed")


def validate_text(text: str | None, field: str, max_length: int, required: bool = True) -> str:
    value = (text or "").strip()
    if required and not value:
        raise InputValidationError(f"{field} is required")
    if len(value) > max_length:
        raise InputValidationError(f"{field} must be at most {max_length} characters")
    return value
