"""
Centralized error handling and user-friendly error messages.
"""
import logging

from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error."""
    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "SERVER_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Validation error."""
    def __init__(self, message: str, code: str = "VALIDATION_ERROR", details: dict | None = None):
        super().__init__(message, status_code=400, code=code, details=details)


class UnauthorizedError(AppError):
    """Missing, expired or invalid credentials."""
    def __init__(self, message: str = "Unauthorized access", code: str = "INVALID_TOKEN", details: dict | None = None):
        super().__init__(message, status_code=401, code=code, details=details)


class ForbiddenError(AppError):
    """Authenticated, but not allowed to do this."""
    def __init__(self, message: str = "Access forbidden", code: str = "NOT_AUTHORIZED", details: dict | None = None):
        super().__init__(message, status_code=403, code=code, details=details)


class NotFoundError(AppError):
    """Resource not found error."""
    def __init__(self, message: str = "Resource not found", code: str = "NOT_FOUND", details: dict | None = None):
        super().__init__(message, status_code=404, code=code, details=details)


class ConflictError(AppError):
    """State conflict: duplicates or stale concurrency tokens."""
    def __init__(self, message: str, code: str = "CONFLICT", details: dict | None = None):
        super().__init__(message, status_code=409, code=code, details=details)


class SecurityError(AppError):
    """Server-side security invariant broken (e.g. plaintext password in storage)."""
    def __init__(self, message: str = "Security error", code: str = "SECURITY_ERROR", details: dict | None = None):
        super().__init__(message, status_code=500, code=code, details=details)


class DatabaseError(AppError):
    """Database error."""
    def __init__(self, message: str = "Database operation failed", details: dict | None = None):
        super().__init__(message, status_code=500, code="DATABASE_ERROR", details=details)


# User-friendly error messages
ERROR_MESSAGES = {
    # Authentication
    "missing_credentials": "Username and password are required.",
    "invalid_credentials": "Invalid credentials.",
    "no_token": "Access denied. No token provided.",
    "token_expired": "Token expired. Please login again.",
    "invalid_token": "Invalid token.",
    "security_error": "Something went wrong while verifying your credentials. Please contact support.",

    # Authorization
    "recruiter_only": "Access denied. Recruiter privileges required.",
    "applicant_only": "Access denied. Applicant privileges required.",
    "self_only": "Access denied. You can only access your own data.",

    # Accounts
    "missing_fields": "All fields are required.",
    "username_taken": "Username is already taken.",
    "email_taken": "An account with this email already exists.",
    "person_number_taken": "An account with this person number already exists.",
    "email_not_found": "No account is registered with this email.",
    "person_number_not_found": "No account is registered with this person number.",
    "user_not_found": "User not found.",
    "weak_password": "Password must be at least 6 characters long.",

    # Applications
    "application_not_found": "Application not found.",
    "no_applications": "No applications found.",
    "no_competences": "No competences found.",
    "stale_application": (
        "The application has been modified by another user. Your update has been aborted. "
        "Refresh the page to see the new data before trying to modify it!"
    ),

    # General
    "not_found": "The requested resource was not found.",
    "server_error": "Internal server error.",
    "database_error": "Database connection issue. Please try again later.",
    "validation_error": "Please check your input and try again.",
}


def get_error_message(error_key: str, default: str | None = None) -> str:
    """Get a user-friendly error message."""
    return ERROR_MESSAGES.get(error_key, default or ERROR_MESSAGES["server_error"])


def handle_database_error(error: Exception, operation: str = "") -> AppError:
    """Map a database exception to an AppError with a user-friendly message."""
    logger.error("Database error during %s: %s", operation, error)

    error_str = str(error).lower()

    if "duplicate" in error_str or "unique" in error_str:
        return ConflictError("This record already exists. Please check your input.", code="DUPLICATE")

    if "foreign key" in error_str:
        return ValidationError("Invalid reference. The related record may not exist.")

    if "connection" in error_str or "operational" in error_str:
        return AppError(get_error_message("database_error"), status_code=503, code="DATABASE_UNAVAILABLE")

    return DatabaseError(get_error_message("server_error"))


def create_error_response(
    status_code: int,
    message: str,
    code: str,
    details: dict | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    content = {
        "success": False,
        "message": message,
        "code": code,
    }

    if details:
        content["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content
    )
