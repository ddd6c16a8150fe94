"""
Application exceptions for centralized error handling
"""

from typing import Optional, Dict, Any


class BaseAppException(Exception):
    """Base application exception"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


# === Authentication ===
class AuthenticationError(BaseAppException):
    """Authentication failed.

    PIN failures always use the default message so a caller cannot tell a
    wrong PIN from an unknown or locked credential.
    """

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 401, "AUTHENTICATION_ERROR", details)


class AuthorizationError(BaseAppException):
    """Access denied"""

    def __init__(
        self, message: str = "Access denied", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, 403, "AUTHORIZATION_ERROR", details)


# === Validation ===
class ValidationError(BaseAppException):
    """Invalid input data"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 400, "VALIDATION_ERROR", details)


class DuplicateError(BaseAppException):
    """Duplicate data"""

    def __init__(self, resource: str, field: str, value: str):
        message = f"{resource} with {field} '{value}' already exists"
        details = {"resource": resource, "field": field, "value": value}
        super().__init__(message, 409, "DUPLICATE_ERROR", details)


# === Resources ===
class NotFoundError(BaseAppException):
    """Resource not found"""

    def __init__(self, resource: str, identifier: str = None):
        if identifier:
            message = f"{resource} with identifier '{identifier}' not found"
            details = {"resource": resource, "identifier": identifier}
        else:
            message = f"{resource} not found"
            details = {"resource": resource}
        super().__init__(message, 404, "NOT_FOUND", details)


# === Business logic ===
class BusinessLogicError(BaseAppException):
    """Business rule violation"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 400, "BUSINESS_LOGIC_ERROR", details)


class NoApplicableSessionError(BusinessLogicError):
    """PIN accepted but the student has no open session today"""

    def __init__(self, message: str = "No attendance session is open for today"):
        super().__init__(message)
        self.error_code = "NO_APPLICABLE_SESSION"


class InvalidTransitionError(BusinessLogicError):
    """Event is not allowed in the record's current status"""

    def __init__(self, status: str, event: str):
        message = f"Cannot apply {event} to a record in status '{status}'"
        super().__init__(message, {"status": status, "event": event})
        self.error_code = "INVALID_TRANSITION"
        self.status_code = 409


# === Database ===
class DatabaseError(BaseAppException):
    """Database operation failed"""

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 500, "DATABASE_ERROR", details)


class DatabaseConnectionError(BaseAppException):
    """Database connection failed"""

    def __init__(self, message: str = "Database connection failed"):
        super().__init__(message, 503, "DATABASE_CONNECTION_ERROR")


class DatabaseTimeoutError(BaseAppException):
    """Database operation timed out"""

    def __init__(self, operation: str, timeout: int):
        message = f"Database operation '{operation}' timed out after {timeout}s"
        details = {"operation": operation, "timeout": timeout}
        super().__init__(message, 504, "DATABASE_TIMEOUT", details)


class DatabaseIntegrityError(BaseAppException):
    """Integrity constraint violated"""

    def __init__(self, constraint: str, details: Optional[Dict[str, Any]] = None):
        message = f"Database integrity constraint violated: {constraint}"
        error_details = {"constraint": constraint}
        if details:
            error_details.update(details)
        super().__init__(message, 409, "DATABASE_INTEGRITY_ERROR", error_details)


# === Jobs ===
class JobTimeoutError(BaseAppException):
    """Scheduled job exceeded its run budget"""

    def __init__(self, job: str, timeout: int):
        message = f"Job '{job}' did not finish within {timeout}s"
        details = {"job": job, "timeout": timeout}
        super().__init__(message, 504, "JOB_TIMEOUT", details)


# === Configuration ===
class ConfigurationError(BaseAppException):
    """Invalid or missing configuration"""

    def __init__(self, parameter: str, message: str = None):
        message = (
            message or f"Configuration parameter '{parameter}' is invalid or missing"
        )
        details = {"parameter": parameter}
        super().__init__(message, 500, "CONFIGURATION_ERROR", details)
