"""Custom exception classes"""
from typing import Any, Optional


class AppException(Exception):
    """Base exception for application errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_type: str = "AppError",
        details: Optional[Any] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.details = details
        super().__init__(self.message)


class ValidationError(AppException):
    """Validation error exception"""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=400,
            error_type="ValidationError",
            details=details
        )


class NotFoundError(AppException):
    """Resource not found exception"""

    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=404,
            error_type="NotFoundError",
            details=details
        )


class ConflictExhaustedError(AppException):
    """Unique value could not be generated within the retry bound"""

    def __init__(self, message: str = "Could not allocate a unique value", details: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_type="ConflictExhaustedError",
            details=details
        )


class UpstreamError(AppException):
    """External collaborator failed or returned unusable data"""

    def __init__(self, message: str = "Upstream service failed", details: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=502,
            error_type="UpstreamError",
            details=details
        )


class PersistenceError(AppException):
    """Database operation error exception"""

    def __init__(self, message: str = "Database error occurred", details: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_type="PersistenceError",
            details=details
        )
