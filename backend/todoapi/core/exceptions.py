"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Validation Errors
class ValidationFailedError(BaseAPIException):
    """Malformed or missing input"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, status_code=401)


class InvalidCredentialsError(AuthenticationError):
    """Unknown email or wrong password; both read the same"""
    def __init__(self):
        super().__init__("Invalid email or password")


class InvalidRefreshTokenError(AuthenticationError):
    """Missing, unknown, rotated, revoked or expired refresh token"""
    def __init__(self):
        super().__init__("Invalid or expired refresh token")


class TokenInvalidError(AuthenticationError):
    """Access token is missing, malformed or expired"""
    def __init__(self):
        super().__init__("Invalid or expired access token")


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class ResourceAlreadyExistsError(BaseAPIException):
    """Resource already exists"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} already exists", status_code=409)


class DuplicateEmailError(ResourceAlreadyExistsError):
    """Email already registered"""
    def __init__(self):
        super().__init__("Email")

