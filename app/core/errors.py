"""Error taxonomy shared by services and routes.

Every failure a user can trigger is an ``AppError`` subclass carrying a
stable ``ErrorCode`` and the HTTP status it maps to. The handlers registered
in ``app.main`` turn them into responses.
"""
from enum import Enum


class ErrorCode(str, Enum):
    INVALID_EMAIL = "INVALID_EMAIL"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    INVALID_NAME = "INVALID_NAME"
    EMAIL_TAKEN = "EMAIL_TAKEN"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_UPLOAD = "INVALID_UPLOAD"
    NOT_FOUND = "NOT_FOUND"
    STORAGE_FAILURE = "STORAGE_FAILURE"
    UNAUTHENTICATED = "UNAUTHENTICATED"


class AppError(Exception):
    code: ErrorCode
    status_code: int = 400
    default_message: str = "Bad request"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidEmail(AppError):
    code = ErrorCode.INVALID_EMAIL
    default_message = "Invalid email format"


class WeakPassword(AppError):
    code = ErrorCode.WEAK_PASSWORD
    default_message = (
        "Password must be at least 8 characters long, include uppercase, "
        "lowercase, number, and special character."
    )


class InvalidName(AppError):
    code = ErrorCode.INVALID_NAME
    default_message = "Name is required"


class EmailTaken(AppError):
    code = ErrorCode.EMAIL_TAKEN
    default_message = "Email already registered"


class InvalidCredentials(AppError):
    code = ErrorCode.INVALID_CREDENTIALS
    status_code = 401
    default_message = "Invalid credentials"


class InvalidUpload(AppError):
    code = ErrorCode.INVALID_UPLOAD
    default_message = "No file selected"


class NotFound(AppError):
    code = ErrorCode.NOT_FOUND
    status_code = 404
    default_message = "File not found"


class StorageFailure(AppError):
    code = ErrorCode.STORAGE_FAILURE
    status_code = 500
    default_message = "File storage failed"


class Unauthenticated(AppError):
    code = ErrorCode.UNAUTHENTICATED
    status_code = 401
    default_message = "Login required"
