from __future__ import annotations
from typing import Any, Dict, Optional


class AuthError(Exception):
    """Base for every failure the auth flow reports to a caller.

    ``public`` errors carry a message that is safe to show to the client.
    Non-public ones are logged and replaced by the endpoint's generic message.
    """

    status_code: int = 500
    message: str = "Something went wrong"
    public: bool = True

    def __init__(self, message: Optional[str] = None, *, extra: Optional[Dict[str, Any]] = None) -> None:
        self.message = message or self.message
        self.extra = extra or {}
        super().__init__(self.message)


class ValidationError(AuthError):
    status_code = 400
    message = "Invalid request"


class Conflict(AuthError):
    status_code = 409
    message = "Email already registered"


class AccountExists(Conflict):
    message = "Account already exists. Please login instead."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message, extra={"accountExists": True})


class NotFound(AuthError):
    status_code = 404
    message = "Account not found. Please sign up first."


class UserNotFound(NotFound):
    message = "User not found"


class InvalidCredentials(AuthError):
    status_code = 401
    message = "Incorrect password. Please try again."


class InvalidCode(AuthError):
    status_code = 400
    message = "Invalid verification code"


class CodeExpired(AuthError):
    status_code = 400
    message = "Verification code expired. Please request a new one."


class StoreError(AuthError):
    public = False
    message = "Storage failure"


class DeliveryError(AuthError):
    public = False
    message = "Failed to send verification email"


class NotImplementedFeature(AuthError):
    status_code = 501
    message = "Not implemented yet"
