# backend/idbroker/core/exceptions.py
"""
Domain-specific exceptions for the identity broker.

Every user-facing failure is one member of the closed ``ErrorKind`` set. Each
member knows its wire code, its HTTP status and the message template it renders,
so call sites raise ``ApiError(ErrorKind.X, **params)`` instead of threading
strings around. OAuth-shaped endpoints use the separate ``OAuthError`` family,
which renders as ``{error, error_description}``.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message}}


class ErrorKind(Enum):
    """Closed set of broker error kinds: (code, HTTP status, message template)."""

    INVALID_CHALLENGE = (
        "invalid_challenge",
        status.HTTP_403_FORBIDDEN,
        "The passkey challenge is invalid or has expired. Please try again.",
    )
    EXPIRED_REGISTRATION = (
        "expired_registration",
        status.HTTP_403_FORBIDDEN,
        "This registration link is invalid or has expired.",
    )
    INVALID_CREDENTIAL = (
        "invalid_credential",
        status.HTTP_400_BAD_REQUEST,
        "This passkey is not associated with any account.",
    )
    USER_DELETED = (
        "user_deleted",
        status.HTTP_400_BAD_REQUEST,
        "This account no longer exists.",
    )
    USER_SUSPENDED = (
        "user_suspended",
        status.HTTP_403_FORBIDDEN,
        "This account has been suspended.",
    )
    INTERNAL = (
        "internal_server_error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An internal server error occurred.",
    )
    SESSION_EXPIRED = (
        "session_expired",
        status.HTTP_401_UNAUTHORIZED,
        "Your session has expired. Please log in again.",
    )
    LOGIN_REQUIRED = (
        "login_required",
        status.HTTP_401_UNAUTHORIZED,
        "You must be logged in to do that.",
    )
    ADMIN_REQUIRED = (
        "admin_required",
        status.HTTP_403_FORBIDDEN,
        "You must be an administrator to do that.",
    )
    UNKNOWN_CLIENT = (
        "unknown_client",
        status.HTTP_400_BAD_REQUEST,
        "The requested application does not exist.",
    )
    UNKNOWN_GROUP = (
        "unknown_group",
        status.HTTP_400_BAD_REQUEST,
        "The requested group does not exist.",
    )
    UNKNOWN_USER = (
        "unknown_user",
        status.HTTP_400_BAD_REQUEST,
        "The requested user does not exist.",
    )
    USER_NOT_IN_GROUP = (
        "user_not_in_group",
        status.HTTP_400_BAD_REQUEST,
        "The targeted user is not in the group you are trying to remove them from. "
        "This may mean they have already been removed.",
    )
    GROUP_SLUG_EXISTS = (
        "group_slug_exists",
        status.HTTP_400_BAD_REQUEST,
        "A group with that slug already exists.",
    )
    USERNAME_EXISTS = (
        "username_exists",
        status.HTTP_400_BAD_REQUEST,
        "That username is already taken.",
    )
    EMAIL_EXISTS = (
        "email_exists",
        status.HTTP_400_BAD_REQUEST,
        "An account with that email already exists.",
    )
    APP_DISABLED = (
        "app_disabled",
        status.HTTP_400_BAD_REQUEST,
        "This application has been disabled.",
    )
    MANAGED_OBJECT = (
        "managed_object",
        status.HTTP_400_BAD_REQUEST,
        "This object is managed by the system and cannot be modified.",
    )
    OAUTH_ACL_DENIED = (
        "oauth_acl_denied",
        status.HTTP_400_BAD_REQUEST,
        "You do not have permission to access {app_name}.",
    )
    INVALID_REDIRECT_URI = (
        "invalid_redirect_uri",
        status.HTTP_400_BAD_REQUEST,
        "The redirect uri {redirect_uri} is not allowed for this application.",
    )
    INVALID_RESPONSE_TYPE = (
        "invalid_response_type",
        status.HTTP_400_BAD_REQUEST,
        "The requested response type is not supported by this application.",
    )
    INVALID_RESPONSE_MODE = (
        "invalid_response_mode",
        status.HTTP_400_BAD_REQUEST,
        "The requested response mode is not supported.",
    )
    EMAIL_CHANGED = (
        "email_changed",
        status.HTTP_400_BAD_REQUEST,
        "The email associated with this account has changed, so this link is no longer valid.",
    )
    CREDENTIAL_ALREADY_REGISTERED = (
        "credential_already_registered",
        status.HTTP_400_BAD_REQUEST,
        "This credential is already registered!",
    )
    WEBAUTHN_ERROR = (
        "webauthn_error",
        status.HTTP_400_BAD_REQUEST,
        "An unexpected webauthn passkey error occurred.",
    )

    def __init__(self, code: str, status_code: int, template: str) -> None:
        self.code = code
        self.status_code = status_code
        self.template = template


class ApiError(DomainException):
    """A broker error rendered as ``{"error": {"code", "message"}}``."""

    def __init__(self, kind: ErrorKind, **params: str) -> None:
        self.kind = kind
        self.status_code = kind.status_code
        super().__init__(
            message=kind.template.format(**params),
            code=kind.code,
            details=dict(params),
        )


class OAuthErrorKind(str, Enum):
    INVALID_REQUEST = "invalid_request"
    INVALID_CLIENT = "invalid_client"
    INVALID_GRANT = "invalid_grant"
    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"


class OAuthError(DomainException):
    """Token endpoint failure rendered as ``{"error", "error_description"}``."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, kind: OAuthErrorKind, description: str) -> None:
        self.kind = kind
        super().__init__(message=description, code=kind.value)

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.code, "error_description": self.message}


class InvalidBearerToken(DomainException):
    """Userinfo rejection; rendered as an empty 401 with a bearer challenge."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self) -> None:
        super().__init__(message="invalid_token", code="invalid_token")


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues or query failures.
    """


class UniqueConstraintViolation(RepositoryException):
    """Raised when an insert or update violates a named uniqueness constraint."""

    def __init__(self, constraint_name: Optional[str]) -> None:
        self.constraint_name = constraint_name
        super().__init__(f"Unique constraint violated: {constraint_name}")


UNIQUE_CONSTRAINT_ERRORS: Dict[str, ErrorKind] = {
    "users_username_key": ErrorKind.USERNAME_EXISTS,
    "users_email_key": ErrorKind.EMAIL_EXISTS,
    "permission_groups_slug_key": ErrorKind.GROUP_SLUG_EXISTS,
}


def api_error_from_unique_violation(exc: UniqueConstraintViolation) -> DomainException:
    """Map a store uniqueness violation to its user-facing error kind."""
    kind = UNIQUE_CONSTRAINT_ERRORS.get(exc.constraint_name or "", ErrorKind.INTERNAL)
    return ApiError(kind)
