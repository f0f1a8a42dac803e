"""
Rice Notes Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for every failure the API can report.
How:   Each exception carries a user-facing message and an optional context
       dict. The class attributes `status_code` and `error_code` tell the
       global handlers (registered in main.py) how to render it.
Who:   Raised by services, repositories, storage adapters and dependencies;
       caught by the handlers in main.py.

Exception Hierarchy:
    RiceNotesError (base)                       → 500 server_error
    ├── ValidationError                         → 400 validation_error
    ├── AuthenticationError                     → 401 unauthorized
    │   ├── MalformedToken                      → 401 invalid_token
    │   ├── SignatureInvalid                    → 401 invalid_token
    │   └── TokenExpired                        → 401 token_expired
    ├── NotFoundError                           → 404 not_found
    ├── FileStorageError                        → 500 storage_error
    │   ├── StorageUploadError
    │   ├── StorageDeleteError
    │   └── StorageLinkError
    ├── DatabaseError                           → 500 server_error
    │   ├── MetadataWriteError
    │   └── MetadataReadError
    ├── OAuthError                              → 500 auth_error
    │   ├── CodeExchangeError                   → 401 invalid_code
    │   ├── ProfileFetchError                   → 500 auth_error
    │   └── DomainRejected                      → 403 domain_rejected
    └── SigningError                            → 500 auth_error

Security:
    `message` is returned to the client. `context` (underlying error text,
    keys, emails) is logged server-side only.
"""

from typing import Any, Dict, Optional


class RiceNotesError(Exception):
    """
    Base exception for all Rice Notes application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code: int = 500
    error_code: str = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(RiceNotesError):
    """
    Raised when client input fails validation.

    Never raised after any storage or database call has been made: all
    validation happens before I/O.

    Example response:
        {
            "error": "validation_error",
            "message": "Only PDF files are allowed",
            "details": {"field": "file"}
        }
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


# ══════════════════════════════════════════════════════════════════════════
# Session errors
# ══════════════════════════════════════════════════════════════════════════


class AuthenticationError(RiceNotesError):
    """Missing, invalid or expired session token."""

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class MalformedToken(AuthenticationError):
    error_code = "invalid_token"

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Invalid or expired token", context=context)


class SignatureInvalid(AuthenticationError):
    error_code = "invalid_token"

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Invalid or expired token", context=context)


class TokenExpired(AuthenticationError):
    error_code = "token_expired"

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Session has expired. Please sign in again.", context=context)


class SigningError(RiceNotesError):
    """The session secret is absent or unusable, so no token can be minted."""

    error_code = "auth_error"

    def __init__(
        self,
        message: str = "Authentication failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


# ══════════════════════════════════════════════════════════════════════════
# Resource errors
# ══════════════════════════════════════════════════════════════════════════


class NotFoundError(RiceNotesError):
    """
    Raised when a requested resource does not exist.

    Also raised when the resource exists but belongs to someone else: the
    message never includes the owner, so both cases render identically.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class FileStorageError(RiceNotesError):
    """Object store operation failed (S3 unreachable, access denied, ...)."""

    error_code = "storage_error"

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StorageUploadError(FileStorageError):
    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Failed to upload file. Please try again.", context=context)


class StorageDeleteError(FileStorageError):
    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Failed to delete stored file.", context=context)


class StorageLinkError(FileStorageError):
    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Could not create a download link. Please try again.", context=context)


class DatabaseError(RiceNotesError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; the SQL error is
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class MetadataWriteError(DatabaseError):
    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Could not save the note. Please try again.", context=context)


class MetadataReadError(DatabaseError):
    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Could not retrieve notes. Please try again.", context=context)


# ══════════════════════════════════════════════════════════════════════════
# OAuth flow errors
# ══════════════════════════════════════════════════════════════════════════


class OAuthError(RiceNotesError):
    """Base for failures between receiving the provider code and issuing a session."""

    error_code = "auth_error"

    def __init__(
        self,
        message: str = "Authentication failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CodeExchangeError(OAuthError):
    """The provider rejected the authorization code, or could not be reached."""

    status_code = 401
    error_code = "invalid_code"

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Invalid authorization code", context=context)


class ProfileFetchError(OAuthError):
    """The access token was issued but the profile lookup failed."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Could not load your Google profile", context=context)


class DomainRejected(OAuthError):
    """The verified email does not belong to the institutional domain."""

    status_code = 403
    error_code = "domain_rejected"

    def __init__(self, domain: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Only @{domain} email addresses are allowed",
            context=context,
        )
        self.domain = domain
