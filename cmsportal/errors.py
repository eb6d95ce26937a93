"""Domain exceptions.

Services raise these; ``cmsportal.main`` renders them as
``{"error": code, "message": ..., **details}`` with the mapped status code.
"""
from typing import Any, Dict, List, Optional


class PortalError(Exception):
    """Base class for errors surfaced to API callers"""

    code = "portal_error"
    status_code = 400
    message = "Request could not be completed"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.details}


class InvalidCredentials(PortalError):
    code = "invalid_credentials"
    status_code = 401
    message = "Invalid credentials"


class RateLimited(PortalError):
    code = "rate_limited"
    status_code = 429

    def __init__(self, retry_after_seconds: int):
        minutes = max(1, -(-retry_after_seconds // 60))
        super().__init__(
            f"Too many login attempts. Please try again in {minutes} minutes.",
            retry_after_seconds=retry_after_seconds,
        )
        self.retry_after_seconds = retry_after_seconds


class WeakPassword(PortalError):
    code = "weak_password"
    status_code = 422

    def __init__(self, errors: List[str]):
        super().__init__(". ".join(errors), errors=errors)
        self.errors = errors


class InvalidCurrentPassword(PortalError):
    code = "invalid_current_password"
    status_code = 400
    message = "Current password is incorrect"


class NotAuthenticated(PortalError):
    code = "not_authenticated"
    status_code = 401
    message = "Authentication required"

    def __init__(self, message: Optional[str] = None, login_url: Optional[str] = None):
        if login_url:
            super().__init__(message, login_url=login_url)
        else:
            super().__init__(message)
        self.login_url = login_url


class Forbidden(PortalError):
    code = "forbidden"
    status_code = 403
    message = "Access denied"


class NotFound(PortalError):
    code = "not_found"
    status_code = 404
    message = "Not found"


class FileTooLarge(PortalError):
    code = "file_too_large"
    status_code = 413
    message = "File size exceeds upload limit"


class VersionNotFound(PortalError):
    code = "version_not_found"
    status_code = 404
    message = "Version not found"


class LastVersion(PortalError):
    code = "last_version"
    status_code = 409
    message = "Cannot delete the only version of a document"


class AuthorInUse(PortalError):
    code = "author_in_use"
    status_code = 409
    message = "Author is referenced by existing posts"


class TokenInvalid(PortalError):
    code = "token_invalid"
    status_code = 401
    message = "Invalid or expired token"


class ConcurrentModification(PortalError):
    code = "concurrent_modification"
    status_code = 409
    message = "The record was modified by another request; reload and retry"


class ObjectStorageError(PortalError):
    code = "object_storage_error"
    status_code = 502
    message = "Object storage request failed"
