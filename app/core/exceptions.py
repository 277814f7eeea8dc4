from typing import Any, Optional

# Longest upstream body echoed back as an error message
MAX_MESSAGE_LENGTH = 500


class AzureDevOpsError(Exception):
    """Base class for classified Azure DevOps failures"""

    code = "ValidationError"

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(status_code={self.status_code}, message='{self.message}')>"


class AuthenticationError(AzureDevOpsError):
    """Credentials rejected or missing scope (401/403)"""
    code = "AuthenticationError"


class NotFoundError(AzureDevOpsError):
    code = "NotFoundError"


class RateLimitError(AzureDevOpsError):
    code = "RateLimitError"


class NetworkError(AzureDevOpsError):
    """DNS, TLS, refused connection or timeout; reported with status 0"""
    code = "NetworkError"


class ValidationError(AzureDevOpsError):
    code = "ValidationError"


def classify_http_error(status_code: int, body: Optional[str] = None) -> AzureDevOpsError:
    """Build the error matching an HTTP status returned by Azure DevOps"""
    message = (body or "").strip()[:MAX_MESSAGE_LENGTH] or f"Azure DevOps API error ({status_code})"
    details = body or None

    if status_code in (401, 403):
        return AuthenticationError(message, status_code=status_code, details=details)
    if status_code == 404:
        return NotFoundError(message, status_code=status_code, details=details)
    if status_code == 429:
        return RateLimitError(message, status_code=status_code, details=details)
    if status_code == 0:
        return NetworkError(message, status_code=status_code, details=details)
    return ValidationError(message, status_code=status_code, details=details)
