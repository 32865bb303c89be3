"""
Error taxonomy for the Auvio media resolution pipeline.
Every stage raises one of these; the HTTP layer maps them to status codes.
"""

from typing import Optional


class AuvioError(Exception):
    """Base class for all pipeline errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AuvioError):
    """Malformed program path"""


class ConfigurationError(AuvioError):
    """Missing credentials or invalid setting"""


class NetworkError(AuvioError):
    """Non-success HTTP status or transport failure"""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


class DeadlineExceededError(NetworkError):
    """Overall pipeline deadline reached or session cancelled"""


class ExtractionError(AuvioError):
    """Expected HTML element, script, literal or JSON field is missing"""


class AuthError(AuvioError):
    """Identity provider reported a nonzero error code"""

    def __init__(self, message: str, error_code: Optional[int] = None):
        super().__init__(message)
        self.error_code = error_code
