from typing import List, Optional


# --- Custom Service Layer Exception Classes ---
# Her alt sınıf API katmanında döneceği HTTP durum kodunu taşır.

class ServiceError(Exception):
    """General exception class for the service layer."""
    status_code = 400


class InvalidRequestError(ServiceError):
    """Missing or malformed input."""
    status_code = 400


class AuthenticationError(ServiceError):
    status_code = 401


class AuthorizationError(ServiceError):
    """Exception class for authorization-related errors."""
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """Uniqueness violation. conflicts lists the offending ids, if any."""
    status_code = 409

    def __init__(self, message: str, conflicts: Optional[List[str]] = None):
        super().__init__(message)
        self.conflicts = conflicts or []


class LimitExceededError(ServiceError):
    """A quota rule such as max quiz attempts was hit."""
    status_code = 400


class ConfigurationError(ServiceError):
    """A required system resource is missing, e.g. no admin account to send system notifications."""
    status_code = 500
