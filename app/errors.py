"""
Domain error taxonomy.

- ValidationError: bad input or an unmet precondition (HTTP 400)
- InvalidCredentials: unknown username or wrong password (HTTP 401)
- StorageFailure: the store was unreachable or a statement failed (HTTP 503)
"""


class SocialMediaError(Exception):
    """Base class for errors raised by the domain services."""

    http_status = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(SocialMediaError):
    """Input rejected by a domain rule."""

    http_status = 400


class InvalidCredentials(ValidationError):
    """Login attempted with an unknown username or a wrong password."""

    http_status = 401


class StorageFailure(SocialMediaError):
    """The Storage Gateway reported a failed round trip."""

    http_status = 503
