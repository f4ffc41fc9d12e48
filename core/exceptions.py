"""
Custom exceptions for the Bhumi Consultancy backend.
"""


class BhumiError(Exception):
    """Base exception for all application errors."""
    pass


class ValidationError(BhumiError):
    """Missing or malformed input data."""
    pass


class DuplicateError(ValidationError):
    """A unique field (participant ID, certificate ID, slug) is already taken."""
    pass


class AuthenticationError(BhumiError):
    """Missing or incorrect API code."""
    pass


class NotFoundError(BhumiError):
    """Requested record does not exist."""
    pass


class CertificateNotFoundError(NotFoundError):
    """Certificate not found or details do not match."""
    pass


class ParticipantNotFoundError(NotFoundError):
    """Participant not found."""
    pass


class ReferentialIntegrityError(BhumiError):
    """Deletion blocked by dependent records."""

    def __init__(self, message: str, count: int):
        super().__init__(message)
        self.count = count


class DatabaseError(BhumiError):
    """Unexpected database failure."""
    pass


class GenerationError(BhumiError):
    """Could not generate a unique identifier."""
    pass
