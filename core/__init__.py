"""
Core business logic of the Bhumi Consultancy backend.
"""

from .database import DatabaseManager, get_db_manager
from .exceptions import (
    BhumiError, ValidationError, DuplicateError, AuthenticationError, NotFoundError,
    CertificateNotFoundError, ParticipantNotFoundError, ReferentialIntegrityError,
    DatabaseError, GenerationError
)
from .generator import ExternalIDGenerator
from .notifications import ContactNotifier, RateLimiter
from .sitemap import SitemapCache, build_sitemap
from .verification import VerificationEngine, derive_status

__version__ = "1.0.0"

__all__ = [
    'DatabaseManager',
    'get_db_manager',
    'BhumiError',
    'ValidationError',
    'DuplicateError',
    'AuthenticationError',
    'NotFoundError',
    'CertificateNotFoundError',
    'ParticipantNotFoundError',
    'ReferentialIntegrityError',
    'DatabaseError',
    'GenerationError',
    'ExternalIDGenerator',
    'ContactNotifier',
    'RateLimiter',
    'SitemapCache',
    'build_sitemap',
    'VerificationEngine',
    'derive_status',
]
