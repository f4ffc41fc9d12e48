"""
Public certificate verification and participant status lookup.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from .database import (
    Certificate, CertificateRepository, DatabaseManager, ParticipantRepository
)
from .exceptions import CertificateNotFoundError, ParticipantNotFoundError, ValidationError
from .models import (
    CertificateStatus, CertificateSummary, EnrolledProgram, ParticipantStatusInfo,
    RecordRef, StatusResult, VerificationResult, utcnow
)
from .validators import normalize_email, normalize_name

logger = logging.getLogger(__name__)

# Same text for unknown IDs and name mismatches so callers cannot probe IDs
CERTIFICATE_NOT_FOUND = "Certificate not found or details do not match"
PARTICIPANT_NOT_FOUND = "Participant not found"


def derive_status(expiry_date: Optional[datetime], now: datetime) -> CertificateStatus:
    """
    Derives the certificate status at a given moment.

    Args:
        expiry_date: Expiry date, None for certificates that never expire
        now: Reference time (naive UTC)

    Returns:
        CertificateStatus: EXPIRED once the expiry date has passed, ACTIVE otherwise
    """
    if expiry_date is not None and expiry_date < now:
        return CertificateStatus.EXPIRED
    return CertificateStatus.ACTIVE


class VerificationEngine:
    """Read-only lookups behind the public verification pages."""

    def __init__(self, db_manager: DatabaseManager, clock: Callable[[], datetime] = utcnow):
        self.certificate_repo = CertificateRepository(db_manager)
        self.participant_repo = ParticipantRepository(db_manager)
        self.clock = clock

    def certificate_status(self, certificate: Certificate) -> CertificateStatus:
        return derive_status(certificate.expiry_date, self.clock())

    def verify_certificate(self, certificate_id: Optional[str],
                           participant_name: Optional[str]) -> VerificationResult:
        """
        Verifies that a certificate exists and belongs to the named participant.

        Args:
            certificate_id: External certificate ID
            participant_name: Name as printed on the certificate

        Returns:
            VerificationResult: Certificate, participant and program summary

        Raises:
            ValidationError: If either input is blank
            CertificateNotFoundError: If the certificate is unknown or the name does not match
        """
        certificate_id = (certificate_id or "").strip()
        name = normalize_name(participant_name)

        if not certificate_id or not name:
            raise ValidationError("Certificate ID and participant name are required")

        certificate = self.certificate_repo.get_by_certificate_id(certificate_id)

        if certificate is None:
            logger.info(f"Verification failed: certificate {certificate_id} not found")
            raise CertificateNotFoundError(CERTIFICATE_NOT_FOUND)

        if normalize_name(certificate.participant_name) != name:
            logger.info(f"Verification failed: name mismatch for certificate {certificate_id}")
            raise CertificateNotFoundError(CERTIFICATE_NOT_FOUND)

        logger.info(f"Certificate {certificate_id} verified")

        return VerificationResult(
            certificate=CertificateSummary(
                certificate_id=certificate.certificate_id,
                issue_date=certificate.issue_date,
                status=self.certificate_status(certificate),
                certificate_path=certificate.certificate_path,
            ),
            participant=RecordRef(name=certificate.participant.full_name, id=certificate.participant.id),
            training=RecordRef(name=certificate.training_program.title, id=certificate.training_program.id),
        )

    def check_participant_status(self, participant_id: Optional[str] = None,
                                 email: Optional[str] = None) -> StatusResult:
        """
        Looks up a participant's enrollment and completion status.

        The participant ID is the primary key of the lookup. When an email is
        given as well it must belong to the same participant.

        Args:
            participant_id: External participant ID
            email: Participant email

        Returns:
            StatusResult: Participant summary and enrolled programs

        Raises:
            ValidationError: If neither input is given
            ParticipantNotFoundError: If no participant matches
        """
        participant_id = (participant_id or "").strip()
        email = normalize_email(email)

        if not participant_id and not email:
            raise ValidationError("Participant ID or email is required")

        if participant_id:
            participant = self.participant_repo.get_by_participant_id(participant_id)
            if participant is not None and email and normalize_email(participant.email) != email:
                logger.info(f"Status check: email mismatch for participant {participant_id}")
                participant = None
        else:
            participant = self.participant_repo.get_by_email(email)

        if participant is None:
            raise ParticipantNotFoundError(PARTICIPANT_NOT_FOUND)

        program = participant.training_program
        certificate = self.certificate_repo.get_latest_for(participant.id, program.id)

        enrolled = EnrolledProgram(
            program_id=program.id,
            program_name=program.title,
            completion_date=certificate.issue_date if certificate else None,
            certificate_id=certificate.certificate_id if certificate else None,
        )

        return StatusResult(
            participant=ParticipantStatusInfo(
                participant_id=participant.participant_id,
                name=participant.full_name,
                status=participant.status,
            ),
            enrolled_programs=[enrolled],
        )
