"""
Business logic for the admin CRUD surface and the public contact form.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from .database import (
    CertificateRepository, ContactRepository, DatabaseManager, ParticipantRepository,
    ServiceRepository, TrainingProgramRepository
)
from .exceptions import (
    BhumiError, CertificateNotFoundError, DatabaseError, DuplicateError, NotFoundError,
    ParticipantNotFoundError, ReferentialIntegrityError, ValidationError
)
from .generator import certificate_id_generator, participant_id_generator
from .models import (
    ApiModel, CertificateCreate, CertificateDownload, CertificateOut, CertificateUpdate,
    ContactForm, ContactOut, ContactStatus, ParticipantCreate, ParticipantOut,
    ParticipantUpdate, ServiceCreate, ServiceOut, ServiceUpdate, TrainingProgramCreate,
    TrainingProgramOut, TrainingProgramUpdate, utcnow
)
from .validators import SlugGenerator, resolve_pricing
from .verification import derive_status

logger = logging.getLogger(__name__)


def update_fields(request: ApiModel, nullable: frozenset = frozenset()) -> Dict:
    """
    Extracts the fields explicitly sent in an update request.

    Explicit nulls are kept only for nullable columns.

    Raises:
        ValidationError: If nothing is left to update
    """
    data = {
        key: value for key, value in request.model_dump(exclude_unset=True).items()
        if value is not None or key in nullable
    }
    if not data:
        raise ValidationError("No update data provided")
    return data


class ServiceCatalog:
    """Consultancy services."""

    def __init__(self, db_manager: DatabaseManager):
        self.repo = ServiceRepository(db_manager)

    def list(self) -> List[ServiceOut]:
        return [ServiceOut.model_validate(s) for s in self.repo.list()]

    def get(self, service_id: int) -> ServiceOut:
        service = self.repo.get(service_id)
        if service is None:
            raise NotFoundError("Service not found")
        return ServiceOut.model_validate(service)

    def create(self, request: ServiceCreate) -> ServiceOut:
        service = self.repo.create(request.model_dump())
        logger.info(f"Service {service.id} created: {service.title}")
        return ServiceOut.model_validate(service)

    def update(self, service_id: int, request: ServiceUpdate) -> ServiceOut:
        self.get(service_id)
        service = self.repo.update(service_id, update_fields(request))
        logger.info(f"Service {service_id} updated")
        return ServiceOut.model_validate(service)

    def delete(self, service_id: int) -> None:
        if not self.repo.delete(service_id):
            raise NotFoundError("Service not found")
        logger.info(f"Service {service_id} deleted")


class TrainingProgramService:
    """Training programs with slug and pricing rules."""

    def __init__(self, db_manager: DatabaseManager):
        self.repo = TrainingProgramRepository(db_manager)
        self.slugs = SlugGenerator()

    def list(self) -> List[TrainingProgramOut]:
        return [TrainingProgramOut.model_validate(p) for p in self.repo.list()]

    def get(self, id_or_slug: Union[int, str]) -> TrainingProgramOut:
        """
        Returns a training program by numeric ID or by slug.

        Raises:
            NotFoundError: If nothing matches
        """
        program = None
        if isinstance(id_or_slug, int) or str(id_or_slug).isdigit():
            program = self.repo.get(int(id_or_slug))
        if program is None:
            program = self.repo.get_by_slug(str(id_or_slug))
        if program is None:
            raise NotFoundError("Training program not found")
        return TrainingProgramOut.model_validate(program)

    def _unique_slug(self, slug: str, exclude_id: Optional[int] = None) -> str:
        # Slugs are never all digits: get() reads those as ids
        if not slug:
            raise ValidationError("Could not derive a slug from the title")
        return self.slugs.make_unique(
            slug, lambda s: s.isdigit() or self.repo.slug_exists(s, exclude_id)
        )

    def create(self, request: TrainingProgramCreate) -> TrainingProgramOut:
        """
        Creates a training program.

        The slug is taken from the request or derived from the title,
        normalized to a URL-safe form, then suffixed with -1, -2, ... until unique.

        Raises:
            ValidationError: On missing pricing or an unusable title
        """
        pricing = resolve_pricing(
            request.price, request.online_price, request.offline_price, request.delivery_mode
        )
        slug = self._unique_slug(self.slugs.slugify(request.slug) or self.slugs.slugify(request.title))

        data = request.model_dump(include={"title", "description", "category", "duration", "image_path"})
        data.update(pricing)
        data["slug"] = slug

        program = self.repo.create(data)
        logger.info(f"Training program {program.id} created with slug {program.slug}")
        return TrainingProgramOut.model_validate(program)

    def update(self, program_id: int, request: TrainingProgramUpdate) -> TrainingProgramOut:
        """
        Updates a training program.

        A provided slug is normalized and made unique against the other
        programs; an empty slug is re-derived from the title.
        """
        current = self.repo.get(program_id)
        if current is None:
            raise NotFoundError("Training program not found")

        data = update_fields(request, nullable=frozenset({"online_price", "offline_price", "image_path", "slug"}))

        if "slug" in data:
            slug = self.slugs.slugify(data.pop("slug"))
            if not slug:
                slug = self.slugs.slugify(data.get("title") or current.title)
            data["slug"] = self._unique_slug(slug, exclude_id=program_id)

        program = self.repo.update(program_id, data)
        logger.info(f"Training program {program_id} updated")
        return TrainingProgramOut.model_validate(program)

    def delete(self, program_id: int) -> None:
        """
        Deletes a training program.

        Raises:
            NotFoundError: If the program does not exist
            ReferentialIntegrityError: While participants or certificates reference it
        """
        if self.repo.get(program_id) is None:
            raise NotFoundError("Training program not found")

        enrolled = self.repo.count_participants(program_id)
        if enrolled:
            raise ReferentialIntegrityError(
                f"Cannot delete training program: {enrolled} participants are enrolled in this program.",
                enrolled
            )

        issued = self.repo.count_certificates(program_id)
        if issued:
            raise ReferentialIntegrityError(
                f"Cannot delete training program: {issued} certificates are associated with this program.",
                issued
            )

        self.repo.delete(program_id)
        logger.info(f"Training program {program_id} deleted")


class ParticipantService:
    """Participant enrollment records."""

    def __init__(self, db_manager: DatabaseManager):
        self.repo = ParticipantRepository(db_manager)
        self.program_repo = TrainingProgramRepository(db_manager)
        self.id_generator = participant_id_generator()

    def list(self) -> List[ParticipantOut]:
        return [ParticipantOut.model_validate(p) for p in self.repo.list()]

    def get(self, participant_pk: int) -> ParticipantOut:
        participant = self.repo.get(participant_pk)
        if participant is None:
            raise ParticipantNotFoundError("Participant not found")
        return ParticipantOut.model_validate(participant)

    def _check_program(self, program_id: int) -> None:
        if self.program_repo.get(program_id) is None:
            raise NotFoundError("Training program not found")

    def _check_participant_id(self, participant_id: str, exclude_pk: Optional[int] = None) -> None:
        existing = self.repo.get_by_participant_id(participant_id)
        if existing is not None and existing.id != exclude_pk:
            raise DuplicateError("Participant ID already exists")

    def create(self, request: ParticipantCreate) -> ParticipantOut:
        """
        Enrolls a participant.

        Raises:
            NotFoundError: If the training program does not exist
            DuplicateError: If the participant ID is taken
            GenerationError: If no free participant ID could be generated
        """
        self._check_program(request.training_program_id)

        data = request.model_dump()
        if data["participant_id"]:
            self._check_participant_id(data["participant_id"])
        else:
            data["participant_id"] = self.id_generator.generate(
                request.enrollment_date.date(), self.repo.get_existing_participant_ids()
            )

        participant = self.repo.create(data)
        logger.info(f"Participant {participant.participant_id} enrolled in program {participant.training_program_id}")
        return ParticipantOut.model_validate(participant)

    def update(self, participant_pk: int, request: ParticipantUpdate) -> ParticipantOut:
        self.get(participant_pk)
        data = update_fields(request, nullable=frozenset({"phone"}))

        if "training_program_id" in data:
            self._check_program(data["training_program_id"])
        if "participant_id" in data:
            self._check_participant_id(data["participant_id"], exclude_pk=participant_pk)

        participant = self.repo.update(participant_pk, data)
        logger.info(f"Participant {participant.participant_id} updated")
        return ParticipantOut.model_validate(participant)

    def delete(self, participant_pk: int) -> None:
        """
        Deletes a participant.

        Raises:
            ParticipantNotFoundError: If the participant does not exist
            ReferentialIntegrityError: While certificates are issued to them
        """
        self.get(participant_pk)

        issued = self.repo.count_certificates(participant_pk)
        if issued:
            raise ReferentialIntegrityError(
                f"Cannot delete participant: {issued} certificates are associated with this participant.",
                issued
            )

        self.repo.delete(participant_pk)
        logger.info(f"Participant {participant_pk} deleted")


class CertificateService:
    """Issued certificates. Status is derived on every read."""

    def __init__(self, db_manager: DatabaseManager, domain: str,
                 clock: Callable[[], datetime] = utcnow):
        self.repo = CertificateRepository(db_manager)
        self.participant_repo = ParticipantRepository(db_manager)
        self.program_repo = TrainingProgramRepository(db_manager)
        self.id_generator = certificate_id_generator()
        self.domain = domain
        self.clock = clock

    def _to_out(self, certificate) -> CertificateOut:
        return CertificateOut(
            id=certificate.id,
            certificate_id=certificate.certificate_id,
            participant_id=certificate.participant_id,
            training_program_id=certificate.training_program_id,
            participant_name=certificate.participant_name,
            training_program_name=certificate.training_program_name,
            issue_date=certificate.issue_date,
            expiry_date=certificate.expiry_date,
            certificate_path=certificate.certificate_path,
            status=derive_status(certificate.expiry_date, self.clock()),
        )

    def list(self) -> List[CertificateOut]:
        return [self._to_out(c) for c in self.repo.list()]

    def get(self, certificate_pk: int) -> CertificateOut:
        certificate = self.repo.get(certificate_pk)
        if certificate is None:
            raise CertificateNotFoundError("Certificate not found")
        return self._to_out(certificate)

    def _check_references(self, participant_pk: Optional[int], program_id: Optional[int]) -> None:
        if participant_pk is not None and self.participant_repo.get(participant_pk) is None:
            raise ParticipantNotFoundError("Participant not found")
        if program_id is not None and self.program_repo.get(program_id) is None:
            raise NotFoundError("Training program not found")

    def _check_certificate_id(self, certificate_id: str, exclude_pk: Optional[int] = None) -> None:
        existing = self.repo.get_by_certificate_id(certificate_id)
        if existing is not None and existing.id != exclude_pk:
            raise DuplicateError("Certificate ID already exists")

    def create(self, request: CertificateCreate) -> CertificateOut:
        """
        Issues a certificate.

        Raises:
            ParticipantNotFoundError, NotFoundError: If a reference does not exist
            DuplicateError: If the certificate ID is taken
        """
        self._check_references(request.participant_id, request.training_program_id)

        data = request.model_dump()
        if data["certificate_id"]:
            self._check_certificate_id(data["certificate_id"])
        else:
            data["certificate_id"] = self.id_generator.generate(
                request.issue_date.date(), self.repo.get_existing_certificate_ids()
            )

        certificate = self.repo.create(data)
        logger.info(f"Certificate {certificate.certificate_id} issued to participant {certificate.participant_id}")
        return self._to_out(certificate)

    def update(self, certificate_pk: int, request: CertificateUpdate) -> CertificateOut:
        current = self.repo.get(certificate_pk)
        if current is None:
            raise CertificateNotFoundError("Certificate not found")

        data = update_fields(request, nullable=frozenset({"expiry_date", "certificate_path"}))
        self._check_references(data.get("participant_id"), data.get("training_program_id"))

        if "certificate_id" in data:
            self._check_certificate_id(data["certificate_id"], exclude_pk=certificate_pk)

        issue_date = data.get("issue_date", current.issue_date)
        expiry_date = data.get("expiry_date", current.expiry_date)
        if expiry_date is not None and expiry_date < issue_date:
            raise ValidationError("Expiry date cannot precede issue date")

        certificate = self.repo.update(certificate_pk, data)
        logger.info(f"Certificate {certificate.certificate_id} updated")
        return self._to_out(certificate)

    def delete(self, certificate_pk: int) -> None:
        if not self.repo.delete(certificate_pk):
            raise CertificateNotFoundError("Certificate not found")
        logger.info(f"Certificate {certificate_pk} deleted")

    def download(self, certificate_id: str) -> CertificateDownload:
        """
        Resolves the download link of a certificate.

        The stored file path is used when present, otherwise a link under
        the site domain is synthesized.

        Raises:
            CertificateNotFoundError: If the certificate does not exist
        """
        certificate = self.repo.get_by_certificate_id(certificate_id.strip())
        if certificate is None:
            raise CertificateNotFoundError("Certificate not found")

        url = certificate.certificate_path or f"{self.domain}/certificates/{certificate.certificate_id}.pdf"

        return CertificateDownload(
            id=certificate.certificate_id,
            participant_name=certificate.participant_name,
            training_program=certificate.training_program_name,
            issue_date=certificate.issue_date,
            expiry_date=certificate.expiry_date,
            download_url=url,
            url=url,
        )


class ContactService:
    """Contact form submissions."""

    def __init__(self, db_manager: DatabaseManager):
        self.repo = ContactRepository(db_manager)

    def submit(self, form: ContactForm) -> ContactOut:
        """Stores a contact form submission with status pending."""
        contact = self.repo.create({
            "full_name": form.name,
            "email": form.email,
            "phone": form.phone or None,
            "subject": form.subject,
            "message": form.message,
            "status": ContactStatus.PENDING.value,
        })
        logger.info(f"Contact {contact.id} received from {contact.email}")
        return ContactOut.model_validate(contact)

    def list(self) -> List[ContactOut]:
        return [ContactOut.model_validate(c) for c in self.repo.list()]

    def get(self, contact_id: int) -> ContactOut:
        contact = self.repo.get(contact_id)
        if contact is None:
            raise NotFoundError("Contact not found")
        return ContactOut.model_validate(contact)

    def update_status(self, contact_id: int, status: ContactStatus) -> ContactOut:
        self.get(contact_id)
        contact = self.repo.update(contact_id, {"status": ContactStatus(status).value})
        logger.info(f"Contact {contact_id} marked {contact.status}")
        return ContactOut.model_validate(contact)

    def delete(self, contact_id: int) -> None:
        if not self.repo.delete(contact_id):
            raise NotFoundError("Contact not found")
        logger.info(f"Contact {contact_id} deleted")


def seed_sample_data(db_manager: DatabaseManager) -> bool:
    """
    Loads the demo catalogue, one participant and one certificate.

    Does nothing when services already exist.

    Returns:
        bool: True if data was inserted
    """
    services = ServiceCatalog(db_manager)
    if services.list():
        logger.info("Sample data skipped: database is not empty")
        return False

    try:
        services.create(ServiceCreate(
            title="Consultancy Services",
            description="Our expert consultants provide strategic guidance to optimize your business "
                        "operations, improve efficiency, and drive growth.",
            icon="chart-line",
            features=["Business strategy development", "Operational efficiency analysis",
                      "Growth planning and implementation"],
        ))
        services.create(ServiceCreate(
            title="Audit Preparation",
            description="Comprehensive audit preparation services to ensure your business is fully "
                        "compliant and audit-ready.",
            icon="file-invoice",
            features=["Financial statement preparation", "Compliance documentation",
                      "Risk assessment and mitigation"],
        ))

        programs = TrainingProgramService(db_manager)
        planning = programs.create(TrainingProgramCreate(
            title="Strategic Business Planning",
            description="Learn how to develop and implement effective business strategies.",
            category="Business", duration="4 weeks", price=12500, image_path="/training1.jpg",
        ))
        programs.create(TrainingProgramCreate(
            title="Financial Management",
            description="Master financial planning, analysis, and reporting for business.",
            category="Finance", duration="6 weeks", price=15000, image_path="/training2.jpg",
        ))
        programs.create(TrainingProgramCreate(
            title="Executive Leadership",
            description="Develop essential leadership skills for executive positions.",
            category="Leadership", duration="8 weeks", price=20000, image_path="/training3.jpg",
        ))

        participant = ParticipantService(db_manager).create(ParticipantCreate(
            participant_id="BHM-P001",
            full_name="John Doe",
            email="john.doe@example.com",
            phone="+919876543210",
            training_program_id=planning.id,
            enrollment_date=datetime(2023, 1, 15),
        ))

        CertificateService(db_manager, domain="").create(CertificateCreate(
            certificate_id="BHM23051501",
            participant_id=participant.id,
            training_program_id=planning.id,
            issue_date=datetime(2023, 5, 15),
            expiry_date=datetime(2025, 5, 15),
            certificate_path="/certificates/BHM23051501.pdf",
        ))

    except BhumiError:
        raise
    except Exception as e:
        logger.error(f"Failed to load sample data: {e}")
        raise DatabaseError(f"Failed to load sample data: {e}")

    logger.info("Sample data loaded")
    return True
