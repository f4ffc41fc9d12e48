"""
FastAPI routes for the public verification pages and the admin CRUD surface.
"""

import hmac
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.settings import Settings
from .database import DatabaseManager
from .exceptions import (
    AuthenticationError, BhumiError, NotFoundError, ReferentialIntegrityError, ValidationError
)
from .models import (
    CertificateCreate, CertificateUpdate, ContactForm, ContactStatusUpdate, ParticipantCreate,
    ParticipantUpdate, ServiceCreate, ServiceUpdate, StatusCheckRequest, TrainingProgramCreate,
    TrainingProgramUpdate, VerificationRequest, utcnow
)
from .notifications import ContactNotifier
from .service import (
    CertificateService, ContactService, ParticipantService, ServiceCatalog, TrainingProgramService
)
from .verification import VerificationEngine

AUTH_FAILED = "Authentication failed. Invalid or missing API code."


def success(data: Any = None, status_code: int = 200) -> JSONResponse:
    """Wraps data into the success envelope."""
    body = {"success": True}
    if data is not None:
        body["data"] = data
    return JSONResponse(content=body, status_code=status_code)


def failure(message: str, status_code: int, **extra) -> JSONResponse:
    """Wraps an error message into the failure envelope."""
    return JSONResponse(content={"success": False, "error": message, **extra}, status_code=status_code)


def validation_message(exc: RequestValidationError) -> str:
    """Turns the first request validation error into a readable message."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"

    error = errors[0]
    if error.get("type") == "json_invalid":
        return "Invalid JSON in request body"

    loc = [str(part) for part in error.get("loc", ()) if part != "body"]
    if error.get("type") == "missing" and not loc:
        return "Request body is required"

    message = str(error.get("msg", "Invalid value")).replace("Value error, ", "")
    return f"{'.'.join(loc)}: {message}" if loc else message


def api_code_matches(provided: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time comparison of the X-API-Code header with the configured code."""
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


class BhumiAPI:
    """Bhumi Consultancy HTTP API."""

    def __init__(self, db_manager: DatabaseManager, settings: Settings,
                 notifier: Optional[ContactNotifier] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 lifespan=None):
        """
        Builds the FastAPI application.

        Args:
            db_manager: Database manager
            settings: Application settings
            notifier: Contact notifier, built from settings when omitted
            clock: Source of the current time for certificate status
            lifespan: Lifespan context passed to FastAPI
        """
        self.db_manager = db_manager
        self.settings = settings
        self.notifier = notifier or ContactNotifier.from_settings(settings)
        self.clock = clock or utcnow
        self.logger = logging.getLogger(__name__)

        self.verification = VerificationEngine(db_manager, clock=self.clock)
        self.services = ServiceCatalog(db_manager)
        self.programs = TrainingProgramService(db_manager)
        self.participants = ParticipantService(db_manager)
        self.certificates = CertificateService(db_manager, settings.domain, clock=self.clock)
        self.contacts = ContactService(db_manager)

        self.app = FastAPI(
            title="Bhumi Consultancy API",
            description="Certificate verification, training programs and contact management",
            version="1.0.0",
            lifespan=lifespan
        )
        self.app.state.api = self

        if not settings.api_code:
            self.logger.warning("API_CODE is not set: protected endpoints will reject every request")

        self._setup_exception_handlers()
        self._setup_routes()

    def _verify_api_code(self, x_api_code: Optional[str] = Header(None, alias="X-API-Code")) -> bool:
        """Checks the pre-shared API code."""
        if not api_code_matches(x_api_code, self.settings.api_code):
            raise AuthenticationError(AUTH_FAILED)
        return True

    def _setup_exception_handlers(self):
        """Maps exceptions to the response envelope."""

        @self.app.exception_handler(BhumiError)
        async def handle_domain_error(request: Request, exc: BhumiError):
            if isinstance(exc, AuthenticationError):
                self.logger.warning(f"Rejected {request.method} {request.url.path}: bad API code")
                return failure(str(exc), 401)
            if isinstance(exc, ReferentialIntegrityError):
                return failure(str(exc), 400, count=exc.count)
            if isinstance(exc, ValidationError):
                return failure(str(exc), 400)
            if isinstance(exc, NotFoundError):
                return failure(str(exc), 404)

            self.logger.error(f"{request.method} {request.url.path} failed: {exc}")
            return failure("Internal server error", 500)

        @self.app.exception_handler(RequestValidationError)
        async def handle_request_validation(request: Request, exc: RequestValidationError):
            return failure(validation_message(exc), 400)

        @self.app.exception_handler(StarletteHTTPException)
        async def handle_http_error(request: Request, exc: StarletteHTTPException):
            if exc.status_code == 404:
                message = "Endpoint not found" if request.url.path.startswith("/api/") else "Not found"
                return failure(message, 404)
            if exc.status_code == 405:
                return failure("Method not allowed", 405)
            return failure(str(exc.detail), exc.status_code)

        @self.app.exception_handler(Exception)
        async def handle_unexpected(request: Request, exc: Exception):
            self.logger.exception(f"Unexpected error on {request.method} {request.url.path}")
            return failure("Internal server error", 500)

    def _setup_routes(self):
        """Registers the API routes."""
        authorized = Depends(self._verify_api_code)

        # Public reads

        @self.app.get("/api/services")
        def list_services():
            return success([s.to_api() for s in self.services.list()])

        @self.app.get("/api/services/{service_id:int}")
        def get_service(service_id: int):
            return success(self.services.get(service_id).to_api())

        @self.app.get("/api/training-programs")
        def list_training_programs():
            return success([p.to_api() for p in self.programs.list()])

        @self.app.get("/api/training-programs/{id_or_slug}")
        def get_training_program(id_or_slug: str):
            return success(self.programs.get(id_or_slug).to_api())

        # Verification

        @self.app.post("/api/verify-certificate")
        def verify_certificate(request: VerificationRequest):
            result = self.verification.verify_certificate(request.certificate_id, request.participant_name)
            return success(result.to_api())

        @self.app.post("/api/check-status")
        def check_status(request: StatusCheckRequest):
            result = self.verification.check_participant_status(request.participant_id, request.email)
            return success(result.to_api())

        @self.app.get("/api/certificates/download/{certificate_id:path}")
        def download_certificate(certificate_id: str):
            return success(self.certificates.download(certificate_id).to_api())

        # Contact form

        @self.app.post("/api/contact")
        def submit_contact(form: ContactForm, background_tasks: BackgroundTasks):
            contact = self.contacts.submit(form)
            background_tasks.add_task(self.notifier.notify, form.model_dump())
            return success({"id": contact.id})

        # Services

        @self.app.post("/api/services", dependencies=[authorized])
        @self.app.post("/api/services/create", dependencies=[authorized])
        def create_service(request: ServiceCreate):
            return success(self.services.create(request).to_api())

        @self.app.put("/api/services/{service_id:int}", dependencies=[authorized])
        @self.app.patch("/api/services/{service_id:int}", dependencies=[authorized])
        def update_service(service_id: int, request: ServiceUpdate):
            return success(self.services.update(service_id, request).to_api())

        @self.app.delete("/api/services/{service_id:int}", dependencies=[authorized])
        def delete_service(service_id: int):
            self.services.delete(service_id)
            return success({"message": "Service deleted successfully"})

        # Training programs

        @self.app.post("/api/training-programs", dependencies=[authorized])
        @self.app.post("/api/training-programs/create", dependencies=[authorized])
        def create_training_program(request: TrainingProgramCreate):
            return success(self.programs.create(request).to_api())

        @self.app.put("/api/training-programs/{program_id:int}", dependencies=[authorized])
        @self.app.patch("/api/training-programs/{program_id:int}", dependencies=[authorized])
        def update_training_program(program_id: int, request: TrainingProgramUpdate):
            return success(self.programs.update(program_id, request).to_api())

        @self.app.delete("/api/training-programs/{program_id:int}", dependencies=[authorized])
        def delete_training_program(program_id: int):
            self.programs.delete(program_id)
            return success({"message": "Training program deleted successfully"})

        # Participants

        @self.app.get("/api/participants", dependencies=[authorized])
        def list_participants():
            return success([p.to_api() for p in self.participants.list()])

        @self.app.get("/api/participants/{participant_pk:int}", dependencies=[authorized])
        def get_participant(participant_pk: int):
            return success(self.participants.get(participant_pk).to_api())

        @self.app.post("/api/participants", dependencies=[authorized])
        @self.app.post("/api/participants/create", dependencies=[authorized])
        def create_participant(request: ParticipantCreate):
            return success(self.participants.create(request).to_api())

        @self.app.put("/api/participants/{participant_pk:int}", dependencies=[authorized])
        @self.app.patch("/api/participants/{participant_pk:int}", dependencies=[authorized])
        def update_participant(participant_pk: int, request: ParticipantUpdate):
            return success(self.participants.update(participant_pk, request).to_api())

        @self.app.delete("/api/participants/{participant_pk:int}", dependencies=[authorized])
        def delete_participant(participant_pk: int):
            self.participants.delete(participant_pk)
            return success({"message": "Participant deleted successfully"})

        # Certificates

        @self.app.get("/api/certificates", dependencies=[authorized])
        def list_certificates():
            return success([c.to_api() for c in self.certificates.list()])

        @self.app.get("/api/certificates/{certificate_pk:int}", dependencies=[authorized])
        def get_certificate(certificate_pk: int):
            return success(self.certificates.get(certificate_pk).to_api())

        @self.app.post("/api/certificates", dependencies=[authorized])
        @self.app.post("/api/certificates/create", dependencies=[authorized])
        def create_certificate(request: CertificateCreate):
            return success(self.certificates.create(request).to_api())

        @self.app.put("/api/certificates/{certificate_pk:int}", dependencies=[authorized])
        @self.app.patch("/api/certificates/{certificate_pk:int}", dependencies=[authorized])
        def update_certificate(certificate_pk: int, request: CertificateUpdate):
            return success(self.certificates.update(certificate_pk, request).to_api())

        @self.app.delete("/api/certificates/{certificate_pk:int}", dependencies=[authorized])
        def delete_certificate(certificate_pk: int):
            self.certificates.delete(certificate_pk)
            return success({"message": "Certificate deleted successfully"})

        # Contacts

        @self.app.get("/api/contacts", dependencies=[authorized])
        def list_contacts():
            return success([c.to_api() for c in self.contacts.list()])

        @self.app.get("/api/contacts/{contact_id:int}", dependencies=[authorized])
        def get_contact(contact_id: int):
            return success(self.contacts.get(contact_id).to_api())

        @self.app.put("/api/contacts/{contact_id:int}", dependencies=[authorized])
        @self.app.patch("/api/contacts/{contact_id:int}", dependencies=[authorized])
        def update_contact_status(contact_id: int, request: ContactStatusUpdate):
            return success(self.contacts.update_status(contact_id, request.status).to_api())

        @self.app.delete("/api/contacts/{contact_id:int}", dependencies=[authorized])
        def delete_contact(contact_id: int):
            self.contacts.delete(contact_id)
            return success({"message": "Contact deleted successfully"})

        # Monitoring

        @self.app.get("/api/telegram-status", dependencies=[authorized])
        def telegram_status():
            return success(self.notifier.status())

        @self.app.get("/health", tags=["monitoring"])
        def health_check():
            """API and database health."""
            database_ok = self.db_manager.health_check()
            body = {
                "status": "ok" if database_ok else "unhealthy",
                "timestamp": utcnow().isoformat() + "Z",
                "components": {
                    "api": {"status": "healthy"},
                    "database": {"status": "healthy" if database_ok else "unhealthy"},
                },
            }
            return JSONResponse(content=body, status_code=200 if database_ok else 503)
