"""
Pydantic models for request validation and API serialization.

Python attributes are snake_case; the API speaks camelCase through aliases.
Training program pricing fields keep their snake_case wire names.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from .validators import EmailValidator


def utcnow() -> datetime:
    """Returns the current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Converts an aware datetime to naive UTC, leaves naive values untouched."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _check_email(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not EmailValidator().validate(value):
        raise ValueError("Invalid email address")
    return value


def _strip_non_empty(value: Optional[str]) -> Optional[str]:
    """Strips a text field that may be omitted but must not be blank when sent."""
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


def _decode_features(value):
    """Accepts a JSON-encoded list as well as a list."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise ValueError("features must be a list of strings")
    return value


class DeliveryMode(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    BOTH = "both"


class ParticipantStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"
    WITHDRAWN = "withdrawn"


class CertificateStatus(str, Enum):
    """Derived certificate status. REVOKED is reserved and never derived."""
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class ContactStatus(str, Enum):
    PENDING = "pending"
    CONTACTED = "contacted"
    RESOLVED = "resolved"
    ARCHIVED = "archived"


class ApiModel(BaseModel):
    """Base model: accepts both field names and aliases, emits aliases."""

    def to_api(self) -> dict:
        """Serializes the model for an API response."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    class Config:
        populate_by_name = True
        from_attributes = True
        use_enum_values = True


# Services

class ServiceCreate(ApiModel):
    """Service creation request."""
    title: str = Field(..., min_length=1, description="Service title")
    description: str = Field(..., min_length=1, description="Service description")
    icon: str = Field(..., min_length=1, description="Icon identifier")
    features: List[str] = Field(..., description="Feature list")

    decode_features = field_validator("features", mode="before")(_decode_features)


class ServiceUpdate(ApiModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    icon: Optional[str] = Field(None, min_length=1)
    features: Optional[List[str]] = None

    decode_features = field_validator("features", mode="before")(_decode_features)


class ServiceOut(ApiModel):
    id: int
    title: str
    description: str
    icon: str
    features: List[str] = Field(default_factory=list)


# Training programs

class TrainingProgramCreate(ApiModel):
    """Training program creation request. Pricing is resolved by the service layer."""
    title: str = Field(..., min_length=1)
    slug: Optional[str] = None
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    duration: str = Field(..., min_length=1)
    price: Optional[int] = Field(None, ge=0, description="Legacy single price")
    online_price: Optional[int] = Field(None, ge=0)
    offline_price: Optional[int] = Field(None, ge=0)
    delivery_mode: Optional[DeliveryMode] = None
    image_path: Optional[str] = Field(None, validation_alias=AliasChoices("image_path", "imagePath"))


class TrainingProgramUpdate(ApiModel):
    title: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    duration: Optional[str] = Field(None, min_length=1)
    price: Optional[int] = Field(None, ge=0)
    online_price: Optional[int] = Field(None, ge=0)
    offline_price: Optional[int] = Field(None, ge=0)
    delivery_mode: Optional[DeliveryMode] = None
    image_path: Optional[str] = Field(None, validation_alias=AliasChoices("image_path", "imagePath"))


class TrainingProgramOut(ApiModel):
    id: int
    title: str
    slug: str
    description: str
    category: str
    duration: str
    price: int
    online_price: Optional[int] = None
    offline_price: Optional[int] = None
    delivery_mode: DeliveryMode = DeliveryMode.BOTH
    image_path: Optional[str] = None


# Participants

class ParticipantCreate(ApiModel):
    """Participant enrollment request. A participant ID is generated when omitted."""
    participant_id: Optional[str] = Field(None, alias="participantId")
    full_name: str = Field(..., alias="fullName", min_length=1)
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None
    training_program_id: int = Field(..., alias="trainingProgramId")
    enrollment_date: datetime = Field(..., alias="enrollmentDate")
    status: ParticipantStatus = ParticipantStatus.ACTIVE

    check_email = field_validator("email")(_check_email)

    @field_validator("enrollment_date")
    @classmethod
    def naive_dates(cls, v):
        return to_naive_utc(v)

    @field_validator("participant_id", "full_name")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class ParticipantUpdate(ApiModel):
    participant_id: Optional[str] = Field(None, alias="participantId", min_length=1)
    full_name: Optional[str] = Field(None, alias="fullName", min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    training_program_id: Optional[int] = Field(None, alias="trainingProgramId")
    enrollment_date: Optional[datetime] = Field(None, alias="enrollmentDate")
    status: Optional[ParticipantStatus] = None

    check_email = field_validator("email")(_check_email)

    @field_validator("participant_id", "full_name")
    @classmethod
    def strip_required_text(cls, v):
        return _strip_non_empty(v)

    @field_validator("enrollment_date")
    @classmethod
    def naive_dates(cls, v):
        return to_naive_utc(v)


class ParticipantOut(ApiModel):
    id: int
    participant_id: str = Field(..., alias="participantId")
    full_name: str = Field(..., alias="fullName")
    email: str
    phone: Optional[str] = None
    training_program_id: int = Field(..., alias="trainingProgramId")
    training_program_name: Optional[str] = Field(None, alias="trainingProgramName")
    enrollment_date: datetime = Field(..., alias="enrollmentDate")
    status: ParticipantStatus


# Certificates

class CertificateCreate(ApiModel):
    """Certificate issue request. A certificate ID is generated when omitted."""
    certificate_id: Optional[str] = Field(None, alias="certificateId")
    participant_id: int = Field(..., alias="participantId")
    training_program_id: int = Field(..., alias="trainingProgramId")
    issue_date: datetime = Field(..., alias="issueDate")
    expiry_date: Optional[datetime] = Field(None, alias="expiryDate")
    certificate_path: Optional[str] = Field(None, alias="certificatePath")

    @field_validator("issue_date", "expiry_date")
    @classmethod
    def naive_dates(cls, v):
        return to_naive_utc(v)

    @field_validator("certificate_id")
    @classmethod
    def strip_id(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_period(self):
        if self.expiry_date is not None and self.expiry_date < self.issue_date:
            raise ValueError("Expiry date cannot precede issue date")
        return self


class CertificateUpdate(ApiModel):
    certificate_id: Optional[str] = Field(None, alias="certificateId", min_length=1)
    participant_id: Optional[int] = Field(None, alias="participantId")
    training_program_id: Optional[int] = Field(None, alias="trainingProgramId")
    issue_date: Optional[datetime] = Field(None, alias="issueDate")
    expiry_date: Optional[datetime] = Field(None, alias="expiryDate")
    certificate_path: Optional[str] = Field(None, alias="certificatePath")

    @field_validator("certificate_id")
    @classmethod
    def strip_id(cls, v):
        return _strip_non_empty(v)

    @field_validator("issue_date", "expiry_date")
    @classmethod
    def naive_dates(cls, v):
        return to_naive_utc(v)


class CertificateOut(ApiModel):
    id: int
    certificate_id: str = Field(..., alias="certificateId")
    participant_id: int = Field(..., alias="participantId")
    training_program_id: int = Field(..., alias="trainingProgramId")
    participant_name: Optional[str] = Field(None, alias="participantName")
    training_program_name: Optional[str] = Field(None, alias="trainingProgramName")
    issue_date: datetime = Field(..., alias="issueDate")
    expiry_date: Optional[datetime] = Field(None, alias="expiryDate")
    certificate_path: Optional[str] = Field(None, alias="certificatePath")
    status: CertificateStatus


class CertificateDownload(ApiModel):
    id: str
    participant_name: str = Field(..., alias="participantName")
    training_program: str = Field(..., alias="trainingProgram")
    issue_date: datetime = Field(..., alias="issueDate")
    expiry_date: Optional[datetime] = Field(None, alias="expiryDate")
    download_url: str = Field(..., alias="downloadUrl")
    url: str


# Contacts

class ContactForm(ApiModel):
    """Public contact form submission."""
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None
    subject: str = Field(..., min_length=1, max_length=300)
    message: str = Field(..., min_length=10, description="At least 10 characters")

    check_email = field_validator("email")(_check_email)

    @field_validator("name", "subject", "message")
    @classmethod
    def strip_text(cls, v):
        return v.strip()


class ContactStatusUpdate(ApiModel):
    status: ContactStatus


class ContactOut(ApiModel):
    id: int
    full_name: str = Field(..., alias="name")
    email: str
    phone: Optional[str] = None
    subject: str
    message: str
    created_at: datetime = Field(..., alias="createdAt")
    status: ContactStatus


# Verification

class VerificationRequest(ApiModel):
    certificate_id: str = Field("", alias="certificateId")
    participant_name: str = Field("", alias="participantName")


class StatusCheckRequest(ApiModel):
    participant_id: Optional[str] = Field(None, alias="participantId")
    email: Optional[str] = None


class CertificateSummary(ApiModel):
    certificate_id: str = Field(..., alias="certificateId")
    issue_date: datetime = Field(..., alias="issueDate")
    status: CertificateStatus
    certificate_path: Optional[str] = Field(None, alias="certificatePath")


class RecordRef(ApiModel):
    """Name and internal ID of a related record."""
    name: str
    id: int


class VerificationResult(ApiModel):
    certificate: CertificateSummary
    participant: RecordRef
    training: RecordRef


class EnrolledProgram(ApiModel):
    """Enrollment summary; completion fields are absent while in progress."""
    program_id: int = Field(..., alias="programId")
    program_name: str = Field(..., alias="programName")
    completion_date: Optional[datetime] = Field(None, alias="completionDate")
    certificate_id: Optional[str] = Field(None, alias="certificateId")

    @property
    def in_progress(self) -> bool:
        return self.certificate_id is None


class ParticipantStatusInfo(ApiModel):
    participant_id: str = Field(..., alias="participantId")
    name: str
    status: ParticipantStatus


class StatusResult(ApiModel):
    participant: ParticipantStatusInfo
    enrolled_programs: List[EnrolledProgram] = Field(default_factory=list, alias="enrolledPrograms")
