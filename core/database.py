"""
SQLAlchemy models and repositories.
"""

import logging
from typing import List, Optional, Set

from sqlalchemy import (
    create_engine, event, func, Column, DateTime, ForeignKey, Index, Integer,
    JSON, String, Text, text
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config.settings import get_settings
from .exceptions import DatabaseError, DuplicateError, ValidationError
from .models import utcnow

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


class Service(Base):
    """Consultancy service shown on the marketing site."""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    icon = Column(String(100), nullable=False)
    features = Column(JSON, nullable=False, default=list)

    def __repr__(self):
        return f"<Service(id={self.id}, title={self.title})>"


class TrainingProgram(Base):
    """Training program."""

    __tablename__ = "training_programs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False, index=True)
    duration = Column(String(100), nullable=False)
    price = Column(Integer, nullable=False)  # legacy, mirrors online_price
    online_price = Column(Integer, nullable=True)
    offline_price = Column(Integer, nullable=True)
    delivery_mode = Column(String(10), nullable=False, default="both", server_default=text("'both'"))
    image_path = Column(String(500), nullable=True)

    def __repr__(self):
        return f"<TrainingProgram(id={self.id}, slug={self.slug})>"


class Participant(Base):
    """Person enrolled in a training program."""

    __tablename__ = "participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    participant_id = Column(String(50), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(254), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    training_program_id = Column(Integer, ForeignKey("training_programs.id"), nullable=False, index=True)
    enrollment_date = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default="active", server_default=text("'active'"))

    training_program = relationship("TrainingProgram", lazy="joined")

    def __repr__(self):
        return f"<Participant(id={self.participant_id}, name={self.full_name})>"

    @property
    def training_program_name(self) -> Optional[str]:
        return self.training_program.title if self.training_program else None


class Certificate(Base):
    """Certificate issued to a participant for a training program."""

    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    certificate_id = Column(String(50), unique=True, nullable=False, index=True)
    participant_id = Column(Integer, ForeignKey("participants.id"), nullable=False, index=True)
    training_program_id = Column(Integer, ForeignKey("training_programs.id"), nullable=False, index=True)
    issue_date = Column(DateTime, nullable=False)
    expiry_date = Column(DateTime, nullable=True)
    certificate_path = Column(String(500), nullable=True)

    participant = relationship("Participant", lazy="joined")
    training_program = relationship("TrainingProgram", lazy="joined")

    __table_args__ = (
        Index('idx_certificate_participant_program', 'participant_id', 'training_program_id'),
    )

    def __repr__(self):
        return f"<Certificate(id={self.certificate_id})>"

    @property
    def participant_name(self) -> Optional[str]:
        return self.participant.full_name if self.participant else None

    @property
    def training_program_name(self) -> Optional[str]:
        return self.training_program.title if self.training_program else None


class Contact(Base):
    """Contact form submission."""

    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(254), nullable=False)
    phone = Column(String(50), nullable=True)
    subject = Column(String(300), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    status = Column(String(20), nullable=False, default="pending", server_default=text("'pending'"))

    __table_args__ = (
        Index('idx_contact_created_at', 'created_at'),
    )

    def __repr__(self):
        return f"<Contact(id={self.id}, email={self.email})>"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """Owns the engine and hands out sessions."""

    def __init__(self, database_url: str = None):
        """
        Initializes the database manager.

        Args:
            database_url: SQLAlchemy URL, taken from settings when omitted
        """
        if database_url is None:
            database_url = get_settings().database_url

        engine_kwargs = {"pool_pre_ping": True, "echo": False}
        is_sqlite = database_url.startswith("sqlite")

        if is_sqlite:
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            # In-memory databases live as long as their single connection
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_recycle"] = 3600

        self.engine = create_engine(database_url, **engine_kwargs)

        if is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )

    def create_tables(self):
        """Creates all tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def drop_tables(self):
        """Drops all tables."""
        Base.metadata.drop_all(bind=self.engine)
        logger.info("Database tables dropped")

    def get_session(self) -> Session:
        """Returns a new session."""
        return self.SessionLocal()

    def health_check(self) -> bool:
        """Checks the database connection."""
        try:
            with self.get_session() as session:
                session.execute(text("SELECT 1"))
                return True
        except SQLAlchemyError as e:
            logger.error(f"Database connection failed: {e}")
            return False

    def dispose(self):
        self.engine.dispose()


class BaseRepository:
    """Generic CRUD over one model. Returned objects are detached and fully loaded."""

    model = None
    entity_name = "Record"

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def list(self) -> List:
        with self.db_manager.get_session() as session:
            return session.query(self.model).order_by(self.model.id).all()

    def get(self, record_id: int):
        with self.db_manager.get_session() as session:
            return session.get(self.model, record_id)

    def create(self, data: dict):
        """
        Inserts a record.

        Args:
            data: Column values

        Returns:
            The stored record with relationships loaded

        Raises:
            DuplicateError: On a unique constraint violation
        """
        with self.db_manager.get_session() as session:
            record = self.model(**data)
            session.add(record)
            self._commit(session)
            return self._reload(session, record.id)

    def update(self, record_id: int, data: dict):
        """
        Updates the given columns of a record.

        Returns:
            The updated record, or None if it does not exist
        """
        with self.db_manager.get_session() as session:
            record = session.get(self.model, record_id)
            if record is None:
                return None

            for key, value in data.items():
                setattr(record, key, value)

            self._commit(session)
            return self._reload(session, record_id)

    def delete(self, record_id: int) -> bool:
        """Deletes a record. Returns False if it does not exist."""
        with self.db_manager.get_session() as session:
            record = session.get(self.model, record_id)
            if record is None:
                return False

            session.delete(record)
            self._commit(session)
            return True

    def _reload(self, session: Session, record_id: int):
        return session.query(self.model).populate_existing().filter(
            self.model.id == record_id
        ).one()

    def _commit(self, session: Session):
        try:
            session.commit()
        except IntegrityError as e:
            session.rollback()
            # Concurrent writers can slip past the pre-checks; the store decides
            if "unique" in str(e.orig).lower() or "duplicate" in str(e.orig).lower():
                logger.warning(f"{self.entity_name} unique constraint violated: {e.orig}")
                raise DuplicateError(f"{self.entity_name} already exists") from e
            logger.warning(f"{self.entity_name} integrity error: {e.orig}")
            raise ValidationError("Referenced record does not exist or is still in use") from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"{self.entity_name} commit failed: {e}")
            raise DatabaseError(f"Failed to save {self.entity_name.lower()}") from e


class ServiceRepository(BaseRepository):
    model = Service
    entity_name = "Service"


class TrainingProgramRepository(BaseRepository):
    model = TrainingProgram
    entity_name = "Training program"

    def get_by_slug(self, slug: str) -> Optional[TrainingProgram]:
        with self.db_manager.get_session() as session:
            return session.query(TrainingProgram).filter(TrainingProgram.slug == slug).first()

    def slug_exists(self, slug: str, exclude_id: Optional[int] = None) -> bool:
        """
        Checks whether a slug is taken.

        Args:
            slug: Slug to check
            exclude_id: Program to ignore (the one being updated)
        """
        with self.db_manager.get_session() as session:
            query = session.query(TrainingProgram.id).filter(TrainingProgram.slug == slug)
            if exclude_id is not None:
                query = query.filter(TrainingProgram.id != exclude_id)
            return query.first() is not None

    def count_participants(self, program_id: int) -> int:
        with self.db_manager.get_session() as session:
            return session.query(func.count(Participant.id)).filter(
                Participant.training_program_id == program_id
            ).scalar()

    def count_certificates(self, program_id: int) -> int:
        """Certificates issued for the program, including those of participants who moved on."""
        with self.db_manager.get_session() as session:
            return session.query(func.count(Certificate.id)).filter(
                Certificate.training_program_id == program_id
            ).scalar()


class ParticipantRepository(BaseRepository):
    model = Participant
    entity_name = "Participant"

    def get_by_participant_id(self, participant_id: str) -> Optional[Participant]:
        with self.db_manager.get_session() as session:
            return session.query(Participant).filter(
                Participant.participant_id == participant_id
            ).first()

    def get_by_email(self, email: str) -> Optional[Participant]:
        """Case-insensitive lookup. The earliest enrollment wins when an address repeats."""
        with self.db_manager.get_session() as session:
            return session.query(Participant).filter(
                func.lower(Participant.email) == email.strip().lower()
            ).order_by(Participant.id).first()

    def get_existing_participant_ids(self) -> Set[str]:
        with self.db_manager.get_session() as session:
            result = session.query(Participant.participant_id).all()
            return {row.participant_id for row in result}

    def count_certificates(self, participant_pk: int) -> int:
        with self.db_manager.get_session() as session:
            return session.query(func.count(Certificate.id)).filter(
                Certificate.participant_id == participant_pk
            ).scalar()


class CertificateRepository(BaseRepository):
    model = Certificate
    entity_name = "Certificate"

    def get_by_certificate_id(self, certificate_id: str) -> Optional[Certificate]:
        """
        Finds a certificate by its external ID.

        Args:
            certificate_id: External certificate ID

        Returns:
            Optional[Certificate]: Certificate with participant and program loaded
        """
        with self.db_manager.get_session() as session:
            return session.query(Certificate).filter(
                Certificate.certificate_id == certificate_id
            ).first()

    def get_latest_for(self, participant_pk: int, program_id: int) -> Optional[Certificate]:
        """Returns the most recently issued certificate for a participant and program."""
        with self.db_manager.get_session() as session:
            return session.query(Certificate).filter(
                Certificate.participant_id == participant_pk,
                Certificate.training_program_id == program_id
            ).order_by(Certificate.issue_date.desc(), Certificate.id.desc()).first()

    def get_existing_certificate_ids(self) -> Set[str]:
        with self.db_manager.get_session() as session:
            result = session.query(Certificate.certificate_id).all()
            return {row.certificate_id for row in result}


class ContactRepository(BaseRepository):
    model = Contact
    entity_name = "Contact"

    def list(self) -> List[Contact]:
        """Newest submissions first."""
        with self.db_manager.get_session() as session:
            return session.query(Contact).order_by(Contact.created_at.desc(), Contact.id.desc()).all()


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Returns the process-wide database manager."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager
