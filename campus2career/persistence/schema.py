"""Database schema definition and ORM models.

Timestamps are stored as fixed-width UTC ISO 8601 strings so that ordering by
the column orders chronologically.
"""

from sqlalchemy import JSON, Boolean, Column, Index, Integer, String, Text, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from campus2career.domain.models import (
    Application,
    ApplicationStatus,
    Invite,
    InviteStatus,
    NdaSignature,
    NdaStatus,
    Notification,
    NotificationType,
)
from campus2career.logging import get_logger
from campus2career.utils.timestamps import format_timestamp, parse_timestamp

logger = get_logger(__name__, component="database")

Base = declarative_base()

_PENDING_ONLY = text("status = 'pending'")


class ApplicationModel(Base):
    """ORM model for the applications table."""

    __tablename__ = "applications"

    id = Column(String(64), primary_key=True, nullable=False)
    student_id = Column(String(255), nullable=False)
    listing_id = Column(String(255), nullable=False)
    transaction_id = Column(String(255), nullable=True)
    invite_id = Column(String(64), nullable=True)

    cover_letter = Column(Text, nullable=False)
    interest_reason = Column(Text, nullable=False)
    skills = Column(JSON, nullable=False, default=list)
    availability_date = Column(String(50), nullable=False)
    hours_per_week = Column(Integer, nullable=False)
    relevant_coursework = Column(Text, nullable=False)
    gpa = Column(String(20), nullable=True)
    references_text = Column(Text, nullable=False)

    status = Column(String(20), nullable=False, default=ApplicationStatus.PENDING.value)
    reviewer_notes = Column(Text, nullable=True)

    submitted_at = Column(String(50), nullable=False)
    reviewed_at = Column(String(50), nullable=True)
    updated_at = Column(String(50), nullable=False)
    # Set once the marketplace is known to reflect the review transition
    transition_synced_at = Column(String(50), nullable=True)

    __table_args__ = (
        Index("idx_applications_student", "student_id"),
        Index("idx_applications_listing", "listing_id", "status"),
        Index("idx_applications_transaction", "transaction_id"),
        # At most one pending application per student and listing
        Index(
            "uq_applications_pending_student_listing",
            "student_id",
            "listing_id",
            unique=True,
            sqlite_where=_PENDING_ONLY,
            postgresql_where=_PENDING_ONLY,
        ),
    )

    def to_domain(self) -> Application:
        return Application(
            id=self.id,
            student_id=self.student_id,
            listing_id=self.listing_id,
            transaction_id=self.transaction_id,
            invite_id=self.invite_id,
            cover_letter=self.cover_letter,
            interest_reason=self.interest_reason,
            skills=list(self.skills or []),
            availability_date=self.availability_date,
            hours_per_week=self.hours_per_week,
            relevant_coursework=self.relevant_coursework,
            gpa=self.gpa,
            references_text=self.references_text,
            status=ApplicationStatus(self.status),
            reviewer_notes=self.reviewer_notes,
            submitted_at=parse_timestamp(self.submitted_at),
            reviewed_at=parse_timestamp(self.reviewed_at),
            updated_at=parse_timestamp(self.updated_at),
            transition_synced_at=parse_timestamp(self.transition_synced_at),
        )

    @classmethod
    def from_domain(cls, application: Application) -> "ApplicationModel":
        return cls(
            id=application.id,
            student_id=application.student_id,
            listing_id=application.listing_id,
            transaction_id=application.transaction_id,
            invite_id=application.invite_id,
            cover_letter=application.cover_letter,
            interest_reason=application.interest_reason,
            skills=list(application.skills),
            availability_date=application.availability_date,
            hours_per_week=application.hours_per_week,
            relevant_coursework=application.relevant_coursework,
            gpa=application.gpa,
            references_text=application.references_text,
            status=application.status.value,
            reviewer_notes=application.reviewer_notes,
            submitted_at=format_timestamp(application.submitted_at),
            reviewed_at=format_timestamp(application.reviewed_at),
            updated_at=format_timestamp(application.updated_at),
            transition_synced_at=format_timestamp(application.transition_synced_at),
        )


class InviteModel(Base):
    """ORM model for the invites table."""

    __tablename__ = "invites"

    id = Column(String(64), primary_key=True, nullable=False)
    corporate_partner_id = Column(String(255), nullable=False)
    student_id = Column(String(255), nullable=False)
    student_name = Column(String(255), nullable=True)
    student_email = Column(String(320), nullable=True)
    listing_id = Column(String(255), nullable=False)
    project_title = Column(Text, nullable=True)
    message = Column(Text, nullable=True)
    transaction_id = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=InviteStatus.PENDING.value)
    sent_at = Column(String(50), nullable=False)
    responded_at = Column(String(50), nullable=True)

    __table_args__ = (
        Index("idx_invites_student", "student_id", "status"),
        Index("idx_invites_partner", "corporate_partner_id", "status"),
        Index("idx_invites_listing", "listing_id"),
    )

    def to_domain(self) -> Invite:
        return Invite(
            id=self.id,
            corporate_partner_id=self.corporate_partner_id,
            student_id=self.student_id,
            student_name=self.student_name,
            student_email=self.student_email,
            listing_id=self.listing_id,
            project_title=self.project_title,
            message=self.message,
            transaction_id=self.transaction_id,
            status=InviteStatus(self.status),
            sent_at=parse_timestamp(self.sent_at),
            responded_at=parse_timestamp(self.responded_at),
        )

    @classmethod
    def from_domain(cls, invite: Invite) -> "InviteModel":
        return cls(
            id=invite.id,
            corporate_partner_id=invite.corporate_partner_id,
            student_id=invite.student_id,
            student_name=invite.student_name,
            student_email=invite.student_email,
            listing_id=invite.listing_id,
            project_title=invite.project_title,
            message=invite.message,
            transaction_id=invite.transaction_id,
            status=invite.status.value,
            sent_at=format_timestamp(invite.sent_at),
            responded_at=format_timestamp(invite.responded_at),
        )


class NotificationModel(Base):
    """ORM model for the notifications table."""

    __tablename__ = "notifications"

    id = Column(String(64), primary_key=True, nullable=False)
    recipient_id = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)
    subject = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(String(50), nullable=True)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (
        Index("idx_notifications_recipient_created", "recipient_id", "created_at"),
        Index("idx_notifications_recipient_unread", "recipient_id", "is_read"),
    )

    def to_domain(self) -> Notification:
        return Notification(
            id=self.id,
            recipient_id=self.recipient_id,
            type=NotificationType(self.type),
            subject=self.subject,
            content=self.content,
            data=dict(self.data or {}),
            read=bool(self.is_read),
            read_at=parse_timestamp(self.read_at),
            created_at=parse_timestamp(self.created_at),
        )

    @classmethod
    def from_domain(cls, notification: Notification) -> "NotificationModel":
        return cls(
            id=notification.id,
            recipient_id=notification.recipient_id,
            type=notification.type.value,
            subject=notification.subject,
            content=notification.content,
            data=dict(notification.data),
            is_read=notification.read,
            read_at=format_timestamp(notification.read_at),
            created_at=format_timestamp(notification.created_at),
        )


class NdaSignatureModel(Base):
    """ORM model for the nda_signatures table, keyed by external transaction."""

    __tablename__ = "nda_signatures"

    transaction_id = Column(String(255), primary_key=True, nullable=False)
    listing_id = Column(String(255), nullable=False)
    application_id = Column(String(64), nullable=True)
    title = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=NdaStatus.PENDING.value)
    signers = Column(JSON, nullable=False, default=list)
    nda_text = Column(Text, nullable=True)
    created_at = Column(String(50), nullable=False)
    completed_at = Column(String(50), nullable=True)

    __table_args__ = (Index("idx_nda_signatures_listing", "listing_id"),)

    def to_domain(self) -> NdaSignature:
        return NdaSignature(
            transaction_id=self.transaction_id,
            listing_id=self.listing_id,
            application_id=self.application_id,
            title=self.title,
            status=NdaStatus(self.status),
            signers=list(self.signers or []),
            nda_text=self.nda_text,
            created_at=parse_timestamp(self.created_at),
            completed_at=parse_timestamp(self.completed_at),
        )

    @classmethod
    def from_domain(cls, signature: NdaSignature) -> "NdaSignatureModel":
        return cls(
            transaction_id=signature.transaction_id,
            listing_id=signature.listing_id,
            application_id=signature.application_id,
            title=signature.title,
            status=signature.status.value,
            signers=list(signature.signers),
            nda_text=signature.nda_text,
            created_at=format_timestamp(signature.created_at),
            completed_at=format_timestamp(signature.completed_at),
        )


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes that don't exist yet. Idempotent."""
    Base.metadata.create_all(engine, checkfirst=True)
    tables = inspect(engine).get_table_names()
    logger.info(
        f"Database schema ready. Tables: {', '.join(tables)}",
        extra={"event": "database.schema.ready", "tables": tables},
    )
