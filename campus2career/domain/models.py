"""Core domain models for applications, invites, notifications and NDAs.

- Application: secondary record mirroring an external project-application transaction
- ApplicationForm: the validated student-entered fields of a submission
- Invite: corporate-partner-initiated solicitation to apply
- Notification: persisted in-app message, optionally emailed
- NdaSignature: signature request attached to an accepted transaction
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from campus2career.utils.timestamps import ensure_utc


class ApplicationStatus(str, Enum):
    """Application lifecycle. ``pending`` is the only non-terminal state."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

    @property
    def is_terminal(self) -> bool:
        return self is not ApplicationStatus.PENDING


class InviteStatus(str, Enum):
    PENDING = "pending"
    APPLIED = "applied"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class NdaStatus(str, Enum):
    PENDING = "pending"
    SIGNED = "signed"


class NotificationType(str, Enum):
    """Every notification the dispatcher knows how to render."""

    APPLICATION_RECEIVED = "application-received"
    APPLICATION_ACCEPTED = "application-accepted"
    APPLICATION_DECLINED = "application-declined"
    PROJECT_COMPLETED = "project-completed"
    INVITE_RECEIVED = "invite-received"
    NEW_MESSAGE = "new-message"
    ASSESSMENT_RECEIVED = "assessment-received"
    NEW_APPLICATION = "new-application"
    STUDENT_ACCEPTED_INVITE = "student-accepted-invite"
    DELIVERABLE_SUBMITTED = "deliverable-submitted"
    STUDENT_PROJECT_UPDATE = "student-project-update"
    ADMIN_MESSAGE = "admin-message"


class ApplicationForm(BaseModel):
    """Student-entered application fields after validation and trimming."""

    cover_letter: str
    interest_reason: str
    skills: List[str] = Field(default_factory=list)
    availability_date: str
    hours_per_week: int = Field(..., ge=1)
    relevant_coursework: str
    gpa: Optional[str] = None
    references_text: str


class Application(BaseModel):
    """A student's application to a project listing.

    ``transaction_id`` is a loose reference to the external transaction and
    stays None when the external process could not be reached at submission
    time; the local record is authoritative either way.
    """

    id: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1)
    listing_id: str = Field(..., min_length=1)
    transaction_id: Optional[str] = None
    invite_id: Optional[str] = None
    cover_letter: str
    interest_reason: str
    skills: List[str] = Field(default_factory=list)
    availability_date: str
    hours_per_week: int = Field(..., ge=1)
    relevant_coursework: str
    gpa: Optional[str] = None
    references_text: str
    status: ApplicationStatus = ApplicationStatus.PENDING
    reviewer_notes: Optional[str] = None
    submitted_at: datetime
    reviewed_at: Optional[datetime] = None
    updated_at: datetime
    transition_synced_at: Optional[datetime] = None

    @field_validator("submitted_at", "reviewed_at", "updated_at", "transition_synced_at")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @classmethod
    def from_form(
        cls,
        application_id: str,
        student_id: str,
        listing_id: str,
        form: ApplicationForm,
        submitted_at: datetime,
        invite_id: Optional[str] = None,
    ) -> "Application":
        return cls(
            id=application_id,
            student_id=student_id,
            listing_id=listing_id,
            invite_id=invite_id,
            submitted_at=submitted_at,
            updated_at=submitted_at,
            **form.model_dump(),
        )


class Invite(BaseModel):
    """A corporate partner's invitation for a student to apply to a listing."""

    id: str = Field(..., min_length=1)
    corporate_partner_id: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1)
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    listing_id: str = Field(..., min_length=1)
    project_title: Optional[str] = None
    message: Optional[str] = None
    transaction_id: Optional[str] = None
    status: InviteStatus = InviteStatus.PENDING
    sent_at: datetime
    responded_at: Optional[datetime] = None

    @field_validator("sent_at", "responded_at")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class Notification(BaseModel):
    """A persisted per-recipient notification."""

    id: str = Field(..., min_length=1)
    recipient_id: str = Field(..., min_length=1)
    type: NotificationType
    subject: str
    content: str
    data: Dict[str, Any] = Field(default_factory=dict)
    read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime

    @field_validator("read_at", "created_at")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @model_validator(mode="after")
    def check_read_state(self) -> "Notification":
        # read and read_at move together
        if self.read and self.read_at is None:
            raise ValueError("read notifications must have read_at set")
        if not self.read and self.read_at is not None:
            raise ValueError("unread notifications must not have read_at set")
        return self


class NdaSignature(BaseModel):
    """NDA signature request tied to an external transaction."""

    transaction_id: str = Field(..., min_length=1)
    listing_id: str = Field(..., min_length=1)
    application_id: Optional[str] = None
    title: str
    status: NdaStatus = NdaStatus.PENDING
    signers: List[Dict[str, Any]] = Field(default_factory=list)
    nda_text: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    @field_validator("created_at", "completed_at")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)
