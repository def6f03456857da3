"""Request and response models for the HTTP API.

Fields are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from campus2career.domain.models import (
    ApplicationStatus,
    InviteStatus,
    NdaStatus,
    NotificationType,
)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Requests

class SubmitApplicationRequest(ApiModel):
    """Application form. Every field is optional here so the reconciler can
    report the first missing one with its own message."""

    listing_id: Optional[str] = None
    invite_id: Optional[str] = None
    cover_letter: Optional[str] = None
    interest_reason: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    availability_date: Optional[str] = None
    hours_per_week: Optional[Union[int, str]] = None
    relevant_coursework: Optional[str] = None
    gpa: Optional[Union[str, float]] = None
    references_text: Optional[str] = None

    def form_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"listing_id", "invite_id"})


class ReviewRequest(ApiModel):
    reviewer_notes: Optional[str] = Field(None, max_length=5000)


class CreateInviteRequest(ApiModel):
    student_id: str = Field(..., min_length=1)
    listing_id: str = Field(..., min_length=1)
    message: Optional[str] = Field(None, max_length=5000)
    student_name: Optional[str] = None
    student_email: Optional[str] = None


class TransitionRequest(ApiModel):
    transition: str = Field(..., min_length=1)


# Responses

class ApplicationOut(ApiModel):
    id: str
    student_id: str
    listing_id: str
    transaction_id: Optional[str] = None
    invite_id: Optional[str] = None
    cover_letter: str
    interest_reason: str
    skills: List[str]
    availability_date: str
    hours_per_week: int
    relevant_coursework: str
    gpa: Optional[str] = None
    references_text: str
    status: ApplicationStatus
    reviewer_notes: Optional[str] = None
    submitted_at: datetime
    reviewed_at: Optional[datetime] = None
    updated_at: datetime


class ApplicationResponse(ApiModel):
    application: ApplicationOut
    message: Optional[str] = None


class ApplicationListResponse(ApiModel):
    applications: List[ApplicationOut]


class InviteOut(ApiModel):
    id: str
    corporate_partner_id: str
    student_id: str
    student_name: Optional[str] = None
    listing_id: str
    project_title: Optional[str] = None
    message: Optional[str] = None
    transaction_id: Optional[str] = None
    status: InviteStatus
    sent_at: datetime
    responded_at: Optional[datetime] = None


class InviteResponse(ApiModel):
    invite: InviteOut


class InviteListResponse(ApiModel):
    invites: List[InviteOut]


class NotificationOut(ApiModel):
    id: str
    type: NotificationType
    subject: str
    content: str
    data: Dict[str, Any]
    read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(ApiModel):
    notifications: List[NotificationOut]
    unread_count: int


class UnreadCountResponse(ApiModel):
    unread_count: int


class MarkReadResponse(ApiModel):
    updated: bool


class MarkAllReadResponse(ApiModel):
    updated: int


class NdaSignatureOut(ApiModel):
    transaction_id: str
    listing_id: str
    application_id: Optional[str] = None
    title: str
    status: NdaStatus
    signers: List[Dict[str, Any]]
    created_at: datetime
    completed_at: Optional[datetime] = None


class AcceptedResponse(ApiModel):
    status: str = "accepted"


class ErrorResponse(BaseModel):
    error: str
