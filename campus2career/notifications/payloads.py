"""Typed template data for each notification type.

Call sites build the payload model for the type they dispatch, which checks
field names and types up front; the dispatcher still renders leniently, so
an optional field left unset shows up as its literal ``{placeholder}``.
Payload fields are snake_case in Python and camelCase in templates and in
the stored notification data.
"""

from typing import Any, Dict, Mapping, Optional, Type, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from campus2career.domain.models import NotificationType


class NotificationPayload(BaseModel):
    """Fields shared by every payload. Unknown extra fields are kept."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    transaction_id: Optional[str] = None
    listing_id: Optional[str] = None
    application_id: Optional[str] = None

    def to_template_data(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ApplicationReceivedPayload(NotificationPayload):
    student_name: Optional[str] = None
    project_title: Optional[str] = None
    company_name: Optional[str] = None
    timeline: Optional[str] = None


class ApplicationDecisionPayload(NotificationPayload):
    student_name: Optional[str] = None
    project_title: Optional[str] = None
    company_name: Optional[str] = None
    browse_projects_url: Optional[str] = None


class ProjectCompletedPayload(NotificationPayload):
    student_name: Optional[str] = None
    project_title: Optional[str] = None
    company_name: Optional[str] = None


class InviteReceivedPayload(NotificationPayload):
    student_name: Optional[str] = None
    company_name: Optional[str] = None
    project_title: Optional[str] = None
    project_description: Optional[str] = None
    invitation_url: Optional[str] = None
    invite_id: Optional[str] = None


class NewMessagePayload(NotificationPayload):
    recipient_name: Optional[str] = None
    sender_name: Optional[str] = None
    company_context: str = ""
    message_preview: Optional[str] = None
    conversation_url: Optional[str] = None


class AssessmentReceivedPayload(NotificationPayload):
    student_name: Optional[str] = None
    company_name: Optional[str] = None
    project_title: Optional[str] = None
    assessment_url: Optional[str] = None


class NewApplicationPayload(NotificationPayload):
    company_name: Optional[str] = None
    project_title: Optional[str] = None
    student_name: Optional[str] = None
    student_university: Optional[str] = None
    student_major: Optional[str] = None
    application_url: Optional[str] = None


class StudentAcceptedInvitePayload(NotificationPayload):
    company_name: Optional[str] = None
    student_name: Optional[str] = None
    project_title: Optional[str] = None
    project_url: Optional[str] = None
    invite_id: Optional[str] = None


class DeliverableSubmittedPayload(NotificationPayload):
    company_name: Optional[str] = None
    student_name: Optional[str] = None
    project_title: Optional[str] = None
    deliverable_title: Optional[str] = None
    workspace_url: Optional[str] = None


class StudentProjectUpdatePayload(NotificationPayload):
    recipient_name: Optional[str] = None
    project_title: Optional[str] = None
    update_summary: Optional[str] = None
    project_url: Optional[str] = None


class AdminMessagePayload(NotificationPayload):
    recipient_name: Optional[str] = None
    message_subject: Optional[str] = None
    message_body: Optional[str] = None


PAYLOAD_MODELS: Dict[NotificationType, Type[NotificationPayload]] = {
    NotificationType.APPLICATION_RECEIVED: ApplicationReceivedPayload,
    NotificationType.APPLICATION_ACCEPTED: ApplicationDecisionPayload,
    NotificationType.APPLICATION_DECLINED: ApplicationDecisionPayload,
    NotificationType.PROJECT_COMPLETED: ProjectCompletedPayload,
    NotificationType.INVITE_RECEIVED: InviteReceivedPayload,
    NotificationType.NEW_MESSAGE: NewMessagePayload,
    NotificationType.ASSESSMENT_RECEIVED: AssessmentReceivedPayload,
    NotificationType.NEW_APPLICATION: NewApplicationPayload,
    NotificationType.STUDENT_ACCEPTED_INVITE: StudentAcceptedInvitePayload,
    NotificationType.DELIVERABLE_SUBMITTED: DeliverableSubmittedPayload,
    NotificationType.STUDENT_PROJECT_UPDATE: StudentProjectUpdatePayload,
    NotificationType.ADMIN_MESSAGE: AdminMessagePayload,
}


def to_template_data(data: Union[NotificationPayload, Mapping[str, Any], None]) -> Dict[str, Any]:
    """Normalize dispatch data to a plain dict, dropping None values."""
    if data is None:
        return {}
    if isinstance(data, NotificationPayload):
        return data.to_template_data()
    return {key: value for key, value in data.items() if value is not None}
