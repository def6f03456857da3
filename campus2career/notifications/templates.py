"""Notification templates and email body rendering.

Each notification type has one subject and one plain-text body template using
``{placeholder}`` substitution. Substitution is lenient: a placeholder with
no matching key in the data stays in the output verbatim.

HTML email bodies are derived from the plain text and wrapped in a branded
Jinja2 layout from the ``email_templates`` package directory.
"""

import re
from dataclasses import dataclass
from textwrap import dedent
from typing import Any, Dict, Mapping, Optional, Tuple

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError
from markupsafe import Markup, escape

from campus2career.domain.models import NotificationType
from campus2career.logging import get_logger

from .models import NotificationTemplateError

logger = get_logger(__name__, component="notification")

PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")


@dataclass(frozen=True)
class NotificationTemplate:
    subject: str
    body: str


def _body(text: str) -> str:
    return dedent(text).strip("\n")


NOTIFICATION_TEMPLATES: Dict[NotificationType, NotificationTemplate] = {
    NotificationType.APPLICATION_RECEIVED: NotificationTemplate(
        subject="Application Received - {projectTitle}",
        body=_body(
            """
            Hi {studentName},

            Your application for "{projectTitle}" has been received!

            The corporate partner will review your application and get back to you soon.

            Project Details:
            - Company: {companyName}
            - Timeline: {timeline}

            You can track your application status in your dashboard.

            Best of luck!
            The Campus2Career Team
            """
        ),
    ),
    NotificationType.APPLICATION_ACCEPTED: NotificationTemplate(
        subject="Congratulations! Your Application Was Accepted",
        body=_body(
            """
            Hi {studentName},

            Great news! Your application for "{projectTitle}" has been accepted!

            Next Steps:
            1. Sign the NDA/Terms agreement
            2. Access the Project Workspace
            3. Connect with your corporate partner

            Company: {companyName}

            Log in to your dashboard to get started.

            Congratulations!
            The Campus2Career Team
            """
        ),
    ),
    NotificationType.APPLICATION_DECLINED: NotificationTemplate(
        subject="Application Update - {projectTitle}",
        body=_body(
            """
            Hi {studentName},

            Thank you for your interest in "{projectTitle}" at {companyName}.

            After careful consideration, the corporate partner has decided to move forward with other candidates for this project.

            There are many other opportunities waiting for you on Campus2Career.

            Browse more projects: {browseProjectsUrl}

            Keep applying and building your experience!
            The Campus2Career Team
            """
        ),
    ),
    NotificationType.PROJECT_COMPLETED: NotificationTemplate(
        subject="Project Completed - {projectTitle}",
        body=_body(
            """
            Hi {studentName},

            Congratulations on completing "{projectTitle}" with {companyName}!

            Your corporate partner may have submitted an assessment that you can view in your profile.

            What's next?
            - Request a recommendation letter
            - Browse more projects to keep building your experience
            - Update your profile with your new skills

            Keep up the great work!
            The Campus2Career Team
            """
        ),
    ),
    NotificationType.INVITE_RECEIVED: NotificationTemplate(
        subject="New Project Invitation from {companyName}",
        body=_body(
            """
            Hi {studentName},

            You've received an invitation to apply for a project!

            {companyName} thinks you'd be a great fit for: "{projectTitle}"

            Project Overview:
            {projectDescription}

            View and respond to this invitation: {invitationUrl}

            Good luck!
            The Campus2Career Team
            """
        ),
    ),
    NotificationType.NEW_MESSAGE: NotificationTemplate(
        subject="New Message from {senderName}",
        body=_body(
            """
            Hi {recipientName},

            You have a new message from {senderName}{companyContext}:

            "{messagePreview}"

            View full conversation: {conversationUrl}

            The Campus2Career Team
            """
        ),
    ),
    NotificationType.ASSESSMENT_RECEIVED: NotificationTemplate(
        subject="Assessment Received for {projectTitle}",
        body=_body(
            """
            Hi {studentName},

            {companyName} has submitted a performance assessment for your work on "{projectTitle}".

            This assessment is now part of your Campus2Career profile and can be viewed by other corporate partners.

            View your assessment: {assessmentUrl}

            Keep building your experience!
            The Campus2Career Team
            """
        ),
    ),
    NotificationType.NEW_APPLICATION: NotificationTemplate(
        subject="New Application for {projectTitle}",
        body=_body(
            """
            Hi {companyName} Team,

            A new student has applied for your project "{projectTitle}"!

            Applicant: {studentName}
            University: {studentUniversity}
            Major: {studentMajor}

            Review their application: {applicationUrl}

            The Campus2Career Team
            """
        ),
    ),
    NotificationType.STUDENT_ACCEPTED_INVITE: NotificationTemplate(
        subject="{studentName} Accepted Your Invitation",
        body=_body(
            """
            Hi {companyName} Team,

            {studentName} has accepted your invitation to "{projectTitle}".

            Review the next steps for this project: {projectUrl}

            The Campus2Career Team
            """
        ),
    ),
    NotificationType.DELIVERABLE_SUBMITTED: NotificationTemplate(
        subject="Deliverable Submitted for {projectTitle}",
        body=_body(
            """
            Hi {companyName} Team,

            {studentName} has submitted a deliverable for "{projectTitle}":

            {deliverableTitle}

            Review it in the project workspace: {workspaceUrl}

            The Campus2Career Team
            """
        ),
    ),
    NotificationType.STUDENT_PROJECT_UPDATE: NotificationTemplate(
        subject="Project Update: {projectTitle}",
        body=_body(
            """
            Hi {recipientName},

            There is a new update on "{projectTitle}":

            {updateSummary}

            View the project: {projectUrl}

            The Campus2Career Team
            """
        ),
    ),
    NotificationType.ADMIN_MESSAGE: NotificationTemplate(
        subject="{messageSubject}",
        body=_body(
            """
            Hi {recipientName},

            {messageBody}

            The Campus2Career Team
            """
        ),
    ),
}


def resolve_type(notification_type: Any) -> Optional[NotificationType]:
    """Map a NotificationType or its string value to a registered type, else None."""
    try:
        resolved = NotificationType(notification_type)
    except ValueError:
        return None
    return resolved if resolved in NOTIFICATION_TEMPLATES else None


def interpolate(template: str, data: Mapping[str, Any]) -> str:
    """Replace ``{key}`` with ``data[key]``; unknown or None keys stay verbatim."""

    def replace(match: "re.Match[str]") -> str:
        value = data.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(replace, template)


def render_notification(
    notification_type: NotificationType, data: Mapping[str, Any]
) -> Tuple[str, str]:
    """Render (subject, plain-text content) for a registered type."""
    template = NOTIFICATION_TEMPLATES[notification_type]
    subject = interpolate(template.subject, data).strip().replace("\n", " ")
    return subject, interpolate(template.body, data)


_URL_PATTERN = re.compile(r"(https?://[^\s<]+)")
_LIST_ITEM_PATTERN = re.compile(r"^(\d+\.\s|- )")


def text_to_html(text: str) -> Markup:
    """Convert a plain-text notification body to simple HTML.

    Line rules: blank line becomes ``<br/>``; a short line ending in ``:``
    becomes a bold paragraph; ``1. `` / ``- `` lines become indented
    paragraphs; anything else is a normal paragraph. All text is escaped and
    http(s) URLs become links.
    """
    parts = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            parts.append("<br/>")
            continue
        content = _URL_PATTERN.sub(r'<a href="\1" style="color:#2563eb;">\1</a>', str(escape(line)))
        if line.endswith(":") and len(line) < 60:
            parts.append(f'<p style="margin:12px 0 4px;"><strong>{content}</strong></p>')
        elif _LIST_ITEM_PATTERN.match(line):
            parts.append(f'<p style="margin:0 0 2px 16px;">{content}</p>')
        else:
            parts.append(f'<p style="margin:0 0 8px;">{content}</p>')
    return Markup("\n".join(parts))


class EmailHtmlRenderer:
    """Wraps converted notification text in the branded HTML email layout."""

    def __init__(self, template_dir: str = "email_templates", layout_template: str = "notification.html.j2"):
        self.layout_template = layout_template
        self.env = Environment(
            loader=PackageLoader("campus2career.notifications", template_dir),
            autoescape=True,
            undefined=StrictUndefined,
        )

    def render(self, subject: str, text: str) -> str:
        """Render the full HTML document for a message.

        Raises:
            NotificationTemplateError: If the layout is missing or fails to render
        """
        try:
            template = self.env.get_template(self.layout_template)
            return template.render(subject=subject, body=text_to_html(text))
        except TemplateError as e:
            logger.error(
                f"Email layout rendering failed: {e}",
                exc_info=True,
                extra={"event": "notification.template.error", "template": self.layout_template},
            )
            raise NotificationTemplateError(f"Failed to render email layout: {e}") from e
