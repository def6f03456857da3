"""Notification dispatcher: template rendering, persistence and email fan-out.

``dispatch`` persists an in-app notification for every known type and then
tries email on a best-effort basis. Persistence is the durability guarantee;
an email failure is logged and reported in the result but never turns a
persisted notification into a failed dispatch.
"""

from contextlib import AbstractContextManager
from typing import Any, Callable, List, Mapping, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from campus2career.config.environment import DEFAULT_ROOT_URL
from campus2career.domain.models import Notification, NotificationType
from campus2career.logging import get_logger
from campus2career.logging.context import log_context
from campus2career.marketplace.models import TransactionContext
from campus2career.persistence import NotificationRepository, PersistenceError, get_session
from campus2career.utils.ids import new_notification_id
from campus2career.utils.timestamps import utc_now

from .models import DispatchResult
from .payloads import (
    ApplicationDecisionPayload,
    ApplicationReceivedPayload,
    AssessmentReceivedPayload,
    InviteReceivedPayload,
    NewApplicationPayload,
    NotificationPayload,
    ProjectCompletedPayload,
    to_template_data,
)
from .templates import render_notification, resolve_type
from .transport import MailTransport

logger = get_logger(__name__, component="notification")

SessionScope = Callable[[], AbstractContextManager]
DispatchData = Union[NotificationPayload, Mapping[str, Any], None]

DEFAULT_STUDENT_NAME = "Student"
DEFAULT_COMPANY_NAME = "Company"
DESCRIPTION_PREVIEW_LENGTH = 200

# Transition names without the "transition/" prefix
_NEW_APPLICATION_TRANSITIONS = {"inquire-without-payment", "request-project-application"}
_COMPLETED_TRANSITIONS = {"mark-completed", "complete"}


def _short_transition(transition: str) -> str:
    return transition.split("/", 1)[1] if transition.startswith("transition/") else transition


class NotificationDispatcher:
    """Creates notifications and forwards them to the mail transport.

    Attributes:
        base_url: Public site root used to build links in notification bodies
    """

    def __init__(
        self,
        mail_transport: Optional[MailTransport] = None,
        session_scope: SessionScope = get_session,
        base_url: str = DEFAULT_ROOT_URL,
        inquiry_transition: str = "transition/inquire-without-payment",
        accept_transition: str = "transition/accept",
        decline_transition: str = "transition/decline",
    ):
        self.mail_transport = mail_transport
        self.session_scope = session_scope
        self.base_url = base_url.rstrip("/")
        # Configured process names are recognized alongside the defaults
        self.new_application_transitions = _NEW_APPLICATION_TRANSITIONS | {_short_transition(inquiry_transition)}
        self.accept_transitions = {"accept", _short_transition(accept_transition)}
        self.decline_transitions = {"decline", _short_transition(decline_transition)}

    def dispatch(
        self,
        notification_type: Union[NotificationType, str],
        recipient_id: str,
        recipient_email: Optional[str],
        data: DispatchData = None,
    ) -> DispatchResult:
        """Render, persist and (optionally) email one notification. Never raises.

        Args:
            notification_type: A NotificationType or its string value
            recipient_id: User the notification belongs to
            recipient_email: Email address, or None for in-app only delivery
            data: Template data as a payload model or mapping

        Returns:
            DispatchResult with success=True whenever the notification was
            persisted; success=False for unknown types and storage failures
        """
        resolved = resolve_type(notification_type)
        if resolved is None:
            logger.error(
                f"Unknown notification type: {notification_type}",
                extra={"event": "notification.dispatch.unknown_type", "notification_type": str(notification_type)},
            )
            return DispatchResult(success=False, error="Unknown notification type")

        with log_context(notification_type=resolved.value, recipient_id=recipient_id):
            try:
                template_data = to_template_data(data)
                subject, content = render_notification(resolved, template_data)
                notification = Notification(
                    id=new_notification_id(),
                    recipient_id=recipient_id,
                    type=resolved,
                    subject=subject,
                    content=content,
                    data=template_data,
                    created_at=utc_now(),
                )
                with self.session_scope() as session:
                    NotificationRepository(session).create(notification)
            except (PersistenceError, SQLAlchemyError, ValueError) as e:
                # ValueError covers pydantic validation of the record itself
                logger.error(
                    f"Failed to store {resolved.value} notification: {e}",
                    exc_info=True,
                    extra={"event": "notification.dispatch.failed"},
                )
                return DispatchResult(success=False, error=str(e))

            logger.info(
                f"Stored {resolved.value} notification {notification.id}",
                extra={"event": "notification.dispatch.persisted", "notification_id": notification.id},
            )
            email_status = self._send_email(resolved, recipient_email, subject, content)
            return DispatchResult(success=True, notification_id=notification.id, email_status=email_status)

    def _send_email(
        self,
        notification_type: NotificationType,
        recipient_email: Optional[str],
        subject: str,
        content: str,
    ) -> str:
        if not recipient_email:
            logger.info(
                f"No email address for {notification_type.value}; in-app only",
                extra={"event": "notification.email.skipped", "reason": "no_address"},
            )
            return "in_app_only"
        if self.mail_transport is None:
            return "in_app_only"

        try:
            result = self.mail_transport.send_email(
                to=recipient_email, subject=subject, text=content, tags=[notification_type.value]
            )
        except Exception as e:
            # Transport contract is "never raises"; a broken transport must still not fail dispatch
            logger.error(
                f"Email transport raised for {notification_type.value}: {e}",
                exc_info=True,
                extra={"event": "notification.email.failed"},
            )
            return "failed"

        if not result.success:
            logger.warning(
                f"Email not sent for {notification_type.value}: {result.error}",
                extra={"event": "notification.email.failed", "error": result.error},
            )
            return "failed"
        return "sent" if result.mode == "smtp" else result.mode

    # Read-state operations

    def get_by_user(self, user_id: str, limit: int = 20, unread_only: bool = False) -> List[Notification]:
        with self.session_scope() as session:
            return NotificationRepository(session).get_by_user_id(user_id, limit=limit, unread_only=unread_only)

    def mark_read(self, user_id: str, notification_id: str) -> bool:
        """Mark one of the user's notifications read; other users' ids are ignored."""
        with self.session_scope() as session:
            changed = NotificationRepository(session).mark_read(notification_id, user_id)
        if changed:
            logger.debug(
                f"Notification {notification_id} marked read",
                extra={"event": "notification.read", "notification_id": notification_id},
            )
        return changed

    def mark_all_read(self, user_id: str) -> int:
        with self.session_scope() as session:
            count = NotificationRepository(session).mark_all_read(user_id)
        logger.info(
            f"Marked {count} notifications read for {user_id}",
            extra={"event": "notification.read_all", "count": count},
        )
        return count

    def unread_count(self, user_id: str) -> int:
        with self.session_scope() as session:
            return NotificationRepository(session).get_unread_count(user_id)

    def delete(self, user_id: str, notification_id: str) -> bool:
        with self.session_scope() as session:
            return NotificationRepository(session).delete(notification_id, user_id)

    # Lifecycle fan-out helpers

    def notify_transaction_state_change(
        self, context: TransactionContext, transition: str
    ) -> List[DispatchResult]:
        """Notify the parties of a transaction about a transition.

        Unrecognized transitions produce no notifications.
        """
        transaction = context.transaction
        customer = context.customer
        provider = context.provider
        listing = context.listing

        student_id = (customer.id if customer else None) or transaction.customer_id
        company_id = (provider.id if provider else None) or transaction.provider_id
        student_email = customer.email if customer else None
        company_email = provider.email if provider else None
        student_public = customer.public_data if customer else {}
        student_name = (customer.display_name if customer else None) or DEFAULT_STUDENT_NAME
        company_name = (provider.display_name if provider else None) or DEFAULT_COMPANY_NAME
        project_title = listing.title if listing else None
        common = {
            "transaction_id": transaction.id,
            "listing_id": (listing.id if listing else None) or transaction.listing_id,
        }

        name = _short_transition(transition)
        results: List[DispatchResult] = []

        if name in self.new_application_transitions:
            if company_id:
                results.append(
                    self.dispatch(
                        NotificationType.NEW_APPLICATION,
                        company_id,
                        company_email,
                        NewApplicationPayload(
                            company_name=company_name,
                            project_title=project_title,
                            student_name=student_name,
                            student_university=student_public.get("university") or "Not specified",
                            student_major=student_public.get("major") or "Not specified",
                            application_url=f"{self.base_url}/inbox/received",
                            **common,
                        ),
                    )
                )
            if student_id:
                results.append(
                    self.dispatch(
                        NotificationType.APPLICATION_RECEIVED,
                        student_id,
                        student_email,
                        ApplicationReceivedPayload(
                            student_name=student_name,
                            project_title=project_title,
                            company_name=company_name,
                            timeline="See project details",
                            **common,
                        ),
                    )
                )
        elif name in self.accept_transitions or name in self.decline_transitions:
            if student_id:
                accepted = name in self.accept_transitions
                results.append(
                    self.dispatch(
                        NotificationType.APPLICATION_ACCEPTED if accepted else NotificationType.APPLICATION_DECLINED,
                        student_id,
                        student_email,
                        ApplicationDecisionPayload(
                            student_name=student_name,
                            project_title=project_title,
                            company_name=company_name,
                            browse_projects_url=None if accepted else f"{self.base_url}/s",
                            **common,
                        ),
                    )
                )
        elif name in _COMPLETED_TRANSITIONS:
            if student_id:
                results.append(
                    self.dispatch(
                        NotificationType.PROJECT_COMPLETED,
                        student_id,
                        student_email,
                        ProjectCompletedPayload(
                            student_name=student_name,
                            project_title=project_title,
                            company_name=company_name,
                            **common,
                        ),
                    )
                )
        else:
            logger.debug(
                f"No notifications for transition {transition}",
                extra={"event": "notification.transition.ignored", "transition": transition},
            )

        return results

    def notify_invite_received(
        self,
        student_id: str,
        student_email: Optional[str],
        student_name: Optional[str],
        company_name: Optional[str],
        listing_id: str,
        project_title: Optional[str],
        project_description: Optional[str] = None,
        invite_id: Optional[str] = None,
    ) -> DispatchResult:
        description = project_description or ""
        if len(description) > DESCRIPTION_PREVIEW_LENGTH:
            description = description[:DESCRIPTION_PREVIEW_LENGTH] + "..."
        return self.dispatch(
            NotificationType.INVITE_RECEIVED,
            student_id,
            student_email,
            InviteReceivedPayload(
                student_name=student_name or DEFAULT_STUDENT_NAME,
                company_name=company_name or DEFAULT_COMPANY_NAME,
                project_title=project_title,
                project_description=description,
                invitation_url=f"{self.base_url}/l/{listing_id}",
                listing_id=listing_id,
                invite_id=invite_id,
            ),
        )

    def notify_assessment_submitted(
        self,
        student_id: str,
        student_email: Optional[str],
        student_name: Optional[str],
        company_name: Optional[str],
        project_title: Optional[str],
        transaction_id: Optional[str] = None,
    ) -> DispatchResult:
        return self.dispatch(
            NotificationType.ASSESSMENT_RECEIVED,
            student_id,
            student_email,
            AssessmentReceivedPayload(
                student_name=student_name or DEFAULT_STUDENT_NAME,
                company_name=company_name or DEFAULT_COMPANY_NAME,
                project_title=project_title,
                assessment_url=f"{self.base_url}/profile",
                transaction_id=transaction_id,
            ),
        )

