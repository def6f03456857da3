"""Repositories for the record store.

Repositories take an open Session, return domain models rather than ORM
models, and wrap every SQLAlchemy failure in a PersistenceError subclass.
Committing is the caller's job (see ``get_session``).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from campus2career.domain.models import (
    Application,
    ApplicationStatus,
    Invite,
    InviteStatus,
    NdaSignature,
    NdaStatus,
    Notification,
)
from campus2career.logging import get_logger
from campus2career.utils.timestamps import format_timestamp, utc_now

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import ApplicationModel, InviteModel, NdaSignatureModel, NotificationModel

logger = get_logger(__name__, component="persistence")


def _column_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _apply_fields(model, fields: Dict[str, Any], allowed: frozenset) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
    for name, value in fields.items():
        setattr(model, name, _column_value(value))


class ApplicationRepository:
    """Application records. Applications are never deleted."""

    UPDATABLE_FIELDS = frozenset({"transaction_id", "reviewer_notes", "invite_id"})

    def __init__(self, session: Session):
        self.session = session

    def create(self, application: Application) -> Application:
        """Insert a new application.

        Raises:
            DataIntegrityError: If the id exists or the student already has a
                pending application for the listing
            PersistenceError: On any other database error
        """
        try:
            model = ApplicationModel.from_domain(application)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(
                f"Integrity violation creating application {application.id}: {e.orig}",
                extra={
                    "event": "persistence.application.integrity_error",
                    "application_id": application.id,
                    "listing_id": application.listing_id,
                },
            )
            raise DataIntegrityError(f"Application violates a uniqueness constraint: {e.orig}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating application {application.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to create application: {e}") from e

    def get_by_id(self, application_id: str) -> Optional[Application]:
        try:
            model = self.session.get(ApplicationModel, application_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving application {application_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve application: {e}") from e

    def update(self, application_id: str, **fields) -> Optional[Application]:
        """Update mutable non-status fields.

        Status changes go through ``transition_status`` so they stay monotonic.

        Returns:
            The updated Application, or None if it does not exist
        """
        try:
            model = self.session.get(ApplicationModel, application_id)
            if model is None:
                return None
            _apply_fields(model, fields, self.UPDATABLE_FIELDS)
            model.updated_at = format_timestamp(utc_now())
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error updating application {application_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update application: {e}") from e

    def transition_status(
        self,
        application_id: str,
        from_status: ApplicationStatus,
        to_status: ApplicationStatus,
        reviewer_notes: Optional[str] = None,
    ) -> Optional[Application]:
        """Move an application between statuses with a single conditional UPDATE.

        The row only changes while it is still in ``from_status``, so two
        concurrent reviewers cannot both win.

        Returns:
            The updated Application, or None if the row was missing or no
            longer in ``from_status``
        """
        now = format_timestamp(utc_now())
        try:
            result = self.session.execute(
                update(ApplicationModel)
                .where(
                    ApplicationModel.id == application_id,
                    ApplicationModel.status == from_status.value,
                )
                .values(
                    status=to_status.value,
                    reviewer_notes=reviewer_notes,
                    reviewed_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            model = self.session.execute(
                select(ApplicationModel)
                .where(ApplicationModel.id == application_id)
                .execution_options(populate_existing=True)
            ).scalar_one()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(
                f"Error transitioning application {application_id} to {to_status.value}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to update application status: {e}") from e

    def get_pending_by_student_and_listing(
        self, student_id: str, listing_id: str
    ) -> Optional[Application]:
        try:
            model = self.session.execute(
                select(ApplicationModel).where(
                    ApplicationModel.student_id == student_id,
                    ApplicationModel.listing_id == listing_id,
                    ApplicationModel.status == ApplicationStatus.PENDING.value,
                )
            ).scalar_one_or_none()
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(
                f"Error checking pending application for {student_id}/{listing_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to retrieve application: {e}") from e

    def get_by_student_and_listing(self, student_id: str, listing_id: str) -> List[Application]:
        """Every application a student made to a listing, newest first."""
        return self._list(
            select(ApplicationModel)
            .where(
                ApplicationModel.student_id == student_id,
                ApplicationModel.listing_id == listing_id,
            )
            .order_by(ApplicationModel.submitted_at.desc())
        )

    def get_by_transaction_id(self, transaction_id: str) -> Optional[Application]:
        try:
            model = self.session.execute(
                select(ApplicationModel)
                .where(ApplicationModel.transaction_id == transaction_id)
                .order_by(ApplicationModel.submitted_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(
                f"Error retrieving application for transaction {transaction_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to retrieve application: {e}") from e

    def get_by_listing_id(
        self, listing_id: str, status: Optional[ApplicationStatus] = None
    ) -> List[Application]:
        stmt = select(ApplicationModel).where(ApplicationModel.listing_id == listing_id)
        if status is not None:
            stmt = stmt.where(ApplicationModel.status == status.value)
        return self._list(stmt.order_by(ApplicationModel.submitted_at.desc()))

    def get_by_student_id(
        self, student_id: str, status: Optional[ApplicationStatus] = None
    ) -> List[Application]:
        stmt = select(ApplicationModel).where(ApplicationModel.student_id == student_id)
        if status is not None:
            stmt = stmt.where(ApplicationModel.status == status.value)
        return self._list(stmt.order_by(ApplicationModel.submitted_at.desc()))

    def get_unlinked_pending(self, limit: int = 100) -> List[Application]:
        """Pending applications whose external transaction was never created, oldest first."""
        return self._list(
            select(ApplicationModel)
            .where(
                ApplicationModel.status == ApplicationStatus.PENDING.value,
                ApplicationModel.transaction_id.is_(None),
            )
            .order_by(ApplicationModel.submitted_at.asc())
            .limit(limit)
        )

    def get_reviewed_with_transaction(self, limit: int = 100) -> List[Application]:
        """Accepted or declined applications whose review transition is not yet
        known to have reached the external transaction, oldest review first."""
        return self._list(
            select(ApplicationModel)
            .where(
                ApplicationModel.status.in_(
                    [ApplicationStatus.ACCEPTED.value, ApplicationStatus.DECLINED.value]
                ),
                ApplicationModel.transaction_id.is_not(None),
                ApplicationModel.transition_synced_at.is_(None),
            )
            .order_by(ApplicationModel.reviewed_at.asc(), ApplicationModel.id.asc())
            .limit(limit)
        )

    def mark_transition_synced(self, application_id: str) -> bool:
        """Record that the external transaction reflects the review.

        Returns:
            True if the application exists
        """
        try:
            result = self.session.execute(
                update(ApplicationModel)
                .where(ApplicationModel.id == application_id)
                .values(transition_synced_at=format_timestamp(utc_now()))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Error marking application {application_id} synced: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update application: {e}") from e

    def _list(self, stmt) -> List[Application]:
        try:
            return [model.to_domain() for model in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing applications: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list applications: {e}") from e


class InviteRepository:
    """Invite records created by corporate partners."""

    UPDATABLE_FIELDS = frozenset({"transaction_id", "project_title", "message"})

    def __init__(self, session: Session):
        self.session = session

    def create(self, invite: Invite) -> Invite:
        try:
            model = InviteModel.from_domain(invite)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            self.session.rollback()
            raise DataIntegrityError(f"Invite {invite.id} already exists") from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating invite {invite.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to create invite: {e}") from e

    def get_by_id(self, invite_id: str) -> Optional[Invite]:
        try:
            model = self.session.get(InviteModel, invite_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving invite {invite_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve invite: {e}") from e

    def update(self, invite_id: str, **fields) -> Optional[Invite]:
        try:
            model = self.session.get(InviteModel, invite_id)
            if model is None:
                return None
            _apply_fields(model, fields, self.UPDATABLE_FIELDS)
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error updating invite {invite_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update invite: {e}") from e

    def transition_status(
        self,
        invite_id: str,
        from_status: InviteStatus,
        to_status: InviteStatus,
        transaction_id: Optional[str] = None,
    ) -> Optional[Invite]:
        """Conditional status change; None when the invite is missing or not in ``from_status``."""
        values: Dict[str, Any] = {
            "status": to_status.value,
            "responded_at": format_timestamp(utc_now()),
        }
        if transaction_id is not None:
            values["transaction_id"] = transaction_id
        try:
            result = self.session.execute(
                update(InviteModel)
                .where(InviteModel.id == invite_id, InviteModel.status == from_status.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            model = self.session.execute(
                select(InviteModel)
                .where(InviteModel.id == invite_id)
                .execution_options(populate_existing=True)
            ).scalar_one()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error transitioning invite {invite_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update invite status: {e}") from e

    def get_by_student_id(
        self, student_id: str, status: Optional[InviteStatus] = None
    ) -> List[Invite]:
        stmt = select(InviteModel).where(InviteModel.student_id == student_id)
        if status is not None:
            stmt = stmt.where(InviteModel.status == status.value)
        return self._list(stmt.order_by(InviteModel.sent_at.desc()))

    def get_by_corporate_partner_id(
        self, corporate_partner_id: str, status: Optional[InviteStatus] = None
    ) -> List[Invite]:
        stmt = select(InviteModel).where(InviteModel.corporate_partner_id == corporate_partner_id)
        if status is not None:
            stmt = stmt.where(InviteModel.status == status.value)
        return self._list(stmt.order_by(InviteModel.sent_at.desc()))

    def get_pending_by_student_and_listing(
        self, student_id: str, listing_id: str
    ) -> Optional[Invite]:
        invites = self._list(
            select(InviteModel)
            .where(
                InviteModel.student_id == student_id,
                InviteModel.listing_id == listing_id,
                InviteModel.status == InviteStatus.PENDING.value,
            )
            .limit(1)
        )
        return invites[0] if invites else None

    def _list(self, stmt) -> List[Invite]:
        try:
            return [model.to_domain() for model in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing invites: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list invites: {e}") from e


class NotificationRepository:
    """Notification records; mutated only through the read-state operations."""

    DEFAULT_LIMIT = 20

    def __init__(self, session: Session):
        self.session = session

    def create(self, notification: Notification) -> Notification:
        try:
            model = NotificationModel.from_domain(notification)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            self.session.rollback()
            raise DataIntegrityError(f"Notification {notification.id} already exists") from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating notification {notification.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to create notification: {e}") from e

    def get_by_id(self, notification_id: str) -> Optional[Notification]:
        try:
            model = self.session.get(NotificationModel, notification_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving notification {notification_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve notification: {e}") from e

    def get_by_user_id(
        self, user_id: str, limit: int = DEFAULT_LIMIT, unread_only: bool = False
    ) -> List[Notification]:
        """Newest-first notifications for a recipient."""
        stmt = select(NotificationModel).where(NotificationModel.recipient_id == user_id)
        if unread_only:
            stmt = stmt.where(NotificationModel.is_read.is_(False))
        stmt = stmt.order_by(
            NotificationModel.created_at.desc(), NotificationModel.id.desc()
        ).limit(limit)
        try:
            return [model.to_domain() for model in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing notifications for {user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list notifications: {e}") from e

    def mark_read(self, notification_id: str, user_id: str) -> bool:
        """Mark one notification read if it belongs to ``user_id``.

        Returns:
            True if a row changed; False for unknown ids, other users'
            notifications, or notifications already read
        """
        try:
            result = self.session.execute(
                update(NotificationModel)
                .where(
                    NotificationModel.id == notification_id,
                    NotificationModel.recipient_id == user_id,
                    NotificationModel.is_read.is_(False),
                )
                .values(is_read=True, read_at=format_timestamp(utc_now()))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Error marking notification {notification_id} read: {e}", exc_info=True)
            raise PersistenceError(f"Failed to mark notification read: {e}") from e

    def mark_all_read(self, user_id: str) -> int:
        """Mark every unread notification of a recipient read; returns rows changed."""
        try:
            result = self.session.execute(
                update(NotificationModel)
                .where(
                    NotificationModel.recipient_id == user_id,
                    NotificationModel.is_read.is_(False),
                )
                .values(is_read=True, read_at=format_timestamp(utc_now()))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Error marking notifications read for {user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to mark notifications read: {e}") from e

    def get_unread_count(self, user_id: str) -> int:
        try:
            return self.session.execute(
                select(func.count())
                .select_from(NotificationModel)
                .where(
                    NotificationModel.recipient_id == user_id,
                    NotificationModel.is_read.is_(False),
                )
            ).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Error counting unread notifications for {user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count notifications: {e}") from e

    def delete(self, notification_id: str, user_id: str) -> bool:
        """Delete a recipient's own notification. Returns False if nothing matched."""
        try:
            model = self.session.get(NotificationModel, notification_id)
            if model is None or model.recipient_id != user_id:
                return False
            self.session.delete(model)
            self.session.flush()
            return True
        except SQLAlchemyError as e:
            logger.error(f"Error deleting notification {notification_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete notification: {e}") from e


class NdaSignatureRepository:
    """NDA signature requests, one per external transaction."""

    def __init__(self, session: Session):
        self.session = session

    def upsert(self, signature: NdaSignature) -> NdaSignature:
        """Create the signature request, or return the existing one unchanged."""
        try:
            existing = self.session.get(NdaSignatureModel, signature.transaction_id)
            if existing is not None:
                return existing.to_domain()
            model = NdaSignatureModel.from_domain(signature)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(
                f"Error saving NDA signature for transaction {signature.transaction_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to save NDA signature: {e}") from e

    def get_by_transaction_id(self, transaction_id: str) -> Optional[NdaSignature]:
        try:
            model = self.session.get(NdaSignatureModel, transaction_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving NDA signature {transaction_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve NDA signature: {e}") from e

    def get_by_listing_id(self, listing_id: str) -> List[NdaSignature]:
        try:
            models = self.session.execute(
                select(NdaSignatureModel)
                .where(NdaSignatureModel.listing_id == listing_id)
                .order_by(NdaSignatureModel.created_at.desc())
            ).scalars().all()
            return [model.to_domain() for model in models]
        except SQLAlchemyError as e:
            logger.error(f"Error listing NDA signatures for {listing_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list NDA signatures: {e}") from e

    def mark_signed(self, transaction_id: str, signer_id: str) -> NdaSignature:
        """Record a signer and complete the request.

        Raises:
            RecordNotFoundError: If no signature request exists for the transaction
        """
        try:
            model = self.session.get(NdaSignatureModel, transaction_id)
            if model is None:
                raise RecordNotFoundError(f"No NDA signature request for transaction {transaction_id}")
            now = format_timestamp(utc_now())
            # Reassign so the JSON column registers the change
            model.signers = [*(model.signers or []), {"id": signer_id, "signedAt": now}]
            model.status = NdaStatus.SIGNED.value
            model.completed_at = now
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error signing NDA for transaction {transaction_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to sign NDA: {e}") from e
