"""Transition reconciler for student applications and corporate invites.

The external marketplace owns the project-application state machine; the
local record store keeps a secondary application record so students and
partners can query history without the marketplace. Every operation writes
the local record first and treats the marketplace call as best-effort: a
marketplace outage leaves ``transaction_id`` unset (or the external state
behind) for ``RepairJob`` to fix, but never fails the request.

Notification fan-out is submitted to a TaskRunner after the primary result
is known, so slow email delivery never delays the response.
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from campus2career.config.environment import DEFAULT_ROOT_URL
from campus2career.config.models import MarketplaceConfig
from campus2career.domain.models import (
    Application,
    ApplicationStatus,
    Invite,
    InviteStatus,
    NdaSignature,
    NdaStatus,
    NotificationType,
)
from campus2career.logging import get_logger
from campus2career.logging.context import log_context
from campus2career.marketplace import (
    Listing,
    MarketplaceClient,
    MarketplaceError,
    MarketplaceUser,
    TransactionContext,
)
from campus2career.notifications import NotificationDispatcher
from campus2career.notifications.payloads import (
    ApplicationDecisionPayload,
    ApplicationReceivedPayload,
    NewApplicationPayload,
    StudentAcceptedInvitePayload,
)
from campus2career.persistence import (
    ApplicationRepository,
    DataIntegrityError,
    InviteRepository,
    NdaSignatureRepository,
    PersistenceError,
    get_session,
)
from campus2career.tasks import InlineTaskRunner, TaskRunner
from campus2career.utils.ids import new_application_id, new_invite_id
from campus2career.utils.timestamps import utc_now

from .exceptions import AuthorizationError, ConflictError, NotFoundError
from .validation import validate_listing_id, validate_submission

logger = get_logger(__name__, component="reconciler")

SessionScope = Callable[[], AbstractContextManager]

DUPLICATE_APPLICATION_MESSAGE = "You already have a pending application for this project."
NOT_OWNER_MESSAGE = "You do not own this project."
DEFAULT_PROJECT_TITLE = "your project"


@dataclass
class ReconcilerSettings:
    """Marketplace process names and the public site root used in links."""

    process_alias: str = "default-project-application/release-1"
    inquiry_transition: str = "transition/inquire-without-payment"
    accept_transition: str = "transition/accept"
    decline_transition: str = "transition/decline"
    base_url: str = DEFAULT_ROOT_URL

    @classmethod
    def from_config(cls, marketplace_config: MarketplaceConfig, base_url: str) -> "ReconcilerSettings":
        return cls(
            process_alias=marketplace_config.process_alias,
            inquiry_transition=marketplace_config.inquiry_transition,
            accept_transition=marketplace_config.accept_transition,
            decline_transition=marketplace_config.decline_transition,
            base_url=base_url.rstrip("/"),
        )


class ApplicationReconciler:
    """Keeps local application and invite records in step with the marketplace."""

    def __init__(
        self,
        marketplace: MarketplaceClient,
        dispatcher: NotificationDispatcher,
        task_runner: Optional[TaskRunner] = None,
        session_scope: SessionScope = get_session,
        settings: Optional[ReconcilerSettings] = None,
    ):
        self.marketplace = marketplace
        self.dispatcher = dispatcher
        self.task_runner = task_runner or InlineTaskRunner()
        self.session_scope = session_scope
        self.settings = settings or ReconcilerSettings()

    # Applications

    def submit(
        self,
        student_id: str,
        listing_id: Optional[str],
        form_fields: Mapping[str, Any],
        invite_id: Optional[str] = None,
    ) -> Application:
        """Submit a student's application to a listing.

        Order: validate, insert the pending record, open the external
        transaction, link it, mark the originating invite applied, then
        schedule notifications.
        An invite that is not this student's invite for the listing is
        ignored.

        Raises:
            ValidationError: On the first failing form check
            ConflictError: If the student already has a pending application
                for the listing
            PersistenceError: If the local record cannot be written
        """
        form = validate_submission(listing_id, form_fields)
        listing_id = listing_id.strip()

        with log_context(student_id=student_id, listing_id=listing_id):
            if invite_id:
                invite_id = self._applicable_invite(invite_id, student_id, listing_id)
            application = self._create_pending(
                Application.from_form(
                    new_application_id(), student_id, listing_id, form, utc_now(), invite_id=invite_id
                )
            )
            transaction_id = self._start_transaction(application)
            if transaction_id:
                application = self._link_transaction(application, transaction_id)
            if invite_id:
                self._mark_invite_applied(invite_id, student_id, transaction_id)

            logger.info(
                f"Application {application.id} submitted",
                extra={
                    "event": "reconciler.submit.completed",
                    "application_id": application.id,
                    "transaction_id": application.transaction_id,
                },
            )
            self.task_runner.submit("application.submitted.notify", self._notify_submission, application)
            return application

    def _create_pending(self, application: Application) -> Application:
        with self.session_scope() as session:
            repo = ApplicationRepository(session)
            existing = repo.get_pending_by_student_and_listing(application.student_id, application.listing_id)
            if existing is None:
                try:
                    return repo.create(application)
                except DataIntegrityError:
                    # Lost the race against a concurrent submit for the same pair
                    existing = repo.get_pending_by_student_and_listing(
                        application.student_id, application.listing_id
                    )
                    if existing is None:
                        raise

        logger.info(
            f"Duplicate pending application for listing {application.listing_id}",
            extra={"event": "reconciler.submit.duplicate", "application_id": existing.id},
        )
        raise ConflictError(
            DUPLICATE_APPLICATION_MESSAGE,
            entity_id=existing.id,
            current_status=existing.status.value,
        )

    def _start_transaction(self, application: Application) -> Optional[str]:
        try:
            transaction_id = self.marketplace.initiate_transaction(
                self.settings.inquiry_transition,
                application.listing_id,
                application.student_id,
                self.settings.process_alias,
            )
        except MarketplaceError as e:
            logger.warning(
                f"Could not open marketplace transaction for {application.id}; keeping local record: {e}",
                extra={"event": "reconciler.submit.external_failed", "application_id": application.id},
            )
            return None

        try:
            self.marketplace.post_message(transaction_id, application.cover_letter, sender_id=application.student_id)
        except MarketplaceError as e:
            logger.warning(
                f"Could not post cover letter to transaction {transaction_id}: {e}",
                extra={"event": "reconciler.submit.message_failed", "transaction_id": transaction_id},
            )
        return transaction_id

    def _link_transaction(self, application: Application, transaction_id: str) -> Application:
        try:
            with self.session_scope() as session:
                linked = ApplicationRepository(session).update(application.id, transaction_id=transaction_id)
        except (PersistenceError, SQLAlchemyError) as e:
            logger.error(
                f"Failed to link transaction {transaction_id} to application {application.id}: {e}",
                exc_info=True,
                extra={"event": "reconciler.submit.link_failed", "transaction_id": transaction_id},
            )
            return application
        return linked or application

    def _applicable_invite(self, invite_id: str, student_id: str, listing_id: str) -> Optional[str]:
        """Return ``invite_id`` if it is the student's invite for this listing, else None."""
        with self.session_scope() as session:
            invite = InviteRepository(session).get_by_id(invite_id)
        if invite is None or invite.student_id != student_id or invite.listing_id != listing_id:
            logger.warning(
                f"Invite {invite_id} does not apply to this submission; ignoring it",
                extra={"event": "reconciler.invite.not_applicable", "invite_id": invite_id},
            )
            return None
        return invite_id

    def _mark_invite_applied(self, invite_id: str, student_id: str, transaction_id: Optional[str]) -> None:
        try:
            with self.session_scope() as session:
                repo = InviteRepository(session)
                invite = repo.get_by_id(invite_id)
                if invite is None or invite.student_id != student_id:
                    logger.warning(
                        f"Invite {invite_id} not found for student; not marking applied",
                        extra={"event": "reconciler.invite.apply_skipped", "invite_id": invite_id},
                    )
                    return
                if repo.transition_status(
                    invite_id, InviteStatus.PENDING, InviteStatus.APPLIED, transaction_id=transaction_id
                ) is None:
                    logger.info(
                        f"Invite {invite_id} is already {invite.status.value}",
                        extra={"event": "reconciler.invite.apply_skipped", "invite_id": invite_id},
                    )
        except (PersistenceError, SQLAlchemyError) as e:
            logger.error(
                f"Failed to mark invite {invite_id} applied: {e}",
                exc_info=True,
                extra={"event": "reconciler.invite.apply_failed", "invite_id": invite_id},
            )

    def accept(self, application_id: str, caller_id: str, reviewer_notes: Optional[str] = None) -> Application:
        """Accept a pending application as the listing owner.

        Raises:
            NotFoundError: If the application does not exist
            AuthorizationError: If the caller does not own the listing
            ConflictError: If the application is no longer pending
        """
        return self._review(
            application_id, caller_id, reviewer_notes, ApplicationStatus.ACCEPTED, self.settings.accept_transition
        )

    def decline(self, application_id: str, caller_id: str, reviewer_notes: Optional[str] = None) -> Application:
        """Decline a pending application as the listing owner. Raises like ``accept``."""
        return self._review(
            application_id, caller_id, reviewer_notes, ApplicationStatus.DECLINED, self.settings.decline_transition
        )

    def _review(
        self,
        application_id: str,
        caller_id: str,
        reviewer_notes: Optional[str],
        target: ApplicationStatus,
        transition: str,
    ) -> Application:
        with log_context(application_id=application_id, caller_id=caller_id):
            application = self._load_application(application_id)
            self._require_listing_owner(application.listing_id, caller_id)
            if application.status is not ApplicationStatus.PENDING:
                raise _already_reviewed(application)

            with self.session_scope() as session:
                repo = ApplicationRepository(session)
                updated = repo.transition_status(
                    application_id, ApplicationStatus.PENDING, target, reviewer_notes=reviewer_notes
                )
                current = repo.get_by_id(application_id) if updated is None else None
            if updated is None:
                # A concurrent reviewer got there first
                raise _already_reviewed(current or application)

            if updated.transaction_id:
                try:
                    self.marketplace.transition_transaction(updated.transaction_id, transition)
                except MarketplaceError as e:
                    logger.error(
                        f"Marketplace transition {transition} failed for {updated.transaction_id}: {e}",
                        extra={
                            "event": "reconciler.transition.external_failed",
                            "transaction_id": updated.transaction_id,
                            "transition": transition,
                        },
                    )
                else:
                    self._mark_transition_synced(updated)

            logger.info(
                f"Application {application_id} {target.value}",
                extra={"event": f"reconciler.application.{target.value}", "transaction_id": updated.transaction_id},
            )
            self.task_runner.submit(f"application.{target.value}.notify", self._notify_decision, updated)
            return updated

    def get_application(self, application_id: str, caller_id: str) -> Application:
        """Fetch an application visible to its student or the listing owner.

        Raises:
            NotFoundError: If it does not exist
            AuthorizationError: If the caller is neither party
        """
        application = self._load_application(application_id)
        if application.student_id != caller_id:
            self._require_listing_owner(
                application.listing_id, caller_id, message="You do not have access to this application."
            )
        return application

    def list_for_student(self, student_id: str, status: Optional[ApplicationStatus] = None) -> List[Application]:
        with self.session_scope() as session:
            return ApplicationRepository(session).get_by_student_id(student_id, status=status)

    def list_for_listing(
        self, listing_id: str, caller_id: str, status: Optional[ApplicationStatus] = None
    ) -> List[Application]:
        listing_id = validate_listing_id(listing_id)
        self._require_listing_owner(listing_id, caller_id)
        with self.session_scope() as session:
            return ApplicationRepository(session).get_by_listing_id(listing_id, status=status)

    # Invites

    def create_invite(
        self,
        corporate_partner_id: str,
        student_id: str,
        listing_id: str,
        message: Optional[str] = None,
        student_name: Optional[str] = None,
        student_email: Optional[str] = None,
    ) -> Invite:
        """Invite a student to apply to one of the partner's listings.

        Raises:
            ValidationError: If the listing id is malformed
            AuthorizationError: If the partner does not own the listing
            ConflictError: If the student already has a pending invite for it
        """
        listing_id = validate_listing_id(listing_id)
        with log_context(caller_id=corporate_partner_id, listing_id=listing_id):
            self._require_listing_owner(listing_id, corporate_partner_id)
            listing = self._lookup_listing(listing_id)

            with self.session_scope() as session:
                repo = InviteRepository(session)
                existing = repo.get_pending_by_student_and_listing(student_id, listing_id)
                invite = None
                if existing is None:
                    invite = repo.create(
                        Invite(
                            id=new_invite_id(),
                            corporate_partner_id=corporate_partner_id,
                            student_id=student_id,
                            student_name=student_name,
                            student_email=student_email,
                            listing_id=listing_id,
                            project_title=listing.title if listing else None,
                            message=message,
                            sent_at=utc_now(),
                        )
                    )
            if invite is None:
                raise ConflictError(
                    "This student already has a pending invite for this project.",
                    entity_id=existing.id,
                    current_status=existing.status.value,
                    entity_type="invite",
                )

            logger.info(
                f"Invite {invite.id} sent to {student_id}",
                extra={"event": "reconciler.invite.created", "invite_id": invite.id},
            )
            self.task_runner.submit("invite.created.notify", self._notify_invite_received, invite, listing)
            return invite

    def accept_invite(self, invite_id: str, student_id: str) -> Invite:
        return self._respond_to_invite(invite_id, student_id, InviteStatus.ACCEPTED)

    def decline_invite(self, invite_id: str, student_id: str) -> Invite:
        return self._respond_to_invite(invite_id, student_id, InviteStatus.DECLINED)

    def _respond_to_invite(self, invite_id: str, student_id: str, target: InviteStatus) -> Invite:
        with log_context(invite_id=invite_id, caller_id=student_id):
            with self.session_scope() as session:
                repo = InviteRepository(session)
                invite = repo.get_by_id(invite_id)
                updated = None
                if invite is not None and invite.student_id == student_id and invite.status is InviteStatus.PENDING:
                    updated = repo.transition_status(invite_id, InviteStatus.PENDING, target)
                    if updated is None:
                        invite = repo.get_by_id(invite_id)

            if invite is None:
                raise NotFoundError("Invite not found.", entity_id=invite_id)
            if invite.student_id != student_id:
                raise AuthorizationError("This invite is not for you.")
            if updated is None:
                raise ConflictError(
                    f"This invite has already been {invite.status.value}.",
                    entity_id=invite_id,
                    current_status=invite.status.value,
                    entity_type="invite",
                )

            logger.info(
                f"Invite {invite_id} {target.value}",
                extra={"event": f"reconciler.invite.{target.value}"},
            )
            if target is InviteStatus.ACCEPTED:
                self.task_runner.submit("invite.accepted.notify", self._notify_invite_accepted, updated)
            return updated

    def list_invites_for_student(self, student_id: str, status: Optional[InviteStatus] = None) -> List[Invite]:
        with self.session_scope() as session:
            return InviteRepository(session).get_by_student_id(student_id, status=status)

    def list_invites_for_partner(
        self, corporate_partner_id: str, status: Optional[InviteStatus] = None
    ) -> List[Invite]:
        with self.session_scope() as session:
            return InviteRepository(session).get_by_corporate_partner_id(corporate_partner_id, status=status)

    # Externally driven events

    def observe_transition(self, transaction_id: str, transition: str) -> None:
        """Schedule notifications for a transition made outside this service."""
        logger.info(
            f"Observed transition {transition} on {transaction_id}",
            extra={"event": "reconciler.transition.observed", "transaction_id": transaction_id, "transition": transition},
        )
        self.task_runner.submit(
            "transaction.transition.notify", self._notify_observed_transition, transaction_id, transition
        )

    def notify_assessment(self, transaction_id: str, caller_id: str) -> None:
        """Tell the student an assessment was submitted for their transaction.

        Raises:
            AuthorizationError: If the caller is not the transaction's provider
                or the transaction could not be loaded
        """
        try:
            context = self.marketplace.show_transaction(transaction_id)
        except MarketplaceError as e:
            logger.warning(
                f"Could not load transaction {transaction_id} to verify assessor: {e}",
                extra={"event": "reconciler.ownership.unverified", "transaction_id": transaction_id},
            )
            raise AuthorizationError("You are not the provider of this transaction.") from e
        provider_id = (context.provider.id if context.provider else None) or context.transaction.provider_id
        if provider_id != caller_id:
            raise AuthorizationError("You are not the provider of this transaction.")

        self.task_runner.submit("assessment.submitted.notify", self._notify_assessment, context)

    # NDAs

    def sign_nda(self, transaction_id: str, student_id: str) -> NdaSignature:
        """Record the student's signature on the transaction's NDA.

        Raises:
            NotFoundError: If no NDA was requested for the transaction
            AuthorizationError: If the caller is not the applicant
            ConflictError: If it is already signed
        """
        with log_context(transaction_id=transaction_id, caller_id=student_id):
            with self.session_scope() as session:
                signature = NdaSignatureRepository(session).get_by_transaction_id(transaction_id)
                application = ApplicationRepository(session).get_by_transaction_id(transaction_id)
            if signature is None:
                raise NotFoundError("No NDA is required for this project.", entity_id=transaction_id)
            if application is None or application.student_id != student_id:
                raise AuthorizationError("This agreement is not for you.")
            if signature.status is NdaStatus.SIGNED:
                raise ConflictError(
                    "This agreement has already been signed.",
                    entity_id=transaction_id,
                    current_status=signature.status.value,
                    entity_type="transaction",
                )

            with self.session_scope() as session:
                signed = NdaSignatureRepository(session).mark_signed(transaction_id, student_id)
            logger.info("NDA signed", extra={"event": "reconciler.nda.signed"})
            return signed

    # Helpers

    def _mark_transition_synced(self, application: Application) -> None:
        try:
            with self.session_scope() as session:
                ApplicationRepository(session).mark_transition_synced(application.id)
        except (PersistenceError, SQLAlchemyError) as e:
            # The repair pass will find the transaction in step and mark it then
            logger.warning(
                f"Could not record transaction {application.transaction_id} as in step: {e}",
                extra={"event": "reconciler.transition.mark_failed", "transaction_id": application.transaction_id},
            )

    def _load_application(self, application_id: str) -> Application:
        with self.session_scope() as session:
            application = ApplicationRepository(session).get_by_id(application_id)
        if application is None:
            raise NotFoundError("Application not found.", entity_id=application_id)
        return application

    def _require_listing_owner(self, listing_id: str, caller_id: str, message: str = NOT_OWNER_MESSAGE) -> None:
        try:
            owns = self.marketplace.verify_listing_ownership(listing_id, caller_id)
        except MarketplaceError as e:
            logger.warning(
                f"Could not verify ownership of listing {listing_id}: {e}",
                extra={"event": "reconciler.ownership.unverified", "listing_id": listing_id},
            )
            owns = False
        if not owns:
            raise AuthorizationError(message)

    def _lookup_user(self, user_id: str) -> Optional[MarketplaceUser]:
        try:
            return self.marketplace.show_user(user_id)
        except MarketplaceError as e:
            logger.warning(
                f"Could not load user {user_id}: {e}",
                extra={"event": "reconciler.lookup.failed", "resource": "user"},
            )
            return None

    def _lookup_listing(self, listing_id: str) -> Optional[Listing]:
        try:
            return self.marketplace.show_listing(listing_id)
        except MarketplaceError as e:
            logger.warning(
                f"Could not load listing {listing_id}: {e}",
                extra={"event": "reconciler.lookup.failed", "resource": "listing"},
            )
            return None

    def _lookup_transaction(self, transaction_id: str) -> Optional[TransactionContext]:
        try:
            return self.marketplace.show_transaction(transaction_id)
        except MarketplaceError as e:
            logger.warning(
                f"Could not load transaction {transaction_id}: {e}",
                extra={"event": "reconciler.lookup.failed", "resource": "transaction"},
            )
            return None

    def _ensure_nda(self, application: Application, listing: Optional[Listing]) -> None:
        if not application.transaction_id or listing is None or not listing.public_data.get("ndaRequired"):
            return
        try:
            with self.session_scope() as session:
                NdaSignatureRepository(session).upsert(
                    NdaSignature(
                        transaction_id=application.transaction_id,
                        listing_id=application.listing_id,
                        application_id=application.id,
                        title=f"NDA - {listing.title or DEFAULT_PROJECT_TITLE}",
                        nda_text=listing.public_data.get("ndaText"),
                        created_at=utc_now(),
                    )
                )
        except (PersistenceError, SQLAlchemyError) as e:
            logger.error(
                f"Failed to create NDA request for {application.transaction_id}: {e}",
                exc_info=True,
                extra={"event": "reconciler.nda.failed"},
            )
            return
        logger.info(
            f"NDA requested for transaction {application.transaction_id}",
            extra={"event": "reconciler.nda.requested", "transaction_id": application.transaction_id},
        )

    # Fan-out (runs on the task runner)

    def _notify_submission(self, application: Application) -> None:
        base_url = self.settings.base_url
        student = self._lookup_user(application.student_id)
        listing = self._lookup_listing(application.listing_id)
        project_title = (listing.title if listing else None) or DEFAULT_PROJECT_TITLE
        student_name = (student.display_name if student else None) or "Student"
        common = {
            "application_id": application.id,
            "listing_id": application.listing_id,
            "transaction_id": application.transaction_id,
        }

        self.dispatcher.dispatch(
            NotificationType.APPLICATION_RECEIVED,
            application.student_id,
            student.email if student else None,
            ApplicationReceivedPayload(
                student_name=student_name,
                project_title=project_title,
                company_name="the corporate partner",
                timeline="See project details",
                **common,
            ),
        )

        provider: Optional[MarketplaceUser] = None
        provider_id: Optional[str] = None
        if application.transaction_id:
            context = self._lookup_transaction(application.transaction_id)
            if context is not None:
                provider = context.provider
                provider_id = (provider.id if provider else None) or context.transaction.provider_id
        if provider_id is None and listing is not None:
            # No transaction to read the provider from; the listing author is the partner
            provider_id = listing.author_id
        if provider_id is None:
            logger.warning(
                f"No corporate partner resolved for application {application.id}; skipping partner notification",
                extra={"event": "reconciler.notify.no_recipient", "application_id": application.id},
            )
            return

        student_public = student.public_data if student else {}
        self.dispatcher.dispatch(
            NotificationType.NEW_APPLICATION,
            provider_id,
            provider.email if provider else None,
            NewApplicationPayload(
                company_name=(provider.display_name if provider else None) or "Company",
                project_title=project_title,
                student_name=student_name,
                student_university=student_public.get("university") or "Not specified",
                student_major=student_public.get("major") or "Not specified",
                application_url=f"{base_url}/inbox/received",
                **common,
            ),
        )

    def _notify_decision(self, application: Application) -> None:
        accepted = application.status is ApplicationStatus.ACCEPTED
        context = self._lookup_transaction(application.transaction_id) if application.transaction_id else None
        if context is not None:
            if accepted:
                self._ensure_nda(application, context.listing or self._lookup_listing(application.listing_id))
            # Canonical name, so a renamed process transition still maps to the decision
            if self.dispatcher.notify_transaction_state_change(context, "accept" if accepted else "decline"):
                return

        # Reduced-fidelity path: no marketplace context, so no email address
        listing = self._lookup_listing(application.listing_id)
        if accepted and context is None:
            self._ensure_nda(application, listing)
        self.dispatcher.dispatch(
            NotificationType.APPLICATION_ACCEPTED if accepted else NotificationType.APPLICATION_DECLINED,
            application.student_id,
            None,
            ApplicationDecisionPayload(
                student_name="there",
                project_title=(listing.title if listing else None) or DEFAULT_PROJECT_TITLE,
                company_name="the project team",
                browse_projects_url=None if accepted else f"{self.settings.base_url}/s",
                application_id=application.id,
                listing_id=application.listing_id,
                transaction_id=application.transaction_id,
            ),
        )

    def _notify_invite_received(self, invite: Invite, listing: Optional[Listing]) -> None:
        student = self._lookup_user(invite.student_id)
        partner = self._lookup_user(invite.corporate_partner_id)
        company_name = None
        if partner is not None:
            company_name = partner.public_data.get("companyName") or partner.display_name
        self.dispatcher.notify_invite_received(
            student_id=invite.student_id,
            student_email=(student.email if student else None) or invite.student_email,
            student_name=(student.display_name if student else None) or invite.student_name,
            company_name=company_name,
            listing_id=invite.listing_id,
            project_title=invite.project_title or DEFAULT_PROJECT_TITLE,
            project_description=listing.description if listing else None,
            invite_id=invite.id,
        )

    def _notify_invite_accepted(self, invite: Invite) -> None:
        partner = self._lookup_user(invite.corporate_partner_id)
        student = self._lookup_user(invite.student_id)
        company_name = None
        if partner is not None:
            company_name = partner.public_data.get("companyName") or partner.display_name
        self.dispatcher.dispatch(
            NotificationType.STUDENT_ACCEPTED_INVITE,
            invite.corporate_partner_id,
            partner.email if partner else None,
            StudentAcceptedInvitePayload(
                company_name=company_name or "Company",
                student_name=(student.display_name if student else None) or invite.student_name or "A student",
                project_title=invite.project_title or DEFAULT_PROJECT_TITLE,
                project_url=f"{self.settings.base_url}/l/{invite.listing_id}",
                invite_id=invite.id,
                listing_id=invite.listing_id,
            ),
        )

    def _notify_observed_transition(self, transaction_id: str, transition: str) -> None:
        context = self._lookup_transaction(transaction_id)
        if context is None:
            context = self._local_context(transaction_id)
        if context is None:
            logger.warning(
                f"No marketplace or local record for transaction {transaction_id}; cannot notify",
                extra={"event": "reconciler.notify.no_recipient", "transaction_id": transaction_id},
            )
            return
        self.dispatcher.notify_transaction_state_change(context, transition)

    def _local_context(self, transaction_id: str) -> Optional[TransactionContext]:
        """Rebuild a minimal context from the local application record."""
        with self.session_scope() as session:
            application = ApplicationRepository(session).get_by_transaction_id(transaction_id)
        if application is None:
            return None
        listing = self._lookup_listing(application.listing_id)
        return TransactionContext.model_validate(
            {
                "transaction": {
                    "id": transaction_id,
                    "listing_id": application.listing_id,
                    "customer_id": application.student_id,
                    "provider_id": listing.author_id if listing else None,
                },
                "listing": listing or {"id": application.listing_id, "title": DEFAULT_PROJECT_TITLE},
            }
        )

    def _notify_assessment(self, context: TransactionContext) -> None:
        customer = context.customer
        provider = context.provider
        student_id = (customer.id if customer else None) or context.transaction.customer_id
        if not student_id:
            logger.warning(
                f"Transaction {context.transaction.id} has no customer; skipping assessment notification",
                extra={"event": "reconciler.notify.no_recipient", "transaction_id": context.transaction.id},
            )
            return
        self.dispatcher.notify_assessment_submitted(
            student_id=student_id,
            student_email=customer.email if customer else None,
            student_name=customer.display_name if customer else None,
            company_name=provider.display_name if provider else None,
            project_title=(context.listing.title if context.listing else None) or DEFAULT_PROJECT_TITLE,
            transaction_id=context.transaction.id,
        )


def _already_reviewed(application: Application) -> ConflictError:
    status = application.status.value
    return ConflictError(
        f"Application has already been {status}.",
        entity_id=application.id,
        current_status=status,
    )
