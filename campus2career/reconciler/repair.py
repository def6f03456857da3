"""Repair pass closing gaps left by marketplace outages.

Submissions and reviews write the local record first and treat the
marketplace as best-effort, so an outage can leave:

1. pending applications with no external transaction, and
2. reviewed applications whose transaction never received the
   accept/decline transition.

``RepairJob.run`` finds both and retries the external half. Each item is
handled independently; one failure is logged and counted, never aborting
the pass.
"""

import time
from contextlib import AbstractContextManager
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from campus2career.domain.models import Application, ApplicationStatus
from campus2career.logging import get_logger
from campus2career.logging.context import log_context
from campus2career.marketplace import MarketplaceClient, MarketplaceError
from campus2career.persistence import (
    ApplicationRepository,
    InviteRepository,
    PersistenceError,
    get_session,
)
from campus2career.utils.timestamps import utc_now

from .service import ReconcilerSettings

logger = get_logger(__name__, component="repair")

SessionScope = Callable[[], AbstractContextManager]

# Submissions younger than this may still be linking their transaction
DEFAULT_GRACE_PERIOD = timedelta(minutes=5)


@dataclass
class RepairSummary:
    examined: int = 0
    linked: int = 0
    resynced: int = 0
    skipped: int = 0
    failed: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


class RepairJob:
    """Re-links unlinked applications and re-issues missed transitions."""

    def __init__(
        self,
        marketplace: MarketplaceClient,
        settings: Optional[ReconcilerSettings] = None,
        session_scope: SessionScope = get_session,
        batch_size: int = 100,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
    ):
        self.marketplace = marketplace
        self.settings = settings or ReconcilerSettings()
        self.session_scope = session_scope
        self.batch_size = batch_size
        self.grace_period = grace_period

    def run(self) -> RepairSummary:
        """Execute one repair pass. Database errors loading the batches propagate."""
        started = time.monotonic()
        summary = RepairSummary()
        logger.info("Repair pass starting", extra={"event": "repair.run.started", "batch_size": self.batch_size})

        with self.session_scope() as session:
            repo = ApplicationRepository(session)
            unlinked = repo.get_unlinked_pending(limit=self.batch_size)
            reviewed = repo.get_reviewed_with_transaction(limit=self.batch_size)

        cutoff = utc_now() - self.grace_period
        for application in unlinked:
            summary.examined += 1
            if application.submitted_at > cutoff:
                summary.skipped += 1
                continue
            with log_context(application_id=application.id):
                if self._link(application):
                    summary.linked += 1
                else:
                    summary.failed += 1

        for application in reviewed:
            summary.examined += 1
            with log_context(application_id=application.id, transaction_id=application.transaction_id):
                outcome = self._resync(application)
                if outcome is not None and not self._mark_synced(application):
                    outcome = None
            if outcome is None:
                summary.failed += 1
            elif outcome:
                summary.resynced += 1
            else:
                summary.skipped += 1

        summary.duration_seconds = round(time.monotonic() - started, 3)
        logger.info(
            f"Repair pass complete: {summary.linked} linked, {summary.resynced} resynced, "
            f"{summary.failed} failed",
            extra={"event": "repair.run.completed", **summary.to_dict()},
        )
        return summary

    def _link(self, application: Application) -> bool:
        try:
            transaction_id = self.marketplace.initiate_transaction(
                self.settings.inquiry_transition,
                application.listing_id,
                application.student_id,
                self.settings.process_alias,
            )
        except MarketplaceError as e:
            logger.warning(
                f"Still cannot open transaction for {application.id}: {e}",
                extra={"event": "repair.link.failed"},
            )
            return False

        try:
            self.marketplace.post_message(transaction_id, application.cover_letter, sender_id=application.student_id)
        except MarketplaceError as e:
            logger.warning(
                f"Could not post cover letter to {transaction_id}: {e}",
                extra={"event": "repair.link.message_failed", "transaction_id": transaction_id},
            )

        try:
            with self.session_scope() as session:
                ApplicationRepository(session).update(application.id, transaction_id=transaction_id)
                if application.invite_id:
                    InviteRepository(session).update(application.invite_id, transaction_id=transaction_id)
        except (PersistenceError, SQLAlchemyError) as e:
            logger.error(
                f"Opened transaction {transaction_id} but could not link it to {application.id}: {e}",
                exc_info=True,
                extra={"event": "repair.link.failed", "transaction_id": transaction_id},
            )
            return False

        logger.info(
            f"Linked application {application.id} to transaction {transaction_id}",
            extra={"event": "repair.link.succeeded", "transaction_id": transaction_id},
        )
        return True

    def _mark_synced(self, application: Application) -> bool:
        try:
            with self.session_scope() as session:
                ApplicationRepository(session).mark_transition_synced(application.id)
        except (PersistenceError, SQLAlchemyError) as e:
            logger.error(
                f"Could not record transaction {application.transaction_id} as in step: {e}",
                exc_info=True,
                extra={"event": "repair.resync.mark_failed"},
            )
            return False
        return True

    def _resync(self, application: Application) -> Optional[bool]:
        """Re-issue the review transition if the marketplace still shows the inquiry.

        Returns:
            True if re-issued, False if already in step, None on failure
        """
        expected = (
            self.settings.accept_transition
            if application.status is ApplicationStatus.ACCEPTED
            else self.settings.decline_transition
        )
        try:
            context = self.marketplace.show_transaction(application.transaction_id, include=())
            last_transition = context.transaction.last_transition
            # Only the pre-review state is behind; anything later already moved on
            if last_transition not in (None, self.settings.inquiry_transition):
                return False
            self.marketplace.transition_transaction(application.transaction_id, expected)
        except MarketplaceError as e:
            logger.warning(
                f"Could not resync transaction {application.transaction_id}: {e}",
                extra={"event": "repair.resync.failed"},
            )
            return None

        logger.info(
            f"Re-issued {expected} for transaction {application.transaction_id}",
            extra={"event": "repair.resync.succeeded", "transition": expected},
        )
        return True
