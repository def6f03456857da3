"""Integration tests for the application lifecycle across services.

Wires the real container (file-backed SQLite, console mail transport,
inline task runner) against the fake marketplace and drives a student
application from submission through repair and review.
"""

from datetime import timedelta

import pytest

from campus2career.config.environment import EnvironmentConfig
from campus2career.config.models import AppConfig
from campus2career.container import build_services
from campus2career.domain.models import ApplicationStatus, InviteStatus, NdaStatus, NotificationType
from campus2career.marketplace import MarketplaceTimeoutError
from campus2career.persistence import (
    ApplicationRepository,
    InviteRepository,
    NdaSignatureRepository,
    close_database,
    get_session,
    init_database,
)
from campus2career.reconciler import RepairJob
from campus2career.tasks import InlineTaskRunner
from tests.helpers import (
    LISTING_ID,
    NDA_LISTING_ID,
    OTHER_STUDENT_ID,
    PARTNER_ID,
    STUDENT_ID,
    FakeMarketplace,
    valid_form,
)


@pytest.fixture
def test_database(tmp_path):
    """Setup test database with file storage."""
    db_url = f"sqlite:///{tmp_path / 'campus2career.db'}"
    init_database(db_url)
    yield db_url
    close_database()


@pytest.fixture
def marketplace():
    return FakeMarketplace()


@pytest.fixture
def services(test_database, marketplace):
    container = build_services(
        AppConfig(),
        EnvironmentConfig(),
        task_runner=InlineTaskRunner(),
        marketplace=marketplace,
    )
    yield container
    container.close()


def notification_types(services, user_id):
    return [n.type for n in services.dispatcher.get_by_user(user_id, limit=100)]


class TestSubmitRepairReview:
    def test_outage_then_repair_then_accept(self, services, marketplace):
        """Submit during an outage → repair links it → accept reaches the marketplace."""
        marketplace.failures["initiate_transaction"] = MarketplaceTimeoutError(
            "timed out", url="/transactions/initiate"
        )

        application = services.reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        assert application.transaction_id is None
        assert notification_types(services, STUDENT_ID) == [NotificationType.APPLICATION_RECEIVED]
        assert notification_types(services, PARTNER_ID) == [NotificationType.NEW_APPLICATION]

        # Marketplace back up; repair pass links the stranded application
        del marketplace.failures["initiate_transaction"]
        repair = RepairJob(marketplace, settings=services.repair_job.settings, grace_period=timedelta(0))
        summary = repair.run()

        assert summary.linked == 1
        with get_session() as session:
            linked = ApplicationRepository(session).get_by_id(application.id)
        assert linked.transaction_id in marketplace.transactions
        assert marketplace.messages[0]["text"] == linked.cover_letter

        accepted = services.reconciler.accept(application.id, PARTNER_ID, reviewer_notes="Welcome aboard")

        assert accepted.status is ApplicationStatus.ACCEPTED
        assert marketplace.transitions == [
            {"transaction_id": linked.transaction_id, "transition": "transition/accept"}
        ]
        assert NotificationType.APPLICATION_ACCEPTED in notification_types(services, STUDENT_ID)

        # Nothing left for a second pass to do
        second = repair.run()
        assert second.linked == 0
        assert second.resynced == 0

    def test_emails_go_through_console_transport(self, services):
        services.reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        log = services.mail_transport.get_email_log()

        recipients = {entry["to"] for entry in log}
        assert recipients == {"jordan.lee@example.edu", "talent@acme.example.com"}
        assert all(entry["mode"] == "console" and entry["success"] for entry in log)

    def test_resubmit_allowed_after_decline(self, services):
        first = services.reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        services.reconciler.decline(first.id, PARTNER_ID)

        second = services.reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        assert second.id != first.id
        with get_session() as session:
            history = ApplicationRepository(session).get_by_student_and_listing(STUDENT_ID, LISTING_ID)
        assert {a.status for a in history} == {ApplicationStatus.DECLINED, ApplicationStatus.PENDING}


class TestInviteToApplication:
    def test_invite_marked_applied_with_transaction(self, services):
        invite = services.reconciler.create_invite(PARTNER_ID, OTHER_STUDENT_ID, LISTING_ID, message="Interested?")

        application = services.reconciler.submit(
            OTHER_STUDENT_ID, LISTING_ID, valid_form(), invite_id=invite.id
        )

        with get_session() as session:
            stored = InviteRepository(session).get_by_id(invite.id)
        assert stored.status is InviteStatus.APPLIED
        assert stored.transaction_id == application.transaction_id
        assert NotificationType.INVITE_RECEIVED in notification_types(services, OTHER_STUDENT_ID)


class TestNdaFlow:
    def test_accept_requests_nda_and_student_signs(self, services):
        application = services.reconciler.submit(STUDENT_ID, NDA_LISTING_ID, valid_form())
        services.reconciler.accept(application.id, PARTNER_ID)

        with get_session() as session:
            requested = NdaSignatureRepository(session).get_by_transaction_id(application.transaction_id)
        assert requested.status is NdaStatus.PENDING
        assert requested.nda_text == "The student agrees to keep all project materials confidential."

        signed = services.reconciler.sign_nda(application.transaction_id, STUDENT_ID)

        assert signed.status is NdaStatus.SIGNED
        assert signed.signers[0]["id"] == STUDENT_ID
