"""Unit tests for the transition reconciler.

Covers:
- Submission validation order and messages
- One pending application per student and listing
- Submissions surviving a marketplace outage
- Accept/decline ownership, monotonic status and fan-out
- Invites, NDA requests, observed transitions and assessments
"""

from unittest.mock import Mock, patch

import pytest

from campus2career.domain.models import (
    ApplicationStatus,
    InviteStatus,
    NdaStatus,
    NotificationType,
)
from campus2career.marketplace import MarketplaceHTTPError, MarketplaceTimeoutError
from campus2career.notifications import NotificationDispatcher
from campus2career.persistence import (
    ApplicationRepository,
    InviteRepository,
    NdaSignatureRepository,
    NotificationRepository,
    close_database,
    get_session,
    init_database,
)
from campus2career.reconciler import (
    ApplicationReconciler,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ReconcilerSettings,
    ValidationError,
    validate_submission,
)
from campus2career.tasks import InlineTaskRunner
from tests.helpers import (
    LISTING_ID,
    NDA_LISTING_ID,
    OTHER_LISTING_ID,
    OTHER_PARTNER_ID,
    OTHER_STUDENT_ID,
    PARTNER_ID,
    STUDENT_ID,
    FakeMarketplace,
    valid_form,
)

BASE_URL = "https://street2ivy.test"


@pytest.fixture(autouse=True)
def database():
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture
def marketplace():
    return FakeMarketplace()


@pytest.fixture
def dispatcher():
    return Mock(wraps=NotificationDispatcher(mail_transport=None, base_url=BASE_URL))


@pytest.fixture
def reconciler(marketplace, dispatcher):
    return ApplicationReconciler(
        marketplace,
        dispatcher,
        task_runner=InlineTaskRunner(),
        settings=ReconcilerSettings(base_url=BASE_URL),
    )


def dispatched_types(dispatcher):
    return [c.args[0] for c in dispatcher.dispatch.call_args_list]


def notifications_for(user_id):
    with get_session() as session:
        return NotificationRepository(session).get_by_user_id(user_id, limit=100)


class TestSubmissionValidation:
    @pytest.mark.parametrize(
        "listing_id,overrides,message",
        [
            (None, {}, "listingId is required."),
            ("   ", {}, "listingId is required."),
            ("L123", {}, "Invalid listing ID format."),
            (LISTING_ID, {"cover_letter": "x" * 19}, "Cover letter must be at least 20 characters."),
            (LISTING_ID, {"interest_reason": "short"}, "Please explain why you are interested in this project."),
            (LISTING_ID, {"skills": []}, "Please select at least one relevant skill."),
            (LISTING_ID, {"skills": ["  "]}, "Please select at least one relevant skill."),
            (LISTING_ID, {"availability_date": ""}, "Please provide your availability start date."),
            (LISTING_ID, {"hours_per_week": 0}, "Please enter hours available per week."),
            (LISTING_ID, {"hours_per_week": "lots"}, "Please enter hours available per week."),
            (LISTING_ID, {"relevant_coursework": "AI"}, "Please list your relevant coursework."),
            (LISTING_ID, {"references_text": "Bob"}, "Please provide at least one reference."),
        ],
    )
    def test_rejects_with_message(self, listing_id, overrides, message):
        with pytest.raises(ValidationError) as exc_info:
            validate_submission(listing_id, valid_form(**overrides))
        assert exc_info.value.message == message

    def test_first_failure_wins(self):
        form = valid_form(cover_letter="too short", skills=[])
        with pytest.raises(ValidationError) as exc_info:
            validate_submission(LISTING_ID, form)
        assert exc_info.value.field == "coverLetter"

    def test_uppercase_uuid_is_accepted(self):
        form = validate_submission(LISTING_ID.upper(), valid_form())
        assert form.hours_per_week == 12

    def test_trims_and_coerces_fields(self):
        form = validate_submission(
            LISTING_ID,
            valid_form(cover_letter="  " + "x" * 25 + "  ", hours_per_week="8", skills=["Python", ""]),
        )
        assert form.cover_letter == "x" * 25
        assert form.hours_per_week == 8
        assert form.skills == ["Python"]

    def test_validation_happens_before_any_io(self, reconciler, marketplace, dispatcher):
        marketplace.initiate_transaction = Mock()
        with pytest.raises(ValidationError):
            reconciler.submit(STUDENT_ID, LISTING_ID, valid_form(skills=[]))

        marketplace.initiate_transaction.assert_not_called()
        dispatcher.dispatch.assert_not_called()
        with get_session() as session:
            assert ApplicationRepository(session).get_by_student_id(STUDENT_ID) == []


class TestSubmit:
    def test_submit_creates_linked_pending_application(self, reconciler, marketplace, dispatcher):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form(cover_letter="x" * 25))

        assert application.status is ApplicationStatus.PENDING
        assert application.transaction_id in marketplace.transactions
        assert marketplace.messages == [
            {"transaction_id": application.transaction_id, "text": "x" * 25, "sender_id": STUDENT_ID}
        ]
        with get_session() as session:
            stored = ApplicationRepository(session).get_by_id(application.id)
        assert stored.transaction_id == application.transaction_id

        assert dispatched_types(dispatcher) == [
            NotificationType.APPLICATION_RECEIVED,
            NotificationType.NEW_APPLICATION,
        ]
        student_call, partner_call = dispatcher.dispatch.call_args_list
        assert student_call.args[1:3] == (STUDENT_ID, "jordan.lee@example.edu")
        assert partner_call.args[1:3] == (PARTNER_ID, "talent@acme.example.com")

    def test_partner_notification_content(self, reconciler):
        reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        [notification] = notifications_for(PARTNER_ID)
        assert notification.type is NotificationType.NEW_APPLICATION
        assert "Jordan Lee" in notification.content
        assert "State University" in notification.content
        assert f"{BASE_URL}/inbox/received" in notification.content
        assert notification.read is False

    def test_submit_survives_marketplace_outage(self, reconciler, marketplace, dispatcher):
        marketplace.failures["initiate_transaction"] = MarketplaceTimeoutError("timed out", url="/transactions/initiate")

        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        assert application.transaction_id is None
        with get_session() as session:
            assert ApplicationRepository(session).get_by_id(application.id).transaction_id is None
        # Partner falls back to the listing author, in-app only
        partner_call = dispatcher.dispatch.call_args_list[1]
        assert partner_call.args[:3] == (NotificationType.NEW_APPLICATION, PARTNER_ID, None)

    def test_cover_letter_post_failure_keeps_link(self, reconciler, marketplace):
        marketplace.failures["post_message"] = MarketplaceHTTPError("HTTP 500", status_code=500, url="/messages/send")

        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        assert application.transaction_id is not None

    def test_duplicate_pending_is_a_conflict(self, reconciler):
        first = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        with pytest.raises(ConflictError) as exc_info:
            reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        assert exc_info.value.message == "You already have a pending application for this project."
        assert exc_info.value.entity_id == first.id
        assert exc_info.value.current_status == "pending"

    def test_losing_a_concurrent_insert_reports_the_winner(self, reconciler):
        first = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        real_lookup = ApplicationRepository.get_pending_by_student_and_listing
        lookups = []

        def lookup_misses_once(repo, student_id, listing_id):
            # The first check runs before the competing row is visible
            lookups.append(student_id)
            if len(lookups) == 1:
                return None
            return real_lookup(repo, student_id, listing_id)

        with patch.object(ApplicationRepository, "get_pending_by_student_and_listing", lookup_misses_once):
            with pytest.raises(ConflictError) as exc_info:
                reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        assert len(lookups) == 2
        assert exc_info.value.entity_id == first.id
        assert exc_info.value.current_status == "pending"
        with get_session() as session:
            assert len(ApplicationRepository(session).get_by_student_and_listing(STUDENT_ID, LISTING_ID)) == 1

    def test_resubmit_after_decline_succeeds(self, reconciler):
        first = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        reconciler.decline(first.id, PARTNER_ID)

        second = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        assert second.id != first.id
        assert second.status is ApplicationStatus.PENDING

    def test_different_students_may_apply_to_same_listing(self, reconciler):
        reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        other = reconciler.submit(OTHER_STUDENT_ID, LISTING_ID, valid_form())
        assert other.status is ApplicationStatus.PENDING

    def test_notification_failure_does_not_fail_submit(self, marketplace):
        dispatcher = Mock()
        dispatcher.dispatch.side_effect = RuntimeError("dispatcher down")
        reconciler = ApplicationReconciler(marketplace, dispatcher, task_runner=InlineTaskRunner())

        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        assert application.status is ApplicationStatus.PENDING

    def test_fan_out_is_scheduled_on_task_runner(self, marketplace, dispatcher):
        runner = Mock()
        reconciler = ApplicationReconciler(marketplace, dispatcher, task_runner=runner)

        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        runner.submit.assert_called_once()
        name, fn, scheduled = runner.submit.call_args.args
        assert name == "application.submitted.notify"
        assert scheduled.id == application.id
        dispatcher.dispatch.assert_not_called()


class TestReview:
    def test_accept_updates_status_and_marketplace(self, reconciler, marketplace):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        accepted = reconciler.accept(application.id, PARTNER_ID, reviewer_notes="Great fit")

        assert accepted.status is ApplicationStatus.ACCEPTED
        assert accepted.reviewer_notes == "Great fit"
        assert accepted.reviewed_at is not None
        assert marketplace.transitions[-1] == {
            "transaction_id": application.transaction_id,
            "transition": "transition/accept",
        }

    def test_review_records_transaction_in_step(self, reconciler):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        reconciler.accept(application.id, PARTNER_ID)

        with get_session() as session:
            repo = ApplicationRepository(session)
            assert repo.get_by_id(application.id).transition_synced_at is not None
            assert repo.get_reviewed_with_transaction() == []

    def test_renamed_accept_transition_still_emails_student(self, marketplace):
        dispatcher = NotificationDispatcher(mail_transport=None, base_url=BASE_URL)
        reconciler = ApplicationReconciler(
            marketplace,
            dispatcher,
            task_runner=InlineTaskRunner(),
            settings=ReconcilerSettings(accept_transition="transition/approve-applicant", base_url=BASE_URL),
        )
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        reconciler.accept(application.id, PARTNER_ID)

        assert marketplace.transitions[-1]["transition"] == "transition/approve-applicant"
        [accepted] = [n for n in notifications_for(STUDENT_ID) if n.type is NotificationType.APPLICATION_ACCEPTED]
        assert accepted.data["studentName"] == "Jordan Lee"
        assert accepted.data["companyName"] == "Acme Analytics"

    def test_accept_notifies_student_with_email(self, reconciler, dispatcher):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        dispatcher.reset_mock()

        reconciler.accept(application.id, PARTNER_ID)

        dispatcher.notify_transaction_state_change.assert_called_once()
        accepted = [n for n in notifications_for(STUDENT_ID) if n.type is NotificationType.APPLICATION_ACCEPTED]
        assert len(accepted) == 1
        assert "Acme Analytics" in accepted[0].content

    def test_second_review_is_a_conflict_and_status_unchanged(self, reconciler):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        reconciler.accept(application.id, PARTNER_ID)

        with pytest.raises(ConflictError) as exc_info:
            reconciler.decline(application.id, PARTNER_ID)

        assert "already been accepted" in exc_info.value.message
        assert exc_info.value.entity_id == application.id
        with get_session() as session:
            assert ApplicationRepository(session).get_by_id(application.id).status is ApplicationStatus.ACCEPTED

    def test_decline_then_accept_conflicts(self, reconciler):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        reconciler.decline(application.id, PARTNER_ID)

        with pytest.raises(ConflictError, match="already been declined"):
            reconciler.accept(application.id, PARTNER_ID)

    def test_unknown_application_is_not_found(self, reconciler):
        with pytest.raises(NotFoundError):
            reconciler.accept("app_missing", PARTNER_ID)

    def test_non_owner_cannot_review(self, reconciler):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        with pytest.raises(AuthorizationError, match="You do not own this project."):
            reconciler.accept(application.id, OTHER_PARTNER_ID)

    def test_ownership_check_failure_denies(self, reconciler, marketplace):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        marketplace.failures["verify_listing_ownership"] = MarketplaceTimeoutError("timed out", url="https://api.test")

        with pytest.raises(AuthorizationError):
            reconciler.accept(application.id, PARTNER_ID)
        with get_session() as session:
            assert ApplicationRepository(session).get_by_id(application.id).status is ApplicationStatus.PENDING

    def test_external_transition_failure_keeps_local_decision(self, reconciler, marketplace, caplog):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        marketplace.failures["transition_transaction"] = MarketplaceHTTPError("HTTP 409", status_code=409, url="https://api.test")

        declined = reconciler.decline(application.id, PARTNER_ID)

        assert declined.status is ApplicationStatus.DECLINED
        with get_session() as session:
            assert ApplicationRepository(session).get_by_id(application.id).transition_synced_at is None
        assert any(
            getattr(r, "event", None) == "reconciler.transition.external_failed" for r in caplog.records
        )

    def test_decline_without_transaction_uses_fallback_notification(self, reconciler, marketplace, dispatcher):
        marketplace.failures["initiate_transaction"] = MarketplaceTimeoutError("timed out", url="https://api.test")
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        dispatcher.reset_mock()

        reconciler.decline(application.id, PARTNER_ID)

        call = dispatcher.dispatch.call_args
        assert call.args[:3] == (NotificationType.APPLICATION_DECLINED, STUDENT_ID, None)
        payload = call.args[3]
        assert payload.student_name == "there"
        assert payload.company_name == "the project team"
        assert payload.project_title == "Data Pipeline Audit"
        assert payload.browse_projects_url == f"{BASE_URL}/s"

    def test_fallback_title_when_listing_unavailable(self, reconciler, marketplace, dispatcher):
        marketplace.failures["initiate_transaction"] = MarketplaceTimeoutError("timed out", url="https://api.test")
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        marketplace.failures["show_listing"] = MarketplaceTimeoutError("timed out", url="https://api.test")
        dispatcher.reset_mock()

        reconciler.accept(application.id, PARTNER_ID)

        assert dispatcher.dispatch.call_args.args[3].project_title == "your project"

    def test_accepting_nda_listing_requests_signature(self, reconciler):
        application = reconciler.submit(STUDENT_ID, NDA_LISTING_ID, valid_form())
        reconciler.accept(application.id, PARTNER_ID)

        with get_session() as session:
            signature = NdaSignatureRepository(session).get_by_transaction_id(application.transaction_id)
        assert signature is not None
        assert signature.status is NdaStatus.PENDING
        assert signature.application_id == application.id
        assert signature.title == "NDA - Confidential Market Research"

    def test_declining_nda_listing_requests_nothing(self, reconciler):
        application = reconciler.submit(STUDENT_ID, NDA_LISTING_ID, valid_form())
        reconciler.decline(application.id, PARTNER_ID)

        with get_session() as session:
            assert NdaSignatureRepository(session).get_by_listing_id(NDA_LISTING_ID) == []


class TestQueries:
    def test_student_and_owner_can_read_application(self, reconciler):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        assert reconciler.get_application(application.id, STUDENT_ID).id == application.id
        assert reconciler.get_application(application.id, PARTNER_ID).id == application.id
        with pytest.raises(AuthorizationError):
            reconciler.get_application(application.id, OTHER_STUDENT_ID)

    def test_list_for_student_filters_by_status(self, reconciler):
        first = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        reconciler.submit(STUDENT_ID, OTHER_LISTING_ID, valid_form())
        reconciler.decline(first.id, PARTNER_ID)

        assert len(reconciler.list_for_student(STUDENT_ID)) == 2
        declined = reconciler.list_for_student(STUDENT_ID, status=ApplicationStatus.DECLINED)
        assert [a.id for a in declined] == [first.id]

    def test_list_for_listing_requires_owner(self, reconciler):
        reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        reconciler.submit(OTHER_STUDENT_ID, LISTING_ID, valid_form())

        assert len(reconciler.list_for_listing(LISTING_ID, PARTNER_ID)) == 2
        with pytest.raises(AuthorizationError):
            reconciler.list_for_listing(LISTING_ID, OTHER_PARTNER_ID)


class TestInvites:
    def test_create_invite_notifies_student(self, reconciler, dispatcher):
        invite = reconciler.create_invite(PARTNER_ID, STUDENT_ID, LISTING_ID, message="We'd love your help")

        assert invite.status is InviteStatus.PENDING
        assert invite.project_title == "Data Pipeline Audit"
        [notification] = notifications_for(STUDENT_ID)
        assert notification.type is NotificationType.INVITE_RECEIVED
        assert notification.data["inviteId"] == invite.id
        assert notification.data["invitationUrl"] == f"{BASE_URL}/l/{LISTING_ID}"
        assert "Acme Analytics" in notification.content

    def test_create_invite_requires_listing_owner(self, reconciler):
        with pytest.raises(AuthorizationError):
            reconciler.create_invite(OTHER_PARTNER_ID, STUDENT_ID, LISTING_ID)

    def test_duplicate_pending_invite_conflicts(self, reconciler):
        invite = reconciler.create_invite(PARTNER_ID, STUDENT_ID, LISTING_ID)

        with pytest.raises(ConflictError) as exc_info:
            reconciler.create_invite(PARTNER_ID, STUDENT_ID, LISTING_ID)
        assert exc_info.value.entity_id == invite.id
        assert exc_info.value.entity_type == "invite"

    def test_accept_invite_notifies_partner(self, reconciler):
        invite = reconciler.create_invite(PARTNER_ID, STUDENT_ID, LISTING_ID)

        accepted = reconciler.accept_invite(invite.id, STUDENT_ID)

        assert accepted.status is InviteStatus.ACCEPTED
        assert accepted.responded_at is not None
        [notification] = notifications_for(PARTNER_ID)
        assert notification.type is NotificationType.STUDENT_ACCEPTED_INVITE
        assert "Jordan Lee" in notification.content

    def test_only_invited_student_may_respond(self, reconciler):
        invite = reconciler.create_invite(PARTNER_ID, STUDENT_ID, LISTING_ID)

        with pytest.raises(AuthorizationError, match="This invite is not for you."):
            reconciler.decline_invite(invite.id, OTHER_STUDENT_ID)

    def test_responding_twice_conflicts(self, reconciler):
        invite = reconciler.create_invite(PARTNER_ID, STUDENT_ID, LISTING_ID)
        reconciler.decline_invite(invite.id, STUDENT_ID)

        with pytest.raises(ConflictError, match="This invite has already been declined."):
            reconciler.accept_invite(invite.id, STUDENT_ID)

    def test_unknown_invite_is_not_found(self, reconciler):
        with pytest.raises(NotFoundError):
            reconciler.accept_invite("inv_missing", STUDENT_ID)

    def test_applying_from_invite_marks_it_applied(self, reconciler):
        invite = reconciler.create_invite(PARTNER_ID, STUDENT_ID, LISTING_ID)

        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form(), invite_id=invite.id)

        with get_session() as session:
            stored = InviteRepository(session).get_by_id(invite.id)
        assert application.invite_id == invite.id
        assert stored.status is InviteStatus.APPLIED
        assert stored.transaction_id == application.transaction_id

    def test_foreign_invite_is_left_untouched(self, reconciler):
        invite = reconciler.create_invite(PARTNER_ID, OTHER_STUDENT_ID, LISTING_ID)

        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form(), invite_id=invite.id)

        with get_session() as session:
            assert InviteRepository(session).get_by_id(invite.id).status is InviteStatus.PENDING
        assert application.invite_id is None

    def test_invite_for_another_listing_is_left_untouched(self, reconciler):
        invite = reconciler.create_invite(PARTNER_ID, STUDENT_ID, NDA_LISTING_ID)

        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form(), invite_id=invite.id)

        with get_session() as session:
            stored = InviteRepository(session).get_by_id(invite.id)
        assert stored.status is InviteStatus.PENDING
        assert stored.transaction_id is None
        assert application.invite_id is None

    def test_unknown_invite_id_is_not_stored(self, reconciler):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form(), invite_id="inv_missing")

        assert application.invite_id is None
        assert application.status is ApplicationStatus.PENDING

    def test_list_invites(self, reconciler):
        reconciler.create_invite(PARTNER_ID, STUDENT_ID, LISTING_ID)
        reconciler.create_invite(PARTNER_ID, OTHER_STUDENT_ID, LISTING_ID)

        assert len(reconciler.list_invites_for_student(STUDENT_ID)) == 1
        assert len(reconciler.list_invites_for_partner(PARTNER_ID)) == 2
        assert reconciler.list_invites_for_partner(PARTNER_ID, status=InviteStatus.ACCEPTED) == []


class TestExternalEvents:
    def test_observed_completion_notifies_student(self, reconciler):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        reconciler.observe_transition(application.transaction_id, "transition/mark-completed")

        completed = [n for n in notifications_for(STUDENT_ID) if n.type is NotificationType.PROJECT_COMPLETED]
        assert len(completed) == 1
        assert "Data Pipeline Audit" in completed[0].content

    def test_observed_transition_falls_back_to_local_record(self, reconciler, marketplace):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        marketplace.failures["show_transaction"] = MarketplaceTimeoutError("timed out", url="https://api.test")

        reconciler.observe_transition(application.transaction_id, "transition/complete")

        completed = [n for n in notifications_for(STUDENT_ID) if n.type is NotificationType.PROJECT_COMPLETED]
        assert len(completed) == 1

    def test_observed_transition_for_unknown_transaction_is_dropped_with_log(self, reconciler, dispatcher):
        reconciler.observe_transition("tx-unknown", "transition/complete")
        dispatcher.notify_transaction_state_change.assert_not_called()

    def test_assessment_notifies_student(self, reconciler):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        reconciler.notify_assessment(application.transaction_id, PARTNER_ID)

        [assessment] = [n for n in notifications_for(STUDENT_ID) if n.type is NotificationType.ASSESSMENT_RECEIVED]
        assert f"{BASE_URL}/profile" in assessment.content

    def test_assessment_requires_provider(self, reconciler):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())

        with pytest.raises(AuthorizationError):
            reconciler.notify_assessment(application.transaction_id, STUDENT_ID)


class TestNdaSigning:
    def test_student_signs_requested_nda(self, reconciler):
        application = reconciler.submit(STUDENT_ID, NDA_LISTING_ID, valid_form())
        reconciler.accept(application.id, PARTNER_ID)

        signed = reconciler.sign_nda(application.transaction_id, STUDENT_ID)

        assert signed.status is NdaStatus.SIGNED
        assert signed.completed_at is not None
        assert [s["id"] for s in signed.signers] == [STUDENT_ID]

    def test_signing_twice_conflicts(self, reconciler):
        application = reconciler.submit(STUDENT_ID, NDA_LISTING_ID, valid_form())
        reconciler.accept(application.id, PARTNER_ID)
        reconciler.sign_nda(application.transaction_id, STUDENT_ID)

        with pytest.raises(ConflictError):
            reconciler.sign_nda(application.transaction_id, STUDENT_ID)

    def test_other_student_cannot_sign(self, reconciler):
        application = reconciler.submit(STUDENT_ID, NDA_LISTING_ID, valid_form())
        reconciler.accept(application.id, PARTNER_ID)

        with pytest.raises(AuthorizationError):
            reconciler.sign_nda(application.transaction_id, OTHER_STUDENT_ID)

    def test_no_nda_requested_is_not_found(self, reconciler):
        application = reconciler.submit(STUDENT_ID, LISTING_ID, valid_form())
        reconciler.accept(application.id, PARTNER_ID)

        with pytest.raises(NotFoundError):
            reconciler.sign_nda(application.transaction_id, STUDENT_ID)
