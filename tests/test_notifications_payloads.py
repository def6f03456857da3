"""Unit tests for typed notification payloads."""

import pytest
from pydantic import ValidationError

from campus2career.domain.models import NotificationType
from campus2career.notifications.payloads import (
    PAYLOAD_MODELS,
    ApplicationDecisionPayload,
    InviteReceivedPayload,
    NewMessagePayload,
    NotificationPayload,
    to_template_data,
)


def test_every_type_has_a_payload_model():
    assert set(PAYLOAD_MODELS) == set(NotificationType)


def test_template_data_is_camel_case_without_none():
    payload = ApplicationDecisionPayload(
        student_name="Jordan",
        project_title="Data Pipeline Audit",
        company_name=None,
        transaction_id="tx-1",
    )

    assert payload.to_template_data() == {
        "studentName": "Jordan",
        "projectTitle": "Data Pipeline Audit",
        "transactionId": "tx-1",
    }


def test_payload_accepts_camel_case_input():
    payload = InviteReceivedPayload(studentName="Jordan", invitationUrl="https://street2ivy.com/l/1")

    assert payload.student_name == "Jordan"
    assert payload.invitation_url == "https://street2ivy.com/l/1"


def test_payload_keeps_extra_fields():
    payload = NotificationPayload(campaign="fall-2026")

    assert payload.to_template_data() == {"campaign": "fall-2026"}


def test_new_message_company_context_defaults_to_empty():
    assert NewMessagePayload(sender_name="Alex").to_template_data()["companyContext"] == ""


def test_registered_model_rejects_wrong_field_type():
    model = PAYLOAD_MODELS[NotificationType.APPLICATION_ACCEPTED]

    with pytest.raises(ValidationError):
        model(student_name=["not", "a", "string"])


@pytest.mark.parametrize(
    "data,expected",
    [
        (None, {}),
        ({"studentName": "Jordan", "gpa": None}, {"studentName": "Jordan"}),
        (ApplicationDecisionPayload(student_name="Jordan"), {"studentName": "Jordan"}),
    ],
)
def test_to_template_data(data, expected):
    assert to_template_data(data) == expected
