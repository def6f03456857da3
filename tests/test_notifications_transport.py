"""Unit tests for the mail transport.

Tests:
- Disabled and console modes never touch SMTP
- Message construction (headers, HTML alternative)
- Sliding-window rate limiting
- Retry with capped exponential backoff
- Delivery log and status reporting
"""

import logging
from unittest.mock import Mock

import pytest

from campus2career.config.environment import EnvironmentConfig
from campus2career.config.models import EmailConfig
from campus2career.notifications.models import NotificationTemplateError, SMTPDeliveryError
from campus2career.notifications.transport import MailTransport, SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def smtp_env():
    return EnvironmentConfig(
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_user="mailer@example.com",
        smtp_pass="secret",
        email_from_address="noreply@street2ivy.com",
    )


@pytest.fixture
def email_config():
    return EmailConfig(
        max_retries=2,
        retry_initial_delay=1.0,
        retry_backoff_multiplier=2.0,
        retry_max_delay=5.0,
        rate_limit_per_minute=50,
    )


@pytest.fixture
def smtp_client():
    return Mock()


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport(smtp_env, email_config, smtp_client, clock, sleep):
    return MailTransport(smtp_env, email_config, smtp_client=smtp_client, clock=clock, sleep=sleep)


def sent_message(smtp_client, index=0):
    return smtp_client.send.call_args_list[index][0][0]


class TestModes:
    def test_disabled_mode_reports_success_without_sending(self, smtp_env, smtp_client):
        smtp_env.email_enabled = False
        transport = MailTransport(smtp_env, smtp_client=smtp_client)

        result = transport.send_email("jordan.lee@example.edu", "Subject", "Body")

        assert transport.mode == "disabled"
        assert result.success is True
        assert result.mode == "disabled"
        assert result.attempts == 0
        smtp_client.send.assert_not_called()

    def test_console_mode_logs_message(self, smtp_client, caplog):
        transport = MailTransport(EnvironmentConfig(), smtp_client=smtp_client)

        with caplog.at_level(logging.INFO):
            result = transport.send_email("jordan.lee@example.edu", "Application Received", "Hi Jordan,")

        assert transport.mode == "console"
        assert result.success is True
        assert result.mode == "console"
        assert "Application Received" in caplog.text
        smtp_client.send.assert_not_called()

    def test_smtp_mode_when_configured(self, transport):
        assert transport.mode == "smtp"


class TestDelivery:
    def test_successful_send_builds_multipart_message(self, transport, smtp_client, email_config, smtp_env):
        result = transport.send_email(
            "Jordan.Lee@Example.EDU", "Welcome", "Hi Jordan,\n\nNext Steps:", tags=["application-accepted"]
        )

        assert result.success is True
        assert result.attempts == 1
        assert result.message_id is not None

        message = sent_message(smtp_client)
        assert message["To"] == "Jordan.Lee@example.edu"
        assert message["From"] == "Campus2Career <noreply@street2ivy.com>"
        assert message["Subject"] == "Welcome"
        assert message["X-Tags"] == "application-accepted"
        assert message["Message-ID"] == result.message_id
        assert "@street2ivy.com>" in result.message_id

        html = message.get_body(preferencelist=("html",)).get_content()
        assert "<title>Welcome</title>" in html
        assert "<strong>Next Steps:</strong>" in html
        assert message.get_body(preferencelist=("plain",)).get_content().startswith("Hi Jordan,")

        kwargs = smtp_client.send.call_args[1]
        assert kwargs == {"use_tls": email_config.use_tls, "timeout": email_config.timeout_seconds}
        assert smtp_client.send.call_args[0][1] is smtp_env

    def test_explicit_html_is_used(self, transport, smtp_client):
        transport.send_email("jordan.lee@example.edu", "Subject", "Text", html="<p>Custom</p>")

        html = sent_message(smtp_client).get_body(preferencelist=("html",)).get_content()
        assert "<p>Custom</p>" in html

    def test_invalid_recipient_fails_without_sending(self, transport, smtp_client):
        result = transport.send_email("not-an-email", "Subject", "Text")

        assert result.success is False
        assert "Invalid recipient" in result.error
        smtp_client.send.assert_not_called()

    def test_layout_failure_fails_without_sending(self, smtp_env, email_config, smtp_client):
        renderer = Mock()
        renderer.render.side_effect = NotificationTemplateError("layout missing")
        transport = MailTransport(smtp_env, email_config, smtp_client=smtp_client, html_renderer=renderer)

        result = transport.send_email("jordan.lee@example.edu", "Subject", "Text")

        assert result.success is False
        assert result.error == "layout missing"
        smtp_client.send.assert_not_called()


class TestRetries:
    def test_retryable_failure_then_success(self, transport, smtp_client, sleep):
        smtp_client.send.side_effect = [SMTPDeliveryError("Connection dropped", retryable=True), None]

        result = transport.send_email("jordan.lee@example.edu", "Subject", "Text")

        assert result.success is True
        assert result.attempts == 2
        sleep.assert_called_once()
        assert 1.0 <= sleep.call_args[0][0] <= 1.1

    def test_permanent_failure_is_not_retried(self, transport, smtp_client, sleep):
        smtp_client.send.side_effect = SMTPDeliveryError("Auth failed", retryable=False, smtp_code=535)

        result = transport.send_email("jordan.lee@example.edu", "Subject", "Text")

        assert result.success is False
        assert result.attempts == 1
        assert result.error == "Auth failed"
        sleep.assert_not_called()

    def test_retries_exhausted(self, transport, smtp_client, sleep):
        smtp_client.send.side_effect = SMTPDeliveryError("Timed out", retryable=True)

        result = transport.send_email("jordan.lee@example.edu", "Subject", "Text")

        assert result.success is False
        assert result.attempts == 3
        assert smtp_client.send.call_count == 3
        delays = [c[0][0] for c in sleep.call_args_list]
        assert len(delays) == 2
        assert 1.0 <= delays[0] <= 1.1
        assert 2.0 <= delays[1] <= 2.2

    def test_backoff_is_capped(self, smtp_env, smtp_client, sleep):
        config = EmailConfig(
            max_retries=2, retry_initial_delay=4.0, retry_backoff_multiplier=10.0, retry_max_delay=5.0
        )
        transport = MailTransport(smtp_env, config, smtp_client=smtp_client, sleep=sleep)
        smtp_client.send.side_effect = SMTPDeliveryError("Timed out", retryable=True)

        transport.send_email("jordan.lee@example.edu", "Subject", "Text")

        delays = [c[0][0] for c in sleep.call_args_list]
        assert 4.0 <= delays[0] <= 4.4
        assert 5.0 <= delays[1] <= 5.5

    def test_no_retries_configured(self, smtp_env, smtp_client, sleep):
        transport = MailTransport(smtp_env, EmailConfig(max_retries=0), smtp_client=smtp_client, sleep=sleep)
        smtp_client.send.side_effect = SMTPDeliveryError("Timed out", retryable=True)

        result = transport.send_email("jordan.lee@example.edu", "Subject", "Text")

        assert result.attempts == 1
        sleep.assert_not_called()


class TestRateLimiting:
    def test_limiter_window(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(limit=2, window=60.0, clock=clock)

        assert limiter.try_acquire() is True
        clock.now += 10
        assert limiter.try_acquire() is True
        assert limiter.try_acquire() is False
        assert limiter.used() == 2

        clock.now += 50
        assert limiter.used() == 1
        assert limiter.try_acquire() is True

    def test_transport_drops_sends_over_limit(self, smtp_env, smtp_client, clock):
        transport = MailTransport(
            smtp_env, EmailConfig(rate_limit_per_minute=2), smtp_client=smtp_client, clock=clock
        )

        results = [transport.send_email("jordan.lee@example.edu", f"Subject {i}", "Text") for i in range(3)]

        assert [r.success for r in results] == [True, True, False]
        assert results[2].error == "Rate limit exceeded"
        assert smtp_client.send.call_count == 2

        clock.now += 60
        assert transport.send_email("jordan.lee@example.edu", "Later", "Text").success is True

    def test_console_mode_is_not_rate_limited(self, smtp_client):
        transport = MailTransport(EnvironmentConfig(), EmailConfig(rate_limit_per_minute=1), smtp_client=smtp_client)

        results = [transport.send_email("jordan.lee@example.edu", "Subject", "Text") for _ in range(3)]

        assert all(r.success for r in results)


class TestStatus:
    def test_email_log_newest_first(self, transport, smtp_client):
        smtp_client.send.side_effect = [None, SMTPDeliveryError("Rejected", retryable=False)]

        transport.send_email("jordan.lee@example.edu", "First", "Text", tags=["a"])
        transport.send_email("sam.rivera@example.edu", "Second", "Text")

        log = transport.get_email_log()
        assert [entry["subject"] for entry in log] == ["Second", "First"]
        assert log[0]["success"] is False
        assert log[0]["error"] == "Rejected"
        assert log[1]["tags"] == ["a"]
        assert log[1]["mode"] == "smtp"
        assert transport.get_email_log(limit=1)[0]["subject"] == "Second"

    def test_email_log_capacity(self, smtp_env, smtp_client):
        transport = MailTransport(smtp_env, EmailConfig(log_capacity=2), smtp_client=smtp_client)

        for i in range(3):
            transport.send_email("jordan.lee@example.edu", f"Subject {i}", "Text")

        assert [e["subject"] for e in transport.get_email_log()] == ["Subject 2", "Subject 1"]

    def test_service_status(self, transport):
        transport.send_email("jordan.lee@example.edu", "Subject", "Text")

        status = transport.get_service_status()
        assert status["mode"] == "smtp"
        assert status["configured"] is True
        assert status["enabled"] is True
        assert status["host"] == "smtp.example.com"
        assert status["rate_limit"] == {"sent_last_minute": 1, "limit": 50, "remaining": 49}
