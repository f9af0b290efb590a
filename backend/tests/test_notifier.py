"""
Tests for reminder rendering and notifier backends.
"""
import smtplib
import pytest
from unittest.mock import MagicMock, patch

from app.services.remittance.notifier import (
    LoggingNotifier,
    SmtpNotifier,
    get_notifier,
    render_reminder_email,
)
from app.services.remittance.reminder_cadence import ReminderPayload


def _payload(**overrides):
    fields = dict(
        to="l.pillay@pillaylaw.test",
        lawyer_name="Leela Pillay",
        firm_name="Pillay Law",
        transaction_ref="TX-77AA01",
        amount_due="R3,200.00",
        days_overdue=10,
        due_date="20 Feb 2026",
        dashboard_url="https://app.test/lawyer-deals/remit-fees",
    )
    fields.update(overrides)
    return ReminderPayload(**fields)


class TestRenderReminderEmail:

    def test_friendly_reminder(self):
        subject, body = render_reminder_email(_payload())

        assert subject == "Remittance Reminder"
        assert "Dear Leela Pillay" in body
        assert "R3,200.00" in body
        assert "TX-77AA01" in body
        assert "60+ days will be automatically suspended" in body

    def test_warning_reminder(self):
        subject, body = render_reminder_email(_payload(days_overdue=35, is_warning=True))

        assert subject == "Urgent: Payment Overdue"
        assert "35 days overdue" in body

    def test_suspension_reminder_drops_suspension_notice(self):
        subject, body = render_reminder_email(_payload(days_overdue=60, is_warning=True, is_suspension=True))

        assert subject == "Account Suspended - Payment Required"
        assert "no longer visible to clients" in body
        assert "will be automatically suspended" not in body


class TestNotifiers:

    def test_logging_notifier_succeeds(self):
        result = LoggingNotifier().send_reminder(_payload())

        assert result.success is True
        assert result.message_id

    def test_smtp_notifier_sends(self):
        with patch("app.services.remittance.notifier.smtplib.SMTP") as mock_smtp:
            server = MagicMock()
            mock_smtp.return_value.__enter__.return_value = server

            notifier = SmtpNotifier(server="mail.test", port=2525, username="noreply@test", password="pw")
            result = notifier.send_reminder(_payload())

        assert result.success is True
        assert server.starttls.called
        server.login.assert_called_once_with("noreply@test", "pw")
        message = server.send_message.call_args[0][0]
        assert message["To"] == "l.pillay@pillaylaw.test"
        assert message["Subject"] == "Remittance Reminder"

    def test_smtp_failure_is_reported_not_raised(self):
        with patch("app.services.remittance.notifier.smtplib.SMTP") as mock_smtp:
            mock_smtp.side_effect = smtplib.SMTPConnectError(421, b"service not available")

            result = SmtpNotifier(server="mail.test", port=2525, password="").send_reminder(_payload())

        assert result.success is False
        assert "service not available" in result.error

    def test_get_notifier_backends(self, monkeypatch):
        monkeypatch.delenv("REMITTANCE_NOTIFIER", raising=False)

        assert isinstance(get_notifier(), LoggingNotifier)
        assert isinstance(get_notifier("smtp"), SmtpNotifier)

        with pytest.raises(ValueError, match="Unknown notifier backend"):
            get_notifier("carrier-pigeon")
