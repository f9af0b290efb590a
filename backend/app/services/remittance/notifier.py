"""
Remittance Reminder Notifiers

Delivery of reminder payloads. The engine only needs a success/failure
answer per payload. A failed send never rolls back a status change that
was already committed.
"""
import os
import smtplib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Tuple
from uuid import uuid4

from .reminder_cadence import ReminderPayload


logger = logging.getLogger(__name__)

SUPPORT_EMAIL = os.getenv("SUPPORT_EMAIL", "support@proplinka.com")


@dataclass
class NotificationResult:
    """Outcome of a single dispatch attempt."""
    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None


def render_reminder_email(payload: ReminderPayload) -> Tuple[str, str]:
    """Render (subject, plain-text body) for a reminder payload."""
    if payload.is_suspension:
        subject = "Account Suspended - Payment Required"
        opening = (
            "Your account has been suspended due to outstanding remittance payments.\n"
            "Your profile is no longer visible to clients, and you cannot receive "
            "new transactions until payment is made."
        )
    elif payload.is_warning:
        subject = "Urgent: Payment Overdue"
        opening = (
            f"This is an urgent reminder that your remittance payment is now "
            f"{payload.days_overdue} days overdue.\n"
            "Please make payment immediately to avoid account suspension."
        )
    else:
        subject = "Remittance Reminder"
        opening = "This is a friendly reminder that you have an outstanding remittance payment due."

    lines = [
        f"Dear {payload.lawyer_name},",
        "",
        opening,
        "",
        "Payment Details",
        f"  Firm: {payload.firm_name}",
        f"  Transaction ID: {payload.transaction_ref}",
        f"  Amount Due: {payload.amount_due}",
        f"  Original Due Date: {payload.due_date}",
        f"  Days Overdue: {payload.days_overdue} days",
        "",
    ]
    if not payload.is_suspension:
        lines += [
            "Important: Accounts with payments overdue by 60+ days will be automatically suspended.",
            "",
        ]
    lines += [
        f"Payment reference: {payload.transaction_ref}",
        f"View your dashboard: {payload.dashboard_url}",
        "",
        "If you have already made this payment, please disregard this email "
        "and allow 1-2 business days for processing.",
        f"Questions? Contact us at {SUPPORT_EMAIL}",
    ]
    return subject, "\n".join(lines)


class RemittanceNotifier(ABC):
    """Accepts a reminder payload and attempts delivery."""

    @abstractmethod
    def send_reminder(self, payload: ReminderPayload) -> NotificationResult:
        ...


class LoggingNotifier(RemittanceNotifier):
    """Records the reminder intent in the log. Used until a mail service is configured."""

    def send_reminder(self, payload: ReminderPayload) -> NotificationResult:
        subject, _ = render_reminder_email(payload)
        logger.info(
            f"Would send '{subject}' to {payload.to} "
            f"({payload.days_overdue} days overdue, transaction {payload.transaction_ref})"
        )
        return NotificationResult(success=True, message_id=str(uuid4()))


class SmtpNotifier(RemittanceNotifier):
    """Plain-text reminder e-mail over SMTP."""

    def __init__(
        self,
        server: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self.server = server or os.getenv("SMTP_SERVER", "localhost")
        self.port = port or int(os.getenv("SMTP_PORT", "1025"))
        self.sender = username or os.getenv("SMTP_USERNAME", "noreply@proplinka.com")
        self.password = password if password is not None else os.getenv("SMTP_PASSWORD", "")

    def send_reminder(self, payload: ReminderPayload) -> NotificationResult:
        subject, body = render_reminder_email(payload)

        msg = EmailMessage()
        message_id = f"<{uuid4()}@remittance-compliance>"
        msg["From"] = self.sender
        msg["To"] = payload.to
        msg["Subject"] = subject
        msg["Message-ID"] = message_id
        msg.set_content(body)

        try:
            with smtplib.SMTP(self.server, self.port, timeout=30) as smtp:
                if self.password:
                    smtp.starttls()
                    smtp.login(self.sender, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Reminder e-mail to {payload.to} failed: {e}")
            return NotificationResult(success=False, error=str(e))

        logger.info(f"Reminder e-mail sent to {payload.to} ({subject})")
        return NotificationResult(success=True, message_id=message_id)


NOTIFIER_BACKENDS = {
    "log": LoggingNotifier,
    "smtp": SmtpNotifier,
}


def get_notifier(backend: Optional[str] = None) -> RemittanceNotifier:
    """Build the notifier configured by REMITTANCE_NOTIFIER (log | smtp)."""
    name = (backend or os.getenv("REMITTANCE_NOTIFIER", "log")).lower()
    if name not in NOTIFIER_BACKENDS:
        raise ValueError(f"Unknown notifier backend '{name}'. Expected one of: {sorted(NOTIFIER_BACKENDS)}")
    return NOTIFIER_BACKENDS[name]()
