"""
Reminder Cadence Controller

Decides whether a remittance reminder is due for an obligation, builds the
notifier payload, and guards dispatch with a per-milestone claim.

Reminders fire only when days_overdue is exactly a cadence value. A run
skipped on that day misses the milestone for that obligation.
"""
import os
import logging
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models.db_models import (
    ComplianceAction, LawyerDB, ProfileDB, ReminderDispatchDB, TransactionDB,
)


logger = logging.getLogger(__name__)


# =============================================================================
# CADENCE CONFIGURATION
# =============================================================================

REMINDER_CADENCE = (1, 10, 20, 28, 35, 45, 55, 60)

# Reminders from this many days overdue use the urgent "warning" register
WARNING_REMINDER_DAYS = 30

APP_URL = os.getenv("APP_URL", "http://localhost:3000")
REMIT_FEES_PATH = "/lawyer-deals/remit-fees"

CURRENCY_SYMBOLS = {
    "ZAR": "R",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "NAD": "N$",
    "BWP": "P",
    "ZMW": "K",
    "MZN": "MT",
}


def format_amount(amount: Decimal, currency: str) -> str:
    """Format a money amount with its currency symbol, e.g. R1,500.00."""
    value = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    code = (currency or "").upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{code} {value:,.2f}".strip()
    return f"{symbol}{value:,.2f}"


def format_due_date(due_date: date) -> str:
    return due_date.strftime("%d %b %Y")


class ReminderPayload(BaseModel):
    """Structured reminder handed to the notifier (camelCase on the wire)."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    to: str
    lawyer_name: str = Field(alias="lawyerName")
    firm_name: str = Field(alias="firmName")
    transaction_ref: str = Field(alias="transactionRef")
    amount_due: str = Field(alias="amountDue")
    days_overdue: int = Field(alias="daysOverdue")
    due_date: str = Field(alias="dueDate")
    dashboard_url: str = Field(alias="dashboardUrl")
    is_warning: bool = Field(default=False, alias="isWarning")
    is_suspension: bool = Field(default=False, alias="isSuspension")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


# =============================================================================
# CONTROLLER
# =============================================================================

class ReminderCadenceController:
    """
    Reminder decisions and dispatch bookkeeping for overdue obligations.

    claim() inserts a row keyed by (transaction_id, days_overdue) before any
    dispatch; the unique constraint makes a second claim for the same
    milestone fail, so overlapping runs cannot both send it.
    """

    def __init__(self, db_session: Session, dashboard_url: Optional[str] = None):
        self.db = db_session
        self.dashboard_url = dashboard_url or f"{APP_URL.rstrip('/')}{REMIT_FEES_PATH}"

    @staticmethod
    def is_due(days_overdue: int) -> bool:
        """Exact cadence membership, not 'at least'."""
        return days_overdue in REMINDER_CADENCE

    def build_payload(
        self,
        obligation,
        lawyer: LawyerDB,
        profile: ProfileDB,
        action: ComplianceAction,
    ) -> ReminderPayload:
        """Build the notifier payload for one obligation."""
        return ReminderPayload(
            to=profile.email,
            lawyer_name=profile.full_name or lawyer.firm_name,
            firm_name=lawyer.firm_name,
            transaction_ref=obligation.transaction_reference or obligation.transaction_id,
            amount_due=format_amount(obligation.amount_due, obligation.currency),
            days_overdue=obligation.days_overdue,
            due_date=format_due_date(obligation.due_date),
            dashboard_url=self.dashboard_url,
            is_warning=obligation.days_overdue >= WARNING_REMINDER_DAYS,
            is_suspension=action == ComplianceAction.SUSPENDED,
        )

    def claim(self, obligation, recipient: str, now: datetime) -> Optional[ReminderDispatchDB]:
        """
        Claim the reminder milestone for this obligation.

        Returns the committed claim, or None if another run already holds it.
        """
        existing = self.db.query(ReminderDispatchDB).filter(
            ReminderDispatchDB.transaction_id == obligation.transaction_id,
            ReminderDispatchDB.days_overdue == obligation.days_overdue,
        ).first()
        if existing is not None:
            return None

        claim = ReminderDispatchDB(
            id=str(uuid4()),
            transaction_id=obligation.transaction_id,
            lawyer_id=obligation.lawyer_id,
            days_overdue=obligation.days_overdue,
            status="claimed",
            recipient=recipient,
            claimed_at=now,
        )
        self.db.add(claim)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost the race to a concurrent run
            self.db.rollback()
            return None

        return claim

    def mark_sent(self, claim: ReminderDispatchDB, now: datetime) -> None:
        """Persist the last-reminder marker after a successful dispatch."""
        transaction = self.db.query(TransactionDB).filter(
            TransactionDB.id == claim.transaction_id
        ).first()
        if transaction is not None:
            transaction.remittance_reminder_sent_at = now

        claim.status = "sent"
        claim.sent_at = now
        self.db.commit()

    def release(self, claim: ReminderDispatchDB) -> None:
        """Drop a claim after a failed dispatch so a later run may retry."""
        transaction_id, days_overdue = claim.transaction_id, claim.days_overdue
        self.db.delete(claim)
        self.db.commit()
        logger.info(
            f"Released reminder claim for transaction {transaction_id} "
            f"at {days_overdue} days overdue"
        )
