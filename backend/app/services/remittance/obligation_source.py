"""
Obligation Source

Reads the current set of overdue remittance obligations.
days_overdue is computed here, once per run, and trusted downstream.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import TransactionDB, TransactionStatus


# Lawyer agreement: platform fees are remitted within 30 days of closing
REMITTANCE_GRACE_DAYS = 30


class ObligationFetchError(Exception):
    """The overdue set could not be read. Fatal for a compliance run."""
    pass


@dataclass(frozen=True)
class RemittanceObligation:
    """One transaction's unremitted platform fee."""
    transaction_id: str
    lawyer_id: str
    amount_due: Decimal
    currency: str
    due_date: date
    days_overdue: int
    last_reminder_sent_at: Optional[datetime] = None
    transaction_reference: Optional[str] = None


def calculate_due_date(deal_closed_at: datetime) -> date:
    """Remittance due date for a deal closed at the given time."""
    return deal_closed_at.date() + timedelta(days=REMITTANCE_GRACE_DAYS)


class ObligationSource:
    """
    Supplies overdue obligations as of a given 'now'.

    Read-only: calling it repeatedly for the same now returns the same set.
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    def fetch_overdue(self, now: datetime) -> List[RemittanceObligation]:
        """
        All collected-but-unremitted fees whose due date is before today.

        Raises ObligationFetchError if the store cannot be read.
        """
        today = now.date()

        try:
            candidates = self.db.query(TransactionDB).filter(
                TransactionDB.status == TransactionStatus.COMPLETED,
                TransactionDB.fee_collected.is_(True),
                TransactionDB.fee_remitted.is_(False),
                TransactionDB.lawyer_id.isnot(None),
            ).all()
        except SQLAlchemyError as e:
            raise ObligationFetchError(f"Failed to load pending remittances: {e}") from e

        obligations = []
        for transaction in candidates:
            due_date = self._resolve_due_date(transaction)
            if due_date is None or due_date >= today:
                continue

            obligations.append(RemittanceObligation(
                transaction_id=transaction.id,
                lawyer_id=transaction.lawyer_id,
                amount_due=Decimal(transaction.platform_fee_amount or 0),
                currency=transaction.currency or "ZAR",
                due_date=due_date,
                days_overdue=(today - due_date).days,
                last_reminder_sent_at=transaction.remittance_reminder_sent_at,
                transaction_reference=transaction.settlement_reference,
            ))

        obligations.sort(key=lambda o: (o.lawyer_id, o.due_date, o.transaction_id))
        return obligations

    @staticmethod
    def _resolve_due_date(transaction: TransactionDB) -> Optional[date]:
        if transaction.remittance_due_date is not None:
            return transaction.remittance_due_date
        if transaction.deal_closed_at is not None:
            return calculate_due_date(transaction.deal_closed_at)
        return None
