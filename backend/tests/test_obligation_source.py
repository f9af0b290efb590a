"""
Tests for the obligation source.
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

from sqlalchemy.exc import OperationalError

from app.models.db_models import TransactionDB, TransactionStatus
from app.services.remittance.obligation_source import (
    ObligationSource,
    ObligationFetchError,
    calculate_due_date,
    REMITTANCE_GRACE_DAYS,
)

from conftest import RUN_AT


class TestFetchOverdue:

    def test_days_overdue_from_due_date(self, db_session, make_lawyer, make_obligation):
        lawyer = make_lawyer()
        transaction = make_obligation(lawyer, 17, amount="750.00", currency="USD")

        obligations = ObligationSource(db_session).fetch_overdue(RUN_AT)

        assert len(obligations) == 1
        o = obligations[0]
        assert o.transaction_id == transaction.id
        assert o.lawyer_id == lawyer.id
        assert o.days_overdue == 17
        assert o.amount_due == Decimal("750.00")
        assert o.currency == "USD"
        assert o.last_reminder_sent_at is None

    def test_due_today_is_not_overdue(self, db_session, make_lawyer, make_obligation):
        lawyer = make_lawyer()
        make_obligation(lawyer, 0)

        assert ObligationSource(db_session).fetch_overdue(RUN_AT) == []

    @pytest.mark.parametrize("fields", [
        {"fee_remitted": True},
        {"fee_collected": False},
        {"status": TransactionStatus.PENDING},
    ])
    def test_settled_or_uncollected_excluded(self, db_session, make_lawyer, make_obligation, fields):
        lawyer = make_lawyer()
        transaction = make_obligation(lawyer, 30)
        for name, value in fields.items():
            setattr(transaction, name, value)
        db_session.commit()

        assert ObligationSource(db_session).fetch_overdue(RUN_AT) == []

    def test_due_date_falls_back_to_grace_period(self, db_session, make_lawyer):
        lawyer = make_lawyer()
        closed_at = RUN_AT - timedelta(days=REMITTANCE_GRACE_DAYS + 12)
        db_session.add(TransactionDB(
            id=str(uuid4()),
            lawyer_id=lawyer.id,
            status=TransactionStatus.COMPLETED,
            platform_fee_amount=Decimal("300.00"),
            fee_collected=True,
            fee_remitted=False,
            deal_closed_at=closed_at,
        ))
        db_session.commit()

        obligations = ObligationSource(db_session).fetch_overdue(RUN_AT)

        assert [o.days_overdue for o in obligations] == [12]
        assert obligations[0].due_date == calculate_due_date(closed_at)

    def test_no_due_date_and_no_close_date_skipped(self, db_session, make_lawyer):
        lawyer = make_lawyer()
        db_session.add(TransactionDB(
            id=str(uuid4()),
            lawyer_id=lawyer.id,
            status=TransactionStatus.COMPLETED,
            platform_fee_amount=Decimal("300.00"),
            fee_collected=True,
            fee_remitted=False,
        ))
        db_session.commit()

        assert ObligationSource(db_session).fetch_overdue(RUN_AT) == []

    def test_ordered_by_lawyer_then_due_date(self, db_session, make_lawyer, make_obligation):
        lawyer = make_lawyer()
        make_obligation(lawyer, 5)
        make_obligation(lawyer, 50)
        make_obligation(lawyer, 20)

        obligations = ObligationSource(db_session).fetch_overdue(RUN_AT)

        assert [o.days_overdue for o in obligations] == [50, 20, 5]

    def test_repeated_fetch_is_stable(self, db_session, make_lawyer, make_obligation):
        lawyer = make_lawyer()
        make_obligation(lawyer, 28)
        source = ObligationSource(db_session)

        assert source.fetch_overdue(RUN_AT) == source.fetch_overdue(RUN_AT)

    def test_store_error_wrapped(self):
        mock_db = MagicMock()
        mock_db.query.side_effect = OperationalError("SELECT", {}, Exception("server closed the connection"))

        with pytest.raises(ObligationFetchError, match="server closed"):
            ObligationSource(mock_db).fetch_overdue(RUN_AT)


class TestCalculateDueDate:

    def test_grace_period_added(self):
        assert calculate_due_date(datetime(2026, 1, 15, 16, 30)).isoformat() == "2026-02-14"
