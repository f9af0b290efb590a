"""
Shared fixtures for the remittance compliance tests.

db_session is an in-memory SQLite database with the full schema, so the
orchestrator's commits, rollbacks and unique-constraint claims run for real.
"""
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models.db_models import (
    LawyerDB, ProfileDB, TransactionDB, RemittanceStatus, TransactionStatus,
)
from app.services.remittance.notifier import NotificationResult, RemittanceNotifier


# Fixed "now" for every scheduled run in the suite
RUN_AT = datetime(2026, 3, 2, 6, 0, 0)


class RecordingNotifier(RemittanceNotifier):
    """Notifier double that records payloads and can be told to fail."""

    def __init__(self, succeed: bool = True, raise_error: bool = False):
        self.succeed = succeed
        self.raise_error = raise_error
        self.sent = []

    def send_reminder(self, payload):
        if self.raise_error:
            raise ConnectionError("mail relay unreachable")
        if not self.succeed:
            return NotificationResult(success=False, error="mailbox unavailable")
        self.sent.append(payload)
        return NotificationResult(success=True, message_id=str(uuid4()))


@pytest.fixture
def db_session():
    """In-memory SQLite session with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_lawyer(db_session):
    """Create a lawyer (and contact profile) in the directory."""
    def _make(
        firm_name="Mokoena Conveyancers",
        status=RemittanceStatus.CURRENT,
        with_profile=True,
        **fields,
    ):
        profile_id = None
        if with_profile:
            profile = ProfileDB(
                id=str(uuid4()),
                email=f"{uuid4().hex[:8]}@lawfirm.test",
                full_name=f"Partner at {firm_name}",
            )
            db_session.add(profile)
            profile_id = profile.id

        lawyer = LawyerDB(
            id=str(uuid4()),
            profile_id=profile_id,
            firm_name=firm_name,
            remittance_status=status,
            **fields,
        )
        db_session.add(lawyer)
        db_session.commit()
        return lawyer
    return _make


@pytest.fixture
def make_obligation(db_session):
    """Create a collected, unremitted transaction N days overdue at RUN_AT."""
    def _make(lawyer, days_overdue, amount="1500.00", currency="ZAR", **fields):
        transaction = TransactionDB(
            id=str(uuid4()),
            lawyer_id=lawyer.id,
            settlement_reference=f"TX-{uuid4().hex[:6].upper()}",
            status=TransactionStatus.COMPLETED,
            platform_fee_amount=Decimal(amount),
            currency=currency,
            fee_collected=True,
            fee_remitted=False,
            remittance_due_date=(RUN_AT - timedelta(days=days_overdue)).date(),
            **fields,
        )
        db_session.add(transaction)
        db_session.commit()
        return transaction
    return _make
