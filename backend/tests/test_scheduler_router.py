"""
Tests for the internal scheduler endpoints.

The app's lifespan is never entered (no `with TestClient(...)`), so no
connection to the configured database is attempted; get_db is overridden
with the in-memory session.
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

from fastapi.testclient import TestClient

from app.main import app
from app.database import get_db
from app.models.db_models import LawyerDB, RemittanceStatus, TransactionDB, TransactionStatus
from app.routers import scheduler
from app.services.remittance.obligation_source import ObligationFetchError, ObligationSource


SECRET = "test-cron-secret"
AUTH = {"Authorization": f"Bearer {SECRET}"}


@pytest.fixture
def client(db_session, monkeypatch):
    monkeypatch.setattr(scheduler, "CRON_SECRET", SECRET)
    monkeypatch.delenv("REMITTANCE_NOTIFIER", raising=False)
    app.dependency_overrides[get_db] = lambda: db_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def overdue_today(db_session):
    """Transaction overdue by N days relative to the real clock."""
    def _make(lawyer, days_overdue, amount="1200.00"):
        transaction = TransactionDB(
            id=str(uuid4()),
            lawyer_id=lawyer.id,
            settlement_reference=f"TX-{uuid4().hex[:6].upper()}",
            status=TransactionStatus.COMPLETED,
            platform_fee_amount=Decimal(amount),
            fee_collected=True,
            fee_remitted=False,
            remittance_due_date=datetime.utcnow().date() - timedelta(days=days_overdue),
        )
        db_session.add(transaction)
        db_session.commit()
        return transaction
    return _make


class TestCronAuth:

    @pytest.mark.parametrize("headers", [
        {},
        {"Authorization": "Bearer not-the-secret"},
        {"Authorization": f"Basic {SECRET}"},
    ])
    def test_rejected_without_valid_secret(self, client, db_session, make_lawyer, overdue_today, headers):
        lawyer = make_lawyer()
        overdue_today(lawyer, 20)

        response = client.post("/internal/check-overdue-remittances", headers=headers)

        assert response.status_code == 401
        db_session.expire_all()
        assert db_session.query(LawyerDB).one().remittance_status == RemittanceStatus.CURRENT

    @pytest.mark.parametrize("token", ["", "cron-secret-change-in-production", "None"])
    def test_unconfigured_secret_rejects_every_call(
        self, client, db_session, make_lawyer, overdue_today, monkeypatch, token
    ):
        monkeypatch.setattr(scheduler, "CRON_SECRET", None)
        lawyer = make_lawyer()
        overdue_today(lawyer, 45)

        response = client.post(
            "/internal/check-overdue-remittances",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 401
        db_session.expire_all()
        assert db_session.query(LawyerDB).one().remittance_status == RemittanceStatus.CURRENT

    def test_listing_requires_secret(self, client):
        assert client.get("/internal/overdue-remittances").status_code == 401


class TestCheckOverdueRemittances:

    @pytest.mark.parametrize("method", ["get", "post"])
    def test_runs_compliance_pass(self, client, db_session, make_lawyer, overdue_today, method):
        lawyer = make_lawyer()
        overdue_today(lawyer, 45)

        response = getattr(client, method)("/internal/check-overdue-remittances", headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["processedCount"] == 1
        assert body["remindersSent"] == 1
        assert body["errors"] == []
        assert body["details"][0]["action"] == "overdue_status"
        assert body["details"][0]["new_status"] == "overdue"

        db_session.expire_all()
        assert db_session.query(LawyerDB).one().remittance_status == RemittanceStatus.OVERDUE

    def test_fetch_failure_returns_500(self, client, monkeypatch):
        def broken(self, now):
            raise ObligationFetchError("Failed to load pending remittances: connection refused")

        monkeypatch.setattr(ObligationSource, "fetch_overdue", broken)

        response = client.post("/internal/check-overdue-remittances", headers=AUTH)

        assert response.status_code == 500
        assert response.json()["detail"] == {
            "error": "Internal server error",
            "details": "Failed to load pending remittances: connection refused",
        }


class TestOverdueListing:

    def test_lists_without_mutating(self, client, db_session, make_lawyer, overdue_today):
        lawyer = make_lawyer()
        overdue_today(lawyer, 60, amount="4000.00")

        response = client.get("/internal/overdue-remittances", headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        item = body["obligations"][0]
        assert item["days_overdue"] == 60
        assert item["implied_status"] == "suspended"
        assert item["action"] == "suspended"
        assert item["reminder_due"] is True
        assert item["amount_due"] == "4000.00"

        db_session.expire_all()
        assert db_session.query(LawyerDB).one().remittance_status == RemittanceStatus.CURRENT


def test_health():
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
