"""
Scheduler API Routes

Internal endpoints for the scheduled remittance compliance run.
Called by the platform cron with a shared-secret bearer token.
"""
import hmac
import os
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.remittance import (
    ObligationSource,
    ObligationFetchError,
    RemittanceComplianceScheduler,
)
from ..services.remittance.escalation_policy import threshold_for
from ..services.remittance.reminder_cadence import ReminderCadenceController


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["scheduler"])


# =============================================================================
# CRON SECRET VALIDATION
# =============================================================================

CRON_SECRET = os.getenv("CRON_SECRET")

cron_bearer = HTTPBearer(auto_error=False)


async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(cron_bearer),
):
    """
    Verify the scheduler's bearer token. Rejects before any work is done.

    With no CRON_SECRET configured every call is rejected.
    """
    if not CRON_SECRET:
        logger.error("CRON_SECRET is not configured; rejecting scheduler call")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if credentials is None or not hmac.compare_digest(
        credentials.credentials.encode("utf-8"), CRON_SECRET.encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return True


# =============================================================================
# SCHEDULER ENDPOINTS (SYSTEM-ONLY)
# =============================================================================

@router.api_route("/check-overdue-remittances", methods=["GET", "POST"], response_model=dict)
async def run_remittance_compliance_check(
    db: Session = Depends(get_db),
    _: bool = Depends(verify_cron_secret),
):
    """
    Run the daily remittance compliance pass.

    System-automatic - no user confirmation required.
    Escalates overdue lawyers, sends cadence reminders, refreshes totals.
    """
    scheduler = RemittanceComplianceScheduler(db)

    try:
        return scheduler.run_daily_compliance_check()
    except ObligationFetchError as e:
        logger.error(f"Error checking overdue remittances: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Internal server error", "details": str(e)},
        )


# =============================================================================
# SCHEDULER STATUS ENDPOINTS (READ-ONLY)
# =============================================================================

@router.get("/overdue-remittances", response_model=dict)
async def get_overdue_remittances(
    db: Session = Depends(get_db),
    _: bool = Depends(verify_cron_secret),
):
    """
    Get currently overdue obligations for monitoring.
    No writes, no reminders.
    """
    now = datetime.utcnow()

    try:
        obligations = ObligationSource(db).fetch_overdue(now)
    except ObligationFetchError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Internal server error", "details": str(e)},
        )

    items = []
    for o in obligations:
        implied_status, action = threshold_for(o.days_overdue)
        items.append({
            "transaction_id": o.transaction_id,
            "lawyer_id": o.lawyer_id,
            "amount_due": str(o.amount_due),
            "currency": o.currency,
            "due_date": o.due_date.isoformat(),
            "days_overdue": o.days_overdue,
            "implied_status": implied_status.value if implied_status else None,
            "action": action.value,
            "reminder_due": ReminderCadenceController.is_due(o.days_overdue),
            "last_reminder_sent_at": o.last_reminder_sent_at.isoformat() if o.last_reminder_sent_at else None,
        })

    return {
        "as_of": now.isoformat(),
        "count": len(items),
        "obligations": items,
    }
