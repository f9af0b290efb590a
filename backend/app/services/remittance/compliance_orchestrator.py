"""
Remittance Compliance Orchestrator

AUTHORITY: SYSTEM
Daily batch that escalates lawyers with overdue platform-fee remittances,
suspends those past the hard deadline, and sends cadence reminders.

Key behaviors:
- Fetch the overdue set once; a failed fetch aborts the run before any write
- Process obligations one at a time, each in its own transaction
- Escalations are monotonic, so re-running or resuming a run is always safe
- A failing obligation is reported as an error and never stops the batch
- Refresh outstanding-fee totals for every lawyer after the pass
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import (
    LawyerDB, ProfileDB, ComplianceLogDB, ComplianceRunDB,
    RemittanceStatus, ComplianceAction, ReminderStatus, ActorType,
)
from .escalation_policy import EscalationDecision, evaluate_escalation
from .reminder_cadence import ReminderCadenceController
from .notifier import NotificationResult, RemittanceNotifier, get_notifier
from .obligation_source import ObligationSource, RemittanceObligation
from .aggregate_refresh import OutstandingFeesAggregator


logger = logging.getLogger(__name__)


class LawyerNotFoundError(LookupError):
    """An obligation references a lawyer missing from the directory."""
    pass


class RemittanceComplianceScheduler:
    """
    Daily scheduler for remittance compliance.

    AUTHORITY: SYSTEM - Runs automatically via the scheduler endpoint.
    Status changes are recorded in the compliance log; lawyers are told
    through cadence reminders only.
    """

    def __init__(
        self,
        db_session: Session,
        notifier: Optional[RemittanceNotifier] = None,
        source: Optional[ObligationSource] = None,
        aggregator: Optional[OutstandingFeesAggregator] = None,
        dashboard_url: Optional[str] = None,
    ):
        self.db = db_session
        self.notifier = notifier or get_notifier()
        self.source = source or ObligationSource(db_session)
        self.aggregator = aggregator or OutstandingFeesAggregator(db_session)
        self.reminders = ReminderCadenceController(db_session, dashboard_url)

    def run_daily_compliance_check(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Run the daily remittance compliance pass.

        Raises ObligationFetchError if the overdue set cannot be read;
        every other failure is absorbed into the run report.
        """
        now = now or datetime.utcnow()

        obligations = self.source.fetch_overdue(now)
        logger.info(f"Found {len(obligations)} overdue remittance obligations")

        details = []
        errors = []
        reminders_sent = 0

        for obligation in obligations:
            try:
                outcome = self.process_obligation(obligation, now)
            except Exception as e:
                self.db.rollback()
                logger.error(
                    f"Remittance processing failed for transaction {obligation.transaction_id} "
                    f"(lawyer {obligation.lawyer_id}): {e}"
                )
                outcome = self._error_outcome(obligation, str(e))

            details.append(outcome)

            if outcome["action"] == ComplianceAction.ERROR.value:
                errors.append({
                    "transaction_id": obligation.transaction_id,
                    "lawyer_id": obligation.lawyer_id,
                    "error": outcome["error"],
                })
            if outcome["reminder"] == ReminderStatus.SENT.value:
                reminders_sent += 1

        try:
            aggregate_summary = self.aggregator.refresh_all(now)
        except Exception as e:
            # Display totals only; escalations and reminders above are already committed
            self.db.rollback()
            logger.error(f"Outstanding fees refresh failed: {e}")
            aggregate_summary = {
                "lawyers_refreshed": 0,
                "failed": 0,
                "failures": [],
                "listing_error": str(e),
            }

        report = {
            "success": True,
            "runDate": now.isoformat(),
            "processedCount": len(details),
            "remindersSent": reminders_sent,
            "errors": errors,
            "details": details,
            "aggregateRefresh": aggregate_summary,
        }

        self._record_run(now, report)

        logger.info(
            f"Remittance compliance run complete: {len(details)} processed, "
            f"{len(errors)} errors, {reminders_sent} reminders sent"
        )
        return report

    def process_obligation(self, obligation: RemittanceObligation, now: datetime) -> Dict[str, Any]:
        """
        Escalate and remind for one obligation.

        The escalation is committed before any reminder is attempted, so a
        failed notification never undoes a status change.
        """
        lawyer = self._load_lawyer(obligation.lawyer_id)

        decision = evaluate_escalation(lawyer.remittance_status, obligation.days_overdue)
        status_changed = self._apply_escalation(lawyer, obligation, decision, now)
        firm_name = lawyer.firm_name
        self.db.commit()

        reminder_status, reminder_error = self._send_reminder_if_due(obligation, lawyer, decision, now)

        outcome = {
            "transaction_id": obligation.transaction_id,
            "lawyer_id": obligation.lawyer_id,
            "firm_name": firm_name,
            "days_overdue": obligation.days_overdue,
            "action": decision.action.value,
            "new_status": decision.target_status.value,
            "status_changed": status_changed,
            "reminder": reminder_status.value,
        }
        if reminder_error:
            outcome["action"] = ComplianceAction.ERROR.value
            outcome["error"] = reminder_error

        return outcome

    # -------------------------------------------------------------------------
    # Directory reads/writes
    # -------------------------------------------------------------------------

    def _load_lawyer(self, lawyer_id: str) -> LawyerDB:
        # Row lock serialises status writes for one lawyer across overlapping runs
        lawyer = self.db.query(LawyerDB).filter(
            LawyerDB.id == lawyer_id
        ).with_for_update().first()

        if lawyer is None:
            raise LawyerNotFoundError(f"Lawyer {lawyer_id} not found")
        return lawyer

    def _load_profile(self, lawyer: LawyerDB) -> Optional[ProfileDB]:
        if not lawyer.profile_id:
            return None
        try:
            return self.db.query(ProfileDB).filter(ProfileDB.id == lawyer.profile_id).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Profile lookup failed for lawyer {lawyer.id}: {e}")
            return None

    def _apply_escalation(
        self,
        lawyer: LawyerDB,
        obligation: RemittanceObligation,
        decision: EscalationDecision,
        now: datetime,
    ) -> bool:
        """Write the decision to the lawyer record. Returns True if anything changed."""
        if not decision.changed:
            return False

        from_status = lawyer.remittance_status
        lawyer.remittance_status = decision.target_status
        lawyer.updated_at = now

        if decision.enters_suspension:
            lawyer.suspended_for_non_payment = True
            lawyer.suspension_date = now
            lawyer.available_for_matching = False

        self.db.add(ComplianceLogDB(
            id=str(uuid4()),
            lawyer_id=lawyer.id,
            transaction_id=obligation.transaction_id,
            from_status=from_status,
            to_status=decision.target_status,
            days_overdue=obligation.days_overdue,
            trigger="remittance_suspension" if decision.enters_suspension else "remittance_overdue",
            actor=ActorType.SYSTEM,
            created_at=now,
        ))

        if decision.enters_suspension:
            logger.info(f"Suspended lawyer {lawyer.firm_name} ({obligation.days_overdue} days overdue)")
        else:
            logger.info(
                f"Lawyer {lawyer.firm_name} escalated from {RemittanceStatus(from_status).value} "
                f"to {decision.target_status.value} ({obligation.days_overdue} days overdue)"
            )
        return True

    # -------------------------------------------------------------------------
    # Reminders
    # -------------------------------------------------------------------------

    def _send_reminder_if_due(
        self,
        obligation: RemittanceObligation,
        lawyer: LawyerDB,
        decision: EscalationDecision,
        now: datetime,
    ) -> Tuple[ReminderStatus, Optional[str]]:
        """Returns (reminder status, error message if dispatch failed)."""
        if not self.reminders.is_due(obligation.days_overdue):
            return ReminderStatus.NOT_DUE, None

        profile = self._load_profile(lawyer)
        if profile is None or not profile.email:
            logger.warning(
                f"No contact profile for lawyer {obligation.lawyer_id}; "
                f"reminder for transaction {obligation.transaction_id} skipped"
            )
            return ReminderStatus.SKIPPED, None

        claim = self.reminders.claim(obligation, profile.email, now)
        if claim is None:
            logger.info(
                f"Reminder for transaction {obligation.transaction_id} at "
                f"{obligation.days_overdue} days already claimed"
            )
            return ReminderStatus.DUPLICATE, None

        payload = self.reminders.build_payload(obligation, lawyer, profile, decision.action)

        try:
            result = self.notifier.send_reminder(payload)
        except Exception as e:
            result = NotificationResult(success=False, error=str(e))

        if not result.success:
            error = result.error or "Notification dispatch failed"
            logger.error(f"Reminder for transaction {obligation.transaction_id} failed: {error}")
            self.reminders.release(claim)
            return ReminderStatus.FAILED, error

        self.reminders.mark_sent(claim, now)
        return ReminderStatus.SENT, None

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    @staticmethod
    def _error_outcome(obligation: RemittanceObligation, error: str) -> Dict[str, Any]:
        return {
            "transaction_id": obligation.transaction_id,
            "lawyer_id": obligation.lawyer_id,
            "firm_name": None,
            "days_overdue": obligation.days_overdue,
            "action": ComplianceAction.ERROR.value,
            "new_status": None,
            "status_changed": False,
            "reminder": None,
            "error": error,
        }

    def _record_run(self, now: datetime, report: Dict[str, Any]) -> None:
        """Persist run history. Bookkeeping only - never fails the run."""
        try:
            self.db.add(ComplianceRunDB(
                id=str(uuid4()),
                started_at=now,
                completed_at=datetime.utcnow(),
                status="completed",
                processed_count=report["processedCount"],
                error_count=len(report["errors"]),
                reminders_sent=report["remindersSent"],
                result=report,
            ))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to record compliance run: {e}")
