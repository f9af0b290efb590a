"""
Remittance Compliance Services

Overdue platform-fee escalation for conveyancing lawyers:
- Escalation policy: days overdue -> lawyer remittance status
- Reminder cadence: milestone reminders with per-milestone claims
- Compliance orchestrator: the daily batch run
- Outstanding fees aggregator: post-pass display totals
"""

from .escalation_policy import (
    EscalationDecision,
    evaluate_escalation,
    severity,
    most_severe,
)
from .obligation_source import ObligationSource, ObligationFetchError, RemittanceObligation
from .reminder_cadence import ReminderCadenceController, ReminderPayload, REMINDER_CADENCE
from .notifier import (
    RemittanceNotifier,
    LoggingNotifier,
    SmtpNotifier,
    NotificationResult,
    get_notifier,
)
from .aggregate_refresh import OutstandingFeesAggregator
from .compliance_orchestrator import RemittanceComplianceScheduler, LawyerNotFoundError

__all__ = [
    'EscalationDecision',
    'evaluate_escalation',
    'severity',
    'most_severe',
    'ObligationSource',
    'ObligationFetchError',
    'RemittanceObligation',
    'ReminderCadenceController',
    'ReminderPayload',
    'REMINDER_CADENCE',
    'RemittanceNotifier',
    'LoggingNotifier',
    'SmtpNotifier',
    'NotificationResult',
    'get_notifier',
    'OutstandingFeesAggregator',
    'RemittanceComplianceScheduler',
    'LawyerNotFoundError',
]
