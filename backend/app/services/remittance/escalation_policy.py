"""
Remittance Escalation Policy

Deterministic mapping from (current status, days overdue) to a target status.
Pure functions only - no database access, no side effects.

Statuses only move forward:
    current -> warning -> overdue -> suspended
The engine never downgrades a lawyer. Reinstatement is an admin action.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ...models.db_models import RemittanceStatus, ComplianceAction


# =============================================================================
# STATUS CONFIGURATION
# =============================================================================

STATUS_CONFIG = {
    RemittanceStatus.CURRENT: {
        "severity": 0,
        "description": "All platform fees remitted within the grace period",
        "available_for_matching": True,
    },
    RemittanceStatus.WARNING: {
        "severity": 1,
        "description": "Remittance 15+ days overdue",
        "available_for_matching": True,
    },
    RemittanceStatus.OVERDUE: {
        "severity": 2,
        "description": "Remittance 45+ days overdue",
        "available_for_matching": True,
    },
    RemittanceStatus.SUSPENDED: {
        "severity": 3,
        "description": "Remittance 60+ days overdue - removed from client matching",
        "available_for_matching": False,
    },
}

STATUS_SEVERITY: Dict[RemittanceStatus, int] = {
    status: config["severity"] for status, config in STATUS_CONFIG.items()
}

# Evaluated most severe first; first match wins.
ESCALATION_THRESHOLDS: List[Tuple[int, RemittanceStatus, ComplianceAction]] = [
    (60, RemittanceStatus.SUSPENDED, ComplianceAction.SUSPENDED),
    (45, RemittanceStatus.OVERDUE, ComplianceAction.OVERDUE_STATUS),
    (15, RemittanceStatus.WARNING, ComplianceAction.WARNING_STATUS),
]

SUSPENSION_THRESHOLD_DAYS = ESCALATION_THRESHOLDS[0][0]


def severity(status: RemittanceStatus) -> int:
    """Severity rank of a status (current=0 ... suspended=3)."""
    return STATUS_SEVERITY[RemittanceStatus(status)]


def most_severe(*statuses: RemittanceStatus) -> RemittanceStatus:
    """Return the most severe of the given statuses."""
    if not statuses:
        raise ValueError("most_severe() requires at least one status")
    return max((RemittanceStatus(s) for s in statuses), key=severity)


def threshold_for(days_overdue: int) -> Tuple[Optional[RemittanceStatus], ComplianceAction]:
    """
    Status tier implied by days overdue alone.

    Returns (status, action); status is None below the warning threshold.
    """
    for min_days, status, action in ESCALATION_THRESHOLDS:
        if days_overdue >= min_days:
            return status, action
    return None, ComplianceAction.NONE


@dataclass(frozen=True)
class EscalationDecision:
    """Result of evaluating one obligation against a lawyer's status."""
    current_status: RemittanceStatus
    target_status: RemittanceStatus
    action: ComplianceAction
    days_overdue: int

    @property
    def changed(self) -> bool:
        return self.target_status != self.current_status

    @property
    def enters_suspension(self) -> bool:
        return self.changed and self.target_status == RemittanceStatus.SUSPENDED


def evaluate_escalation(
    current_status: RemittanceStatus,
    days_overdue: int,
) -> EscalationDecision:
    """
    Compute the target status for a lawyer given one overdue obligation.

    The target is never less severe than current_status, so applying
    decisions for several obligations in any order yields the worst
    severity across them.
    """
    if days_overdue < 0:
        raise ValueError(f"days_overdue must be non-negative, got {days_overdue}")

    current_status = RemittanceStatus(current_status)
    implied_status, action = threshold_for(days_overdue)

    # Suspension is entered once; later 60+ day obligations report as overdue
    if action == ComplianceAction.SUSPENDED and current_status == RemittanceStatus.SUSPENDED:
        action = ComplianceAction.OVERDUE_STATUS

    if implied_status is None:
        target_status = current_status
    else:
        target_status = most_severe(current_status, implied_status)

    return EscalationDecision(
        current_status=current_status,
        target_status=target_status,
        action=action,
        days_overdue=days_overdue,
    )
