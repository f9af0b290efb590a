"""Remittance Compliance Engine - Data Models"""
from .db_models import (
    # Enums
    RemittanceStatus, ComplianceAction, ReminderStatus, ActorType, TransactionStatus,
    # Lawyer directory
    ProfileDB, LawyerDB, TransactionDB,
    # Engine records
    ComplianceLogDB, ReminderDispatchDB, ComplianceRunDB,
)

__all__ = [
    "RemittanceStatus", "ComplianceAction", "ReminderStatus", "ActorType", "TransactionStatus",
    "ProfileDB", "LawyerDB", "TransactionDB",
    "ComplianceLogDB", "ReminderDispatchDB", "ComplianceRunDB",
]
