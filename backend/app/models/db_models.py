"""
Remittance Compliance Engine - SQLAlchemy ORM Models
PostgreSQL database models for persistent storage
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, String, Integer, Numeric, DateTime, Text, JSON, ForeignKey,
    Enum as SQLEnum, Boolean, Date, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from ..database import Base


# =============================================================================
# ENUMS FOR REMITTANCE COMPLIANCE
# =============================================================================

class RemittanceStatus(str, Enum):
    """Lawyer compliance status, ordered by severity."""
    CURRENT = "current"
    WARNING = "warning"
    OVERDUE = "overdue"
    SUSPENDED = "suspended"


class ComplianceAction(str, Enum):
    """Per-obligation action recorded in the run report."""
    NONE = "none"
    WARNING_STATUS = "warning_status"
    OVERDUE_STATUS = "overdue_status"
    SUSPENDED = "suspended"
    ERROR = "error"


class ReminderStatus(str, Enum):
    """Outcome of the reminder step for one obligation."""
    NOT_DUE = "not_due"
    SENT = "sent"
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"
    FAILED = "failed"


class ActorType(str, Enum):
    """Actor types for the compliance log."""
    SYSTEM = "SYSTEM"
    ADMIN = "ADMIN"


class TransactionStatus(str, Enum):
    """Subset of transaction lifecycle states the engine reads."""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# =============================================================================
# LAWYER DIRECTORY
# =============================================================================

class ProfileDB(Base):
    """Contact profile for a platform user (lawyers included)."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class LawyerDB(Base):
    """
    Conveyancing lawyer and their remittance compliance record.

    remittance_status only ever moves towards SUSPENDED under the engine.
    Reinstatement back to CURRENT is an admin action outside the engine.
    """
    __tablename__ = "lawyers"

    id = Column(String(36), primary_key=True)  # UUID
    profile_id = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    firm_name = Column(String(255), nullable=False)

    # ==========================================================================
    # COMPLIANCE STATE - written by the compliance engine
    # ==========================================================================
    remittance_status = Column(SQLEnum(RemittanceStatus, native_enum=False, length=20), default=RemittanceStatus.CURRENT, nullable=False)
    suspended_for_non_payment = Column(Boolean, default=False, nullable=False)
    suspension_date = Column(DateTime, nullable=True)  # Set once, on entry into SUSPENDED
    available_for_matching = Column(Boolean, default=True, nullable=False)  # Engine only ever sets False

    # ==========================================================================
    # DISPLAY AGGREGATE - written by OutstandingFeesAggregator only
    # ==========================================================================
    outstanding_fees_total = Column(Numeric(12, 2), default=0, nullable=False)
    outstanding_fees_updated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    profile = relationship("ProfileDB")
    transactions = relationship("TransactionDB", back_populates="lawyer")
    compliance_log = relationship("ComplianceLogDB", back_populates="lawyer", cascade="all, delete-orphan")


class TransactionDB(Base):
    """
    Closed property transaction on which the lawyer collected the platform fee.
    An unremitted, collected fee is a remittance obligation.
    """
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True)  # UUID
    lawyer_id = Column(String(36), ForeignKey("lawyers.id", ondelete="SET NULL"), nullable=True, index=True)
    settlement_reference = Column(String(100), nullable=True)
    status = Column(SQLEnum(TransactionStatus), default=TransactionStatus.PENDING, nullable=False)

    # Fee owed to the platform
    platform_fee_amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="ZAR")  # ISO 4217

    # Remittance lifecycle
    deal_closed_at = Column(DateTime, nullable=True)
    fee_collected = Column(Boolean, default=False, nullable=False)
    fee_remitted = Column(Boolean, default=False, nullable=False)
    fee_remitted_at = Column(DateTime, nullable=True)
    remittance_due_date = Column(Date, nullable=True)  # Falls back to deal_closed_at + grace period
    remittance_reminder_sent_at = Column(DateTime, nullable=True)  # Set only after a successful send

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    lawyer = relationship("LawyerDB", back_populates="transactions")


# =============================================================================
# COMPLIANCE ENGINE RECORDS
# =============================================================================

class ComplianceLogDB(Base):
    """
    Immutable log of remittance status transitions.
    Append-only - records every escalation the engine applies.
    """
    __tablename__ = "compliance_log"

    id = Column(String(36), primary_key=True)  # UUID
    lawyer_id = Column(String(36), ForeignKey("lawyers.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_id = Column(String(36), nullable=True, index=True)  # Obligation that triggered it

    # Status Transition
    from_status = Column(SQLEnum(RemittanceStatus), nullable=False)
    to_status = Column(SQLEnum(RemittanceStatus), nullable=False)
    days_overdue = Column(Integer, nullable=True)

    # Trigger Information
    trigger = Column(String(100), nullable=False)  # remittance_overdue, remittance_suspension
    actor = Column(SQLEnum(ActorType), nullable=False, default=ActorType.SYSTEM)

    # Timestamps (immutable)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    lawyer = relationship("LawyerDB", back_populates="compliance_log")


class ReminderDispatchDB(Base):
    """
    Claim on a single reminder milestone for a transaction.

    The unique (transaction_id, days_overdue) pair is the compare-and-set
    guard: only the run that inserts the row may dispatch the reminder.
    """
    __tablename__ = "remittance_reminders"
    __table_args__ = (
        UniqueConstraint("transaction_id", "days_overdue", name="uq_remittance_reminder_milestone"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    transaction_id = Column(String(36), nullable=False, index=True)
    lawyer_id = Column(String(36), nullable=False, index=True)
    days_overdue = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default="claimed")  # claimed, sent
    recipient = Column(String(255), nullable=True)

    claimed_at = Column(DateTime, nullable=False)
    sent_at = Column(DateTime, nullable=True)


class ComplianceRunDB(Base):
    """
    Tracks each scheduled compliance run for operators.
    Only written once the overdue set has been fetched successfully.
    """
    __tablename__ = "compliance_runs"

    id = Column(String(36), primary_key=True)  # UUID

    started_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    # Status
    status = Column(String(20), default="running")  # running, completed
    processed_count = Column(Integer, default=0)
    error_count = Column(Integer, default=0)
    reminders_sent = Column(Integer, default=0)
    result = Column(JSON, nullable=True)            # Full run report
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
