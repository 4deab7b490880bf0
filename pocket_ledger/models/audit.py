"""
Audit Models for Pocket Ledger

Every change the ledger makes on its own (simulated returns, checkpoint
moves, cascade deletes) and every rejected transaction is logged.
This provides:
1. Traceability of simulated growth back to the run that created it
2. Debugging information when balances look wrong
3. Ability to reconstruct what happened to a goal

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import datetime as dt
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from pocket_ledger.models.ledger import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accrual
    ACCRUAL_COMPLETED = "accrual_completed"
    ACCRUAL_CAPPED = "accrual_capped"
    CHECKPOINT_AHEAD_OF_TODAY = "checkpoint_ahead_of_today"

    # Transactions
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSACTION_REJECTED = "transaction_rejected"
    TRANSACTION_DELETED = "transaction_deleted"
    DATE_CORRECTED = "date_corrected"

    # Pockets & goals
    POCKET_CREATED = "pocket_created"
    POCKET_DELETED = "pocket_deleted"
    GOAL_CREATED = "goal_created"
    GOAL_DELETED = "goal_deleted"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: dt.datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'goal', 'pocket', 'transaction')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one refresh of all goals)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.accrual_completed(goal_id, 164, 1, ...)
        event = AuditEventBuilder.goal_deleted(goal_id, removed_entries=12)
    """

    @staticmethod
    def accrual_completed(
        goal_id: str,
        total_added: int,
        days_processed: int,
        checkpoint: Optional[dt.date],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCRUAL_COMPLETED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Accrued {total_added} over {days_processed} day(s)",
            details={
                "total_added": total_added,
                "days_processed": days_processed,
                "checkpoint": checkpoint.isoformat() if checkpoint else None,
            },
        )

    @staticmethod
    def accrual_capped(
        goal_id: str,
        days_processed: int,
        checkpoint: Optional[dt.date],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCRUAL_CAPPED,
            severity=AuditSeverity.WARNING,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Accrual stopped after {days_processed} day(s); will resume on next run",
            details={
                "days_processed": days_processed,
                "checkpoint": checkpoint.isoformat() if checkpoint else None,
            },
        )

    @staticmethod
    def checkpoint_ahead_of_today(
        goal_id: str,
        checkpoint: dt.date,
        today: dt.date,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHECKPOINT_AHEAD_OF_TODAY,
            severity=AuditSeverity.WARNING,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description="Checkpoint is after today; no days processed",
            details={
                "checkpoint": checkpoint.isoformat(),
                "today": today.isoformat(),
            },
        )

    @staticmethod
    def transaction_recorded(
        transaction_id: str,
        kind: str,
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Recorded {kind} of {amount}",
            details={"kind": kind, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(
        transaction_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction rejected with {len(issues)} issue(s)",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def date_corrected(
        transaction_id: str,
        requested: dt.date,
        corrected: dt.date,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATE_CORRECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Future date corrected: {requested} -> {corrected}",
            details={
                "requested": requested.isoformat(),
                "corrected": corrected.isoformat(),
            },
        )

    @staticmethod
    def pocket_created(pocket_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.POCKET_CREATED,
            entity_type="pocket",
            entity_id=pocket_id,
            description=f"Pocket created: {name}",
            is_user_action=True,
        )

    @staticmethod
    def pocket_deleted(
        pocket_id: str,
        removed_transactions: int,
        compensating_transactions: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.POCKET_DELETED,
            entity_type="pocket",
            entity_id=pocket_id,
            description="Pocket deleted",
            details={
                "removed_transactions": removed_transactions,
                "compensating_transactions": compensating_transactions,
            },
            is_user_action=True,
        )

    @staticmethod
    def goal_created(goal_id: str, name: str, kind: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CREATED,
            entity_type="goal",
            entity_id=goal_id,
            description=f"Goal created: {name}",
            details={"kind": kind},
            is_user_action=True,
        )

    @staticmethod
    def goal_deleted(goal_id: str, removed_entries: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_DELETED,
            entity_type="goal",
            entity_id=goal_id,
            description="Goal deleted together with its investment activity",
            details={"removed_activity_entries": removed_entries},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
