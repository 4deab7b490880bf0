"""
Audit Logger

DESIGN DECISION: Everything the ledger does on the user's behalf is logged.
This provides:
1. Traceability of simulated growth
2. Debugging capability when a balance looks wrong
3. A history the user can inspect

The audit logger:
- Always writes a structured local log line
- Gracefully handles storage failures (never breaks the main flow)
- Supports correlation IDs to trace related events
"""

import datetime as dt
from typing import Optional
from uuid import UUID, uuid4

import structlog

from pocket_ledger.models.audit import AuditEvent, AuditEventBuilder
from pocket_ledger.models.ledger import AccrualResult
from pocket_ledger.services.storage import AuditStorageInterface, StorageError


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit collection in storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("pocket_ledger.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except StorageError as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_accrual(
        self,
        result: AccrualResult,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log the outcome of one accrual run (nothing is logged for no-op runs)."""
        if result.skipped_reason or not result.days_processed:
            return
        self.log(AuditEventBuilder.accrual_completed(
            goal_id=result.goal_id,
            total_added=result.total_added,
            days_processed=result.days_processed,
            checkpoint=result.checkpoint,
            correlation_id=correlation_id,
        ))
        if result.capped:
            self.log(AuditEventBuilder.accrual_capped(
                goal_id=result.goal_id,
                days_processed=result.days_processed,
                checkpoint=result.checkpoint,
                correlation_id=correlation_id,
            ))

    def log_checkpoint_ahead(
        self,
        goal_id: str,
        checkpoint: dt.date,
        today: dt.date,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.checkpoint_ahead_of_today(
            goal_id=goal_id,
            checkpoint=checkpoint,
            today=today,
            correlation_id=correlation_id,
        ))

    def log_transaction_recorded(
        self,
        transaction_id: str,
        kind: str,
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_recorded(
            transaction_id=transaction_id,
            kind=kind,
            amount=amount,
            correlation_id=correlation_id,
        ))

    def log_transaction_rejected(
        self,
        transaction_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_rejected(
            transaction_id=transaction_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    def log_transaction_deleted(self, transaction_id: str) -> None:
        self.log(AuditEventBuilder.transaction_deleted(transaction_id))

    def log_date_corrected(
        self,
        transaction_id: str,
        requested: dt.date,
        corrected: dt.date,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.date_corrected(
            transaction_id=transaction_id,
            requested=requested,
            corrected=corrected,
            correlation_id=correlation_id,
        ))

    def log_pocket_created(self, pocket_id: str, name: str) -> None:
        self.log(AuditEventBuilder.pocket_created(pocket_id, name))

    def log_pocket_deleted(
        self,
        pocket_id: str,
        removed_transactions: int,
        compensating_transactions: int,
    ) -> None:
        self.log(AuditEventBuilder.pocket_deleted(
            pocket_id=pocket_id,
            removed_transactions=removed_transactions,
            compensating_transactions=compensating_transactions,
        ))

    def log_goal_created(self, goal_id: str, name: str, kind: str) -> None:
        self.log(AuditEventBuilder.goal_created(goal_id, name, kind))

    def log_goal_deleted(self, goal_id: str, removed_entries: int) -> None:
        self.log(AuditEventBuilder.goal_deleted(goal_id, removed_entries))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user-visible action (e.g., loading the
    goals view). Pass it through all subsequent operations.
    """
    return uuid4()
