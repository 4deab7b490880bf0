"""
Data Models Package

This package contains all Pydantic models used by Pocket Ledger.
Every record read from or written to storage conforms to these schemas.
"""

from pocket_ledger.models.ledger import (
    MAIN_POCKET_ID,
    AccrualResult,
    Goal,
    GoalBalanceView,
    GoalKind,
    InvestmentActivityEntry,
    InvestmentState,
    Pocket,
    PocketKind,
    Transaction,
    TransactionDraft,
    TransactionKind,
    ValidationIssue,
    ValidationResult,
    new_id,
    utc_now,
    utc_today,
)
from pocket_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "MAIN_POCKET_ID",
    "AccrualResult",
    "Goal",
    "GoalBalanceView",
    "GoalKind",
    "InvestmentActivityEntry",
    "InvestmentState",
    "Pocket",
    "PocketKind",
    "Transaction",
    "TransactionDraft",
    "TransactionKind",
    "ValidationIssue",
    "ValidationResult",
    "new_id",
    "utc_now",
    "utc_today",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
