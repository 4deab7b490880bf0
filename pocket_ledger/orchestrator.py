"""
Main Orchestrator for Pocket Ledger

This module ties together storage, validation, the balance engine and
audit logging, and defines the end-to-end flows for:
1. Transactions (draft → validate → save → audit)
2. Goals (create, delete, refresh: accrue → reload → display balances)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No transaction is stored before the validator accepts it
- No investment balance is shown before accrual has run for the day
- Every step is audited

The engine itself never writes. Everything that persists goes through
here (or through `DailyAccrualSimulator`, which the goal flow drives).
"""

import datetime as dt
import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from pocket_ledger.audit import AuditLogger, create_correlation_id
from pocket_ledger.config import get_settings
from pocket_ledger.engine import (
    DailyAccrualSimulator,
    GoalBalanceFacade,
    pocket_balances,
)
from pocket_ledger.models.ledger import (
    MAIN_POCKET_ID,
    Goal,
    GoalBalanceView,
    GoalKind,
    Pocket,
    PocketKind,
    Transaction,
    TransactionDraft,
    TransactionKind,
    ValidationResult,
    utc_now,
    utc_today,
)
from pocket_ledger.services.storage import (
    ActivityStorageInterface,
    GoalStorageInterface,
    KeyValueActivityStorage,
    KeyValueAuditStorage,
    KeyValueGoalStorage,
    KeyValuePocketStorage,
    KeyValueStore,
    KeyValueTransactionStorage,
    PocketStorageInterface,
    StorageError,
    TransactionStorageInterface,
    create_key_value_store,
)
from pocket_ledger.validation import TransactionValidator


logger = structlog.get_logger(__name__)


class TransactionRejectedError(Exception):
    """Raised when the validator refuses a transaction."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = [i.message for i in result.issues if i.severity == "error"]
        super().__init__("; ".join(messages) or "Transaction rejected")


class PocketDeletionError(Exception):
    """Raised when a pocket can't be deleted."""
    pass


def _goal_snapshot(
    goal_storage: GoalStorageInterface,
    transactions: list[Transaction],
    activity_storage: Optional[ActivityStorageInterface],
) -> GoalBalanceFacade:
    activities = activity_storage.all_entries() if activity_storage else None
    return GoalBalanceFacade(goal_storage.list_goals(), transactions, activities)


class TransactionFlow:
    """
    Orchestrates recording and removing transactions.

    Flow:
    1. Build a TransactionDraft from the request
    2. Validate → two-stage validation
    3. Reject → raise TransactionRejectedError (audited)
    4. Save → persist the accepted Transaction (audited)

    Withdrawals from a goal are checked against its display balance,
    so accrual runs first for that goal.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        pocket_storage: PocketStorageInterface,
        goal_storage: GoalStorageInterface,
        activity_storage: Optional[ActivityStorageInterface] = None,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        simulator: Optional[DailyAccrualSimulator] = None,
    ):
        self._transactions = transaction_storage
        self._pockets = pocket_storage
        self._goals = goal_storage
        self._activities = activity_storage
        self._validator = validator or TransactionValidator(pocket_storage, goal_storage)
        self._audit_logger = audit_logger
        self._simulator = simulator
        if self._simulator is None and activity_storage is not None:
            self._simulator = DailyAccrualSimulator(goal_storage, activity_storage, audit_logger)

    def _record(
        self,
        draft: TransactionDraft,
        today: Optional[dt.date],
        correlation_id: Optional[UUID],
        goal_balances: Optional[dict[str, int]] = None,
    ) -> tuple[Transaction, ValidationResult]:
        correlation_id = correlation_id or create_correlation_id()
        today = today or utc_today()

        result = self._validator.validate(draft, today=today, goal_balances=goal_balances)

        if not result.is_valid:
            if self._audit_logger:
                issues = [
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in result.issues
                ]
                self._audit_logger.log_transaction_rejected(
                    transaction_id=draft.id,
                    issues=issues,
                    correlation_id=correlation_id,
                )
            raise TransactionRejectedError(result)

        if draft.date and draft.date != result.effective_date:
            logger.warning(
                "transaction_date_corrected",
                transaction_id=draft.id,
                requested=draft.date.isoformat(),
                corrected=result.effective_date.isoformat(),
            )
            if self._audit_logger:
                self._audit_logger.log_date_corrected(
                    transaction_id=draft.id,
                    requested=draft.date,
                    corrected=result.effective_date,
                    correlation_id=correlation_id,
                )

        transaction = self._transactions.save_transaction(
            draft.to_transaction(result.effective_date)
        )

        if self._audit_logger:
            self._audit_logger.log_transaction_recorded(
                transaction_id=transaction.id,
                kind=transaction.kind.value,
                amount=transaction.amount,
                correlation_id=correlation_id,
            )

        return transaction, result

    def record_income(
        self,
        amount: int,
        pocket_id: str = MAIN_POCKET_ID,
        goal_id: Optional[str] = None,
        description: str = "",
        category: str = "",
        date: Optional[dt.date] = None,
        today: Optional[dt.date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, ValidationResult]:
        """
        Record income into a pocket, or directly into a goal.

        Returns:
            (transaction, validation_result); the result carries any warnings
        """
        draft = TransactionDraft(
            kind=TransactionKind.INCOME,
            amount=amount,
            description=description,
            category=category,
            source_pocket_id=None if goal_id else pocket_id,
            source_goal_id=goal_id,
            date=date,
        )
        return self._record(draft, today, correlation_id)

    def record_expense(
        self,
        amount: int,
        pocket_id: str = MAIN_POCKET_ID,
        description: str = "",
        category: str = "",
        date: Optional[dt.date] = None,
        today: Optional[dt.date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, ValidationResult]:
        draft = TransactionDraft(
            kind=TransactionKind.EXPENSE,
            amount=amount,
            description=description,
            category=category,
            source_pocket_id=pocket_id,
            date=date,
        )
        return self._record(draft, today, correlation_id)

    def transfer_between_pockets(
        self,
        amount: int,
        source_pocket_id: str,
        target_pocket_id: str,
        description: str = "",
        date: Optional[dt.date] = None,
        today: Optional[dt.date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, ValidationResult]:
        draft = TransactionDraft(
            kind=TransactionKind.TRANSFER,
            amount=amount,
            description=description,
            source_pocket_id=source_pocket_id,
            target_pocket_id=target_pocket_id,
            date=date,
        )
        return self._record(draft, today, correlation_id)

    def allocate_to_goal(
        self,
        amount: int,
        goal_id: str,
        source_pocket_id: str = MAIN_POCKET_ID,
        description: str = "",
        date: Optional[dt.date] = None,
        today: Optional[dt.date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, ValidationResult]:
        """Move money from a pocket into a goal."""
        draft = TransactionDraft(
            kind=TransactionKind.TRANSFER,
            amount=amount,
            description=description or "Transfer to goal",
            source_pocket_id=source_pocket_id,
            target_goal_id=goal_id,
            date=date,
        )
        return self._record(draft, today, correlation_id)

    def withdraw_from_goal(
        self,
        amount: int,
        goal_id: str,
        target_pocket_id: str = MAIN_POCKET_ID,
        description: str = "",
        date: Optional[dt.date] = None,
        today: Optional[dt.date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, ValidationResult]:
        """
        Move money from a goal back into a pocket.

        The amount may not exceed the goal's current balance, including
        any simulated returns accrued up to today.
        """
        correlation_id = correlation_id or create_correlation_id()
        today = today or utc_today()

        transactions = self._transactions.list_transactions()
        goal = self._goals.get_goal(goal_id)
        if goal is not None and goal.accrues_returns and self._simulator:
            self._simulator.accrue(goal, transactions, today=today, correlation_id=correlation_id)

        facade = _goal_snapshot(self._goals, transactions, self._activities)

        draft = TransactionDraft(
            kind=TransactionKind.TRANSFER,
            amount=amount,
            description=description or "Withdrawal from goal",
            source_goal_id=goal_id,
            target_pocket_id=target_pocket_id,
            date=date,
        )
        return self._record(draft, today, correlation_id, goal_balances=facade.balances())

    def create_pocket(
        self,
        name: str,
        kind: PocketKind = PocketKind.SPENDING,
        icon: str = "📦",
        color: Optional[str] = None,
    ) -> Pocket:
        if kind == PocketKind.MAIN:
            raise ValueError("There can only be one Main Pocket")
        pocket = self._pockets.save_pocket(Pocket(name=name, kind=kind, icon=icon, color=color))
        if self._audit_logger:
            self._audit_logger.log_pocket_created(pocket.id, pocket.name)
        return pocket

    def delete_transaction(self, transaction_id: str) -> bool:
        deleted = self._transactions.delete_transaction(transaction_id)
        if deleted and self._audit_logger:
            self._audit_logger.log_transaction_deleted(transaction_id)
        return deleted

    def delete_pocket(self, pocket_id: str) -> tuple[int, int]:
        """
        Delete a pocket without changing any other account's balance.

        - A transfer out of the pocket becomes income in its target
        - A transfer into the pocket becomes an expense in its source
        - Every other transaction of the pocket is removed

        Returns:
            (removed_transactions, compensating_transactions)

        Raises:
            PocketDeletionError: pocket is unknown or is the main pocket
        """
        pocket = self._pockets.get_pocket(pocket_id)
        if pocket is None:
            raise PocketDeletionError(f"Pocket not found: {pocket_id}")
        if pocket.is_main:
            raise PocketDeletionError("Cannot delete Main Pocket")

        kept: list[Transaction] = []
        removed = 0
        compensating = 0
        now = utc_now()

        for tx in self._transactions.list_transactions():
            outgoing = tx.source_pocket_id == pocket_id and not tx.source_goal_id
            incoming = tx.target_pocket_id == pocket_id and not tx.target_goal_id

            if tx.kind == TransactionKind.TRANSFER and outgoing and not incoming:
                kept.append(Transaction.model_validate({
                    **tx.model_dump(),
                    "kind": TransactionKind.INCOME,
                    "source_pocket_id": tx.target_pocket_id,
                    "source_goal_id": tx.target_goal_id,
                    "target_pocket_id": None,
                    "target_goal_id": None,
                    "updated_at": now,
                }))
                compensating += 1
            elif tx.kind == TransactionKind.TRANSFER and incoming and not outgoing:
                kept.append(Transaction.model_validate({
                    **tx.model_dump(),
                    "kind": TransactionKind.EXPENSE,
                    "target_pocket_id": None,
                    "target_goal_id": None,
                    "updated_at": now,
                }))
                compensating += 1
            elif outgoing or incoming:
                removed += 1
            else:
                kept.append(tx)

        self._transactions.replace_all(kept)
        self._pockets.delete_pocket(pocket_id)

        logger.info(
            "pocket_deleted",
            pocket_id=pocket_id,
            removed_transactions=removed,
            compensating_transactions=compensating,
        )
        if self._audit_logger:
            self._audit_logger.log_pocket_deleted(
                pocket_id=pocket_id,
                removed_transactions=removed,
                compensating_transactions=compensating,
            )

        return removed, compensating


class GoalFlow:
    """
    Orchestrates goals and their display balances.

    CRITICAL: `refresh` runs accrual BEFORE building balances. Reading
    investment balances any other way shows yesterday's numbers.
    """

    def __init__(
        self,
        goal_storage: GoalStorageInterface,
        transaction_storage: TransactionStorageInterface,
        activity_storage: ActivityStorageInterface,
        pocket_storage: Optional[PocketStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        simulator: Optional[DailyAccrualSimulator] = None,
    ):
        self._goals = goal_storage
        self._transactions = transaction_storage
        self._activities = activity_storage
        self._pockets = pocket_storage
        self._audit_logger = audit_logger
        self._simulator = simulator or DailyAccrualSimulator(
            goal_storage, activity_storage, audit_logger
        )

    def create_goal(
        self,
        name: str,
        target_amount: int,
        duration_months: int,
        kind: GoalKind = GoalKind.SAVING,
        annual_return_percentage: Optional[Decimal] = None,
        icon: str = "🎯",
        color: Optional[str] = None,
        today: Optional[dt.date] = None,
    ) -> Goal:
        """
        Create a goal.

        Investment goals start their checkpoint today, so returns begin
        accruing tomorrow.
        """
        goal = Goal(
            name=name,
            kind=kind,
            target_amount=target_amount,
            duration_months=duration_months,
            annual_return_percentage=annual_return_percentage,
            last_return_calculation_date=(
                (today or utc_today()) if kind == GoalKind.INVESTMENT else None
            ),
            icon=icon,
            color=color,
        )
        self._goals.save_goal(goal)

        if self._audit_logger:
            self._audit_logger.log_goal_created(goal.id, goal.name, goal.kind.value)

        return goal

    def delete_goal(self, goal_id: str) -> bool:
        """Delete a goal together with its activity entries."""
        if not self._goals.delete_goal(goal_id):
            return False
        removed_entries = self._activities.delete_for_goal(goal_id)

        if self._audit_logger:
            self._audit_logger.log_goal_deleted(goal_id, removed_entries)

        return True

    def refresh(
        self,
        today: Optional[dt.date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[GoalBalanceView]:
        """
        Bring every investment goal up to today and return display balances.

        Safe to call any number of times a day; later calls add nothing.
        """
        correlation_id = correlation_id or create_correlation_id()
        today = today or utc_today()

        if self._pockets:
            self._pockets.ensure_main_pocket()

        transactions = self._transactions.list_transactions()

        for goal in self._goals.list_goals():
            if not goal.accrues_returns:
                continue
            try:
                self._simulator.accrue(
                    goal, transactions, today=today, correlation_id=correlation_id
                )
            except StorageError as e:
                if self._audit_logger:
                    self._audit_logger.log_error(
                        error_type="accrual_failed",
                        error_message=str(e),
                        details={"goal_id": goal.id},
                        correlation_id=correlation_id,
                    )
                raise

        # Reload: accrual moved checkpoints and appended entries
        return _goal_snapshot(self._goals, transactions, self._activities).views()

    def pocket_balances(self) -> dict[str, int]:
        """Balance of every pocket, including pockets with no transactions."""
        pocket_ids = [p.id for p in self._pockets.list_pockets()] if self._pockets else []
        return pocket_balances(self._transactions.list_transactions(), pocket_ids)


def create_app_components(
    store: Optional[KeyValueStore] = None,
) -> tuple[TransactionFlow, GoalFlow]:
    """
    Factory function to create all application components.

    Args:
        store: Key-value store to use. If None, one is created from
               settings (JSON files by default).

    Returns:
        (transaction_flow, goal_flow)
    """
    logging.getLogger("pocket_ledger").setLevel(get_settings().app.log_level)

    if store is None:
        store = create_key_value_store()

    transaction_storage = KeyValueTransactionStorage(store)
    pocket_storage = KeyValuePocketStorage(store)
    goal_storage = KeyValueGoalStorage(store)
    activity_storage = KeyValueActivityStorage(store)
    audit_logger = AuditLogger(KeyValueAuditStorage(store))

    pocket_storage.ensure_main_pocket()

    simulator = DailyAccrualSimulator(goal_storage, activity_storage, audit_logger)

    transaction_flow = TransactionFlow(
        transaction_storage=transaction_storage,
        pocket_storage=pocket_storage,
        goal_storage=goal_storage,
        activity_storage=activity_storage,
        audit_logger=audit_logger,
        simulator=simulator,
    )

    goal_flow = GoalFlow(
        goal_storage=goal_storage,
        transaction_storage=transaction_storage,
        activity_storage=activity_storage,
        pocket_storage=pocket_storage,
        audit_logger=audit_logger,
        simulator=simulator,
    )

    return transaction_flow, goal_flow
