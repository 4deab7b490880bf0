"""
Two-Stage Transaction Validation

The balance engine assumes a pre-validated transaction set. This is the
boundary where that assumption is made true.

STAGE 1 - SCHEMA VALIDATION:
- Amount must be positive
- The right accounts must be present for the kind
- Transfer source and target must differ
- Goals only receive income directly

STAGE 2 - SEMANTIC VALIDATION:
- Future dates are corrected to today (reported as a warning)
- A goal withdrawal dated before the goal's accrual checkpoint is moved
  to the checkpoint (reported as a warning)
- Referenced pockets and goals must exist
- A withdrawal can't take more than the goal currently holds

WHY TWO STAGES:
1. Stage 2 needs storage and balances, stage 1 doesn't
2. Better error messages (know exactly what kind of issue)
3. Can skip stage 2 if stage 1 fails

IMPORTANT: Apart from the two date corrections, validation NEVER
silently fixes anything. It reports issues; the flow decides.
"""

import datetime as dt
from typing import Mapping, Optional

import structlog

from pocket_ledger.config import get_settings
from pocket_ledger.models.ledger import (
    TransactionDraft,
    TransactionKind,
    ValidationIssue,
    ValidationResult,
    utc_today,
)
from pocket_ledger.services.storage import (
    GoalStorageInterface,
    PocketStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class TransactionValidator:
    """
    Validates transaction drafts through a two-stage pipeline.

    Stage 1: Schema validation (can run without storage)
    Stage 2: Semantic validation (uses storage for existence checks)
    """

    def __init__(
        self,
        pocket_storage: Optional[PocketStorageInterface] = None,
        goal_storage: Optional[GoalStorageInterface] = None,
    ):
        """
        Initialize validator.

        Args:
            pocket_storage: Used to check that referenced pockets exist.
            goal_storage: Used to check that referenced goals exist.
                          If either is None, that check is skipped.
        """
        self._pocket_storage = pocket_storage
        self._goal_storage = goal_storage
        self._settings = get_settings().app

    def _validate_schema(
        self,
        draft: TransactionDraft,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if draft.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than 0",
                severity="error",
            ))

        if draft.kind == TransactionKind.TRANSFER:
            issues.extend(self._check_transfer_accounts(draft))
        else:
            if not (draft.source_pocket_id or draft.source_goal_id):
                issues.append(ValidationIssue(
                    field="source_pocket_id",
                    issue_type="missing",
                    message=f"An {draft.kind.value} must belong to a pocket or goal",
                    severity="error",
                ))
            if draft.target_pocket_id or draft.target_goal_id:
                issues.append(ValidationIssue(
                    field="target",
                    issue_type="invalid_value",
                    message="Only transfers can have a target account",
                    severity="error",
                ))
            if draft.source_goal_id and draft.kind != TransactionKind.INCOME:
                issues.append(ValidationIssue(
                    field="source_goal_id",
                    issue_type="invalid_value",
                    message="Goals can only receive income transactions",
                    severity="error",
                    suggested_fix="Withdraw from the goal to a pocket instead",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _check_transfer_accounts(self, draft: TransactionDraft) -> list[ValidationIssue]:
        issues = []

        if draft.source_pocket_id and draft.source_goal_id:
            issues.append(ValidationIssue(
                field="source",
                issue_type="ambiguous",
                message="A transfer can leave only one account",
                severity="error",
            ))
        if draft.target_pocket_id and draft.target_goal_id:
            issues.append(ValidationIssue(
                field="target",
                issue_type="ambiguous",
                message="A transfer can land in only one account",
                severity="error",
            ))

        source = draft.source_goal_id or draft.source_pocket_id
        target = draft.target_goal_id or draft.target_pocket_id

        if not source:
            issues.append(ValidationIssue(
                field="source",
                issue_type="missing",
                message="Transfer source is required",
                severity="error",
            ))
        if not target:
            issues.append(ValidationIssue(
                field="target",
                issue_type="missing",
                message="Transfer target is required",
                severity="error",
            ))
        if source and target and source == target:
            issues.append(ValidationIssue(
                field="target",
                issue_type="same_account",
                message="Source and target must differ",
                severity="error",
            ))

        return issues

    def _validate_semantic(
        self,
        draft: TransactionDraft,
        today: dt.date,
        goal_balances: Optional[Mapping[str, int]],
    ) -> tuple[bool, dt.date, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, effective_date, list_of_issues)
        """
        issues = []

        effective_date = draft.date or today
        latest_allowed = today + dt.timedelta(days=self._settings.future_date_tolerance_days)
        if effective_date > latest_allowed:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date {effective_date} is in the future; using {today} instead",
                severity="warning",
            ))
            effective_date = today

        issues.extend(self._check_accounts_exist(draft))

        checkpoint = self._withdrawal_checkpoint(draft)
        if checkpoint is not None and effective_date < checkpoint:
            issues.append(ValidationIssue(
                field="date",
                issue_type="before_checkpoint",
                message=(
                    f"Returns are already computed through {checkpoint}; "
                    f"withdrawal dated {effective_date} is recorded on {checkpoint}"
                ),
                severity="warning",
            ))
            effective_date = checkpoint

        if draft.kind == TransactionKind.TRANSFER and draft.source_goal_id and goal_balances is not None:
            available = goal_balances.get(draft.source_goal_id, 0)
            if draft.amount > available:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="insufficient_balance",
                    message=f"Withdrawal amount ({draft.amount}) exceeds goal balance ({available})",
                    severity="error",
                    suggested_fix=f"Withdraw at most {available}",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, effective_date, issues

    def _withdrawal_checkpoint(self, draft: TransactionDraft) -> Optional[dt.date]:
        """Accrual checkpoint of the goal a transfer withdraws from, if any."""
        if draft.kind != TransactionKind.TRANSFER or not draft.source_goal_id:
            return None
        if self._goal_storage is None:
            return None
        try:
            goal = self._goal_storage.get_goal(draft.source_goal_id)
        except StorageError as e:
            logger.warning("checkpoint_check_skipped", error=str(e))
            return None
        return goal.last_return_calculation_date if goal else None

    def _check_accounts_exist(self, draft: TransactionDraft) -> list[ValidationIssue]:
        issues = []
        try:
            if self._pocket_storage is not None:
                for field in ("source_pocket_id", "target_pocket_id"):
                    pocket_id = getattr(draft, field)
                    if pocket_id and self._pocket_storage.get_pocket(pocket_id) is None:
                        issues.append(ValidationIssue(
                            field=field,
                            issue_type="not_found",
                            message=f"Pocket {pocket_id} does not exist",
                            severity="error",
                        ))
            if self._goal_storage is not None:
                for field in ("source_goal_id", "target_goal_id"):
                    goal_id = getattr(draft, field)
                    if goal_id and self._goal_storage.get_goal(goal_id) is None:
                        issues.append(ValidationIssue(
                            field=field,
                            issue_type="not_found",
                            message=f"Goal {goal_id} does not exist",
                            severity="error",
                        ))
        except StorageError as e:
            # Don't fail validation due to storage errors
            logger.warning("account_check_skipped", error=str(e))
        return issues

    def validate(
        self,
        draft: TransactionDraft,
        today: Optional[dt.date] = None,
        goal_balances: Optional[Mapping[str, int]] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            draft: The requested transaction
            today: Current ledger day (defaults to the UTC day)
            goal_balances: Current display balance per goal, used to cap
                withdrawals. If None, the cap is not checked.

        Returns:
            ValidationResult with all issues found
        """
        today = today or utc_today()
        all_issues = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(draft)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        effective_date = None
        if schema_valid:
            semantic_valid, effective_date, semantic_issues = self._validate_semantic(
                draft, today, goal_balances
            )
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            transaction_id=draft.id,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
            effective_date=effective_date,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """Short text summary suitable for a toast or form error."""
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"• {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"  {issue.suggested_fix}")
        for warning in result.warnings:
            lines.append(f"! {warning}")
        return "\n".join(lines)
