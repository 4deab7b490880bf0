"""
Core Ledger Models for Pocket Ledger

These models define the strict schemas for every record the ledger reads
or writes. They are designed to:
1. Enforce type safety at runtime
2. Be JSON-serializable for the key-value store
3. Expose the account each transaction touches, so the engine never
   has to guess

DESIGN DECISION: Money is an integer in the smallest currency unit.
Balances are summed, never divided, so integers keep the ledger exact.
Only the daily return rate is fractional, and it is a Decimal.

NOTE: This module imports `datetime` as `dt` because several records
carry a field literally named `date`.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


MAIN_POCKET_ID = "main-pocket"


def utc_now() -> dt.datetime:
    """Current timestamp (UTC, timezone-aware)."""
    return dt.datetime.now(dt.timezone.utc)


def utc_today() -> dt.date:
    """Current calendar day in UTC. All ledger days are UTC days."""
    return utc_now().date()


def new_id(prefix: str) -> str:
    """Generate a record id such as 'goal-3f2a...'."""
    return f"{prefix}-{uuid4().hex}"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """Kinds of ledger events."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class PocketKind(str, Enum):
    """
    Pocket kinds.

    Exactly one pocket is MAIN. It is created on first use and can
    never be deleted or re-typed.
    """
    MAIN = "main"
    SPENDING = "spending"
    SAVING = "saving"
    INVESTMENT = "investment"


class GoalKind(str, Enum):
    """Goal kinds. Only INVESTMENT goals accrue simulated returns."""
    SAVING = "saving"
    INVESTMENT = "investment"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A single financial event.

    Account resolution:
    - income / expense belong to `source_goal_id` if set, else `source_pocket_id`
    - transfers move money from (`source_goal_id` or `source_pocket_id`)
      to (`target_goal_id` or `target_pocket_id`)

    The engine only reads transactions. Creating, editing and deleting
    them is the job of the transaction flow.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: new_id("tx"),
        description="Unique transaction ID"
    )
    kind: TransactionKind
    amount: int = Field(
        ...,
        gt=0,
        description="Amount in the smallest currency unit"
    )
    description: str = Field(default="", max_length=500)
    category: str = Field(default="", max_length=100)

    source_pocket_id: Optional[str] = None
    target_pocket_id: Optional[str] = None
    source_goal_id: Optional[str] = None
    target_goal_id: Optional[str] = None

    date: dt.date = Field(
        ...,
        description="Ledger day of the event (no time-of-day semantics)"
    )
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)

    @field_validator('date', mode='before')
    @classmethod
    def strip_time_of_day(cls, v):
        """Accept full ISO timestamps and keep only the day part."""
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        if isinstance(v, dt.datetime):
            return v.date()
        return v

    @model_validator(mode='after')
    def validate_accounts(self) -> 'Transaction':
        """Targets only make sense on transfers."""
        if self.kind != TransactionKind.TRANSFER:
            if self.target_pocket_id or self.target_goal_id:
                raise ValueError("Only transfers can have a target account")
        return self

    @property
    def owner_account_id(self) -> Optional[str]:
        """Account an income or expense is booked against."""
        return self.source_goal_id or self.source_pocket_id

    @property
    def source_account_id(self) -> Optional[str]:
        return self.source_goal_id or self.source_pocket_id

    @property
    def target_account_id(self) -> Optional[str]:
        return self.target_goal_id or self.target_pocket_id

    def touches_goal(self, goal_id: str) -> bool:
        """Does this transaction move money into or out of the goal?"""
        return self.source_goal_id == goal_id or self.target_goal_id == goal_id


class TransactionDraft(BaseModel):
    """
    A transaction as requested, before validation.

    CRITICAL: This is PROPOSED data. Nothing here is trusted until the
    validator has accepted it; only then is a Transaction built from it.
    Amounts and accounts are deliberately unconstrained so the validator
    can report every problem at once.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("tx"))
    kind: TransactionKind
    amount: int
    description: str = ""
    category: str = ""

    source_pocket_id: Optional[str] = None
    target_pocket_id: Optional[str] = None
    source_goal_id: Optional[str] = None
    target_goal_id: Optional[str] = None

    date: Optional[dt.date] = None

    def to_transaction(self, effective_date: dt.date) -> Transaction:
        return Transaction(
            id=self.id,
            kind=self.kind,
            amount=self.amount,
            description=self.description,
            category=self.category,
            source_pocket_id=self.source_pocket_id,
            target_pocket_id=self.target_pocket_id,
            source_goal_id=self.source_goal_id,
            target_goal_id=self.target_goal_id,
            date=effective_date,
        )


# =============================================================================
# POCKETS & GOALS
# =============================================================================

class Pocket(BaseModel):
    """A named sub-account of the user's money. Balance is derived."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("pocket"))
    name: str = Field(..., min_length=1, max_length=100)
    kind: PocketKind = PocketKind.SPENDING
    icon: str = Field(default="📦")
    color: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=utc_now)

    @property
    def is_main(self) -> bool:
        return self.kind == PocketKind.MAIN or self.id == MAIN_POCKET_ID


class Goal(BaseModel):
    """
    A savings or investment target.

    For investment goals `last_return_calculation_date` is the checkpoint:
    the last day through which simulated returns have been computed.
    It only ever moves forward.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("goal"))
    name: str = Field(..., min_length=1, max_length=100)
    kind: GoalKind = GoalKind.SAVING
    target_amount: int = Field(..., gt=0)
    duration_months: int = Field(..., ge=1, le=600)
    annual_return_percentage: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Estimated annual return (%), investment goals only"
    )
    last_return_calculation_date: Optional[dt.date] = None
    icon: str = Field(default="🎯")
    color: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_return_settings(self) -> 'Goal':
        """Only investment goals carry a return rate."""
        if self.kind == GoalKind.SAVING and self.annual_return_percentage is not None:
            raise ValueError("Annual return percentage only applies to investment goals")
        return self

    @property
    def creation_day(self) -> dt.date:
        return self.created_at.date()

    @property
    def checkpoint(self) -> dt.date:
        """Last accrued day, defaulting to the day the goal was created."""
        return self.last_return_calculation_date or self.creation_day

    @property
    def accrues_returns(self) -> bool:
        return (
            self.kind == GoalKind.INVESTMENT
            and self.annual_return_percentage is not None
            and self.annual_return_percentage > 0
        )


class InvestmentActivityEntry(BaseModel):
    """
    One day of simulated growth for an investment goal.

    Append-only: entries are never edited or reordered, and are only
    removed together with their goal.
    """

    id: str = Field(default_factory=lambda: new_id("inv"))
    goal_id: str
    date: dt.date
    amount: int = Field(..., ge=0)
    label: str = Field(default="Daily Investment Return", max_length=100)


# =============================================================================
# ENGINE RESULTS
# =============================================================================

class InvestmentState(BaseModel):
    """Principal and accrued return of one goal at a replay point."""

    principal: int = Field(default=0, ge=0)
    accrued_return: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.principal + self.accrued_return


class AccrualResult(BaseModel):
    """
    Outcome of one accrual run for one goal.

    `checkpoint` is the value the goal's `last_return_calculation_date`
    must be set to. It equals `previous_checkpoint` when nothing ran.
    """

    goal_id: str
    total_added: int = Field(default=0, ge=0)
    new_entries: list[InvestmentActivityEntry] = Field(default_factory=list)
    previous_checkpoint: Optional[dt.date] = None
    checkpoint: Optional[dt.date] = None
    days_processed: int = Field(default=0, ge=0)
    capped: bool = Field(
        default=False,
        description="True when the run stopped early; the next run continues"
    )
    skipped_reason: Optional[str] = None

    @property
    def checkpoint_advanced(self) -> bool:
        return (
            self.checkpoint is not None
            and self.checkpoint != self.previous_checkpoint
        )


class GoalBalanceView(BaseModel):
    """A goal together with the balance shown to the user."""

    goal: Goal
    principal: int = Field(default=0, ge=0)
    accrued_return: int = Field(default=0, ge=0)
    current_balance: int = 0

    @property
    def progress(self) -> float:
        """Share of the target reached, between 0 and 1."""
        if self.goal.target_amount <= 0:
            return 0.0
        return max(0.0, min(1.0, self.current_balance / self.goal.target_amount))


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'invalid_value', 'same_account', 'future_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a transaction before it is recorded.

    Stage 1: Schema validation (amount, accounts present)
    Stage 2: Semantic validation (dates, balances)
    """

    transaction_id: str
    validated_at: dt.datetime = Field(default_factory=utc_now)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)

    # Warnings don't block but should be shown
    warnings: list[str] = Field(default_factory=list)

    # Day the transaction will be stored under (future dates corrected)
    effective_date: Optional[dt.date] = None

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
