"""
Daily Accrual Simulator

Simulates investment growth for a goal one calendar day at a time,
from the day after its checkpoint up to and including today.

For every day D:
    growth = round_half_up((principal + accrued_return) * daily_rate)
    if growth > 0: record an activity entry for D and add it to accrued_return
    checkpoint = D            (even when growth was 0)

daily_rate = annual_return_percentage / 100 / 365, a simple rate.

DESIGN DECISION: The simulation itself (`simulate_accrual`) is pure. It
returns the new entries and the new checkpoint instead of writing them.
`DailyAccrualSimulator` is the stateful step that loads the activity log,
runs the simulation and persists the result.

Because the checkpoint moves past every processed day, running twice on
the same day is a no-op, and a gap of N days is caught up in exactly N
iterations (at most `max_catch_up_days` per run; the next run continues).
"""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional
from uuid import UUID

import structlog

from pocket_ledger.audit import AuditLogger
from pocket_ledger.config import get_settings
from pocket_ledger.engine.reconstructor import reconstruct_goal_state
from pocket_ledger.models.ledger import (
    AccrualResult,
    Goal,
    InvestmentActivityEntry,
    Transaction,
    utc_today,
)
from pocket_ledger.services.storage import (
    ActivityStorageInterface,
    GoalStorageInterface,
)


logger = structlog.get_logger(__name__)

SKIP_NOT_ACCRUING = "not_accruing"
SKIP_CHECKPOINT_AHEAD = "checkpoint_ahead"

_ONE_DAY = dt.timedelta(days=1)


def daily_rate(annual_return_percentage: Decimal, days_per_year: int = 365) -> Decimal:
    """Annual percentage to simple daily rate (12 -> 0.000328767...)."""
    return Decimal(annual_return_percentage) / Decimal(100) / Decimal(days_per_year)


def daily_growth(balance: int, rate: Decimal) -> int:
    """One day of growth, rounded half away from zero to a whole unit."""
    if balance <= 0 or rate <= 0:
        return 0
    return int((Decimal(balance) * rate).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def simulate_accrual(
    goal: Goal,
    goal_transactions: Iterable[Transaction],
    activities: Iterable[InvestmentActivityEntry],
    today: Optional[dt.date] = None,
    max_days: Optional[int] = None,
    label: Optional[str] = None,
    days_per_year: Optional[int] = None,
) -> AccrualResult:
    """
    Advance a goal's checkpoint to `today`, computing one day at a time.

    Args:
        goal: The goal to accrue; non-investment goals and goals without a
            positive rate are a no-op
        goal_transactions: Transactions touching the goal (others are ignored)
        activities: The goal's existing activity entries
        today: Last day to accrue (defaults to the current UTC day)
        max_days: Maximum days to process in this run
        label: Label for new entries
        days_per_year: Divisor for the daily rate

    Returns:
        AccrualResult with the new entries and the checkpoint to persist
    """
    previous = goal.last_return_calculation_date

    if not goal.accrues_returns:
        return AccrualResult(
            goal_id=goal.id,
            previous_checkpoint=previous,
            checkpoint=previous,
            skipped_reason=SKIP_NOT_ACCRUING,
        )

    settings = get_settings().accrual
    today = today or utc_today()
    if max_days is None:
        max_days = settings.max_catch_up_days
    label = label or settings.activity_label
    rate = daily_rate(goal.annual_return_percentage, days_per_year or settings.days_per_year)

    start = goal.checkpoint
    if start > today:
        logger.warning(
            "accrual_checkpoint_ahead",
            goal_id=goal.id,
            checkpoint=start.isoformat(),
            today=today.isoformat(),
        )
        return AccrualResult(
            goal_id=goal.id,
            previous_checkpoint=previous,
            checkpoint=previous,
            skipped_reason=SKIP_CHECKPOINT_AHEAD,
        )

    activities = [a for a in activities if a.goal_id == goal.id]
    transactions = list(goal_transactions)
    state = reconstruct_goal_state(goal.id, transactions, activities, up_to=start)

    # Days already recorded past the checkpoint (an earlier run saved its
    # entries but not its checkpoint) are replayed, not recomputed.
    recorded: dict[dt.date, int] = {}
    for entry in activities:
        if entry.date > start:
            recorded[entry.date] = recorded.get(entry.date, 0) + entry.amount

    remaining = (today - start).days
    days_to_run = min(remaining, max_days)

    principal = state.principal
    accrued = state.accrued_return
    total_added = 0
    new_entries: list[InvestmentActivityEntry] = []
    day = start

    for _ in range(days_to_run):
        day += _ONE_DAY
        if day in recorded:
            accrued += recorded[day]
            continue
        growth = daily_growth(principal + accrued, rate)
        if growth > 0:
            new_entries.append(InvestmentActivityEntry(
                goal_id=goal.id,
                date=day,
                amount=growth,
                label=label,
            ))
            accrued += growth
            total_added += growth

    checkpoint = day if days_to_run else previous

    if recorded:
        logger.info("accrual_recorded_days_reused", goal_id=goal.id, days=len(recorded))

    logger.debug(
        "accrual_simulated",
        goal_id=goal.id,
        days_processed=days_to_run,
        total_added=total_added,
        checkpoint=checkpoint.isoformat() if checkpoint else None,
    )

    return AccrualResult(
        goal_id=goal.id,
        total_added=total_added,
        new_entries=new_entries,
        previous_checkpoint=previous,
        checkpoint=checkpoint,
        days_processed=days_to_run,
        capped=remaining > days_to_run,
    )


class DailyAccrualSimulator:
    """
    Runs the accrual simulation for a goal and persists its outcome.

    New activity entries are written before the checkpoint, so an
    interrupted run never skips a day: the next run finds the entries
    and reuses them.
    """

    def __init__(
        self,
        goal_storage: GoalStorageInterface,
        activity_storage: ActivityStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        max_days: Optional[int] = None,
    ):
        self._goal_storage = goal_storage
        self._activity_storage = activity_storage
        self._audit_logger = audit_logger
        self._max_days = max_days

    def accrue(
        self,
        goal: Goal,
        goal_transactions: Iterable[Transaction],
        today: Optional[dt.date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AccrualResult:
        """Simulate, persist, and return the full result."""
        if not goal.accrues_returns:
            return simulate_accrual(goal, goal_transactions, [], today=today)

        activities = self._activity_storage.get_entries(goal.id)
        result = simulate_accrual(
            goal,
            goal_transactions,
            activities,
            today=today,
            max_days=self._max_days,
        )
        self.apply(result)

        if self._audit_logger:
            if result.skipped_reason == SKIP_CHECKPOINT_AHEAD:
                self._audit_logger.log_checkpoint_ahead(
                    goal_id=goal.id,
                    checkpoint=goal.checkpoint,
                    today=today or utc_today(),
                    correlation_id=correlation_id,
                )
            else:
                self._audit_logger.log_accrual(result, correlation_id=correlation_id)

        return result

    def run(
        self,
        goal: Goal,
        goal_transactions: Iterable[Transaction],
        today: Optional[dt.date] = None,
    ) -> int:
        """Accrue and return the total growth added."""
        return self.accrue(goal, goal_transactions, today=today).total_added

    def apply(self, result: AccrualResult) -> None:
        """Persist new entries, then the advanced checkpoint."""
        if result.new_entries:
            self._activity_storage.append_entries(result.goal_id, result.new_entries)
        if result.checkpoint_advanced:
            self._goal_storage.update_checkpoint(result.goal_id, result.checkpoint)
