"""Small builders for engine tests."""

import datetime as dt
from decimal import Decimal
from typing import Optional

from pocket_ledger.models import (
    MAIN_POCKET_ID,
    Goal,
    GoalKind,
    InvestmentActivityEntry,
    Transaction,
    TransactionKind,
)


BASE_TIME = dt.datetime(2024, 1, 1, 9, 0, tzinfo=dt.timezone.utc)


def make_tx(
    kind: TransactionKind,
    amount: int,
    day: dt.date,
    seq: int = 0,
    **accounts,
) -> Transaction:
    """Transaction whose creation time is ordered by `seq`."""
    return Transaction(
        kind=kind,
        amount=amount,
        date=day,
        created_at=BASE_TIME + dt.timedelta(seconds=seq),
        **accounts,
    )


def deposit(goal_id: str, amount: int, day: dt.date, seq: int = 0) -> Transaction:
    return make_tx(
        TransactionKind.TRANSFER, amount, day, seq,
        source_pocket_id=MAIN_POCKET_ID, target_goal_id=goal_id,
    )


def withdrawal(goal_id: str, amount: int, day: dt.date, seq: int = 0) -> Transaction:
    return make_tx(
        TransactionKind.TRANSFER, amount, day, seq,
        source_goal_id=goal_id, target_pocket_id=MAIN_POCKET_ID,
    )


def daily_return(goal_id: str, amount: int, day: dt.date) -> InvestmentActivityEntry:
    return InvestmentActivityEntry(goal_id=goal_id, date=day, amount=amount)


def investment_goal(
    rate: str = "12",
    checkpoint: Optional[dt.date] = None,
    goal_id: str = "goal-inv",
) -> Goal:
    return Goal(
        id=goal_id,
        name="Index fund",
        kind=GoalKind.INVESTMENT,
        target_amount=10_000_000,
        duration_months=60,
        annual_return_percentage=Decimal(rate),
        last_return_calculation_date=checkpoint,
    )
