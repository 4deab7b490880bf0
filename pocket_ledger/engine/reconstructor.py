"""
Investment State Reconstructor

Splits an investment goal's balance into principal (money the user put
in) and accrued return (simulated growth) by replaying the goal's
timeline in date order.

Timeline events:
- deposit:      income booked on the goal, or a transfer into the goal
- withdrawal:   a transfer out of the goal, or an expense booked on it
- daily_return: one per investment activity entry

Same-day ordering is fixed: daily returns come before transactions
(a day is accrued when it is first opened, before anything is recorded
on it), daily returns keep their position in the activity log, and
transactions are ordered by (created_at, id).

Withdrawals draw from principal first and only then from accrued return,
which is floored at zero.
"""

import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional

from pocket_ledger.models.ledger import (
    InvestmentActivityEntry,
    InvestmentState,
    Transaction,
    TransactionKind,
)


class TimelineEventType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DAILY_RETURN = "daily_return"


@dataclass(frozen=True)
class TimelineEvent:
    type: TimelineEventType
    date: dt.date
    amount: int
    sort_key: tuple


def _classify(goal_id: str, tx: Transaction) -> Optional[TimelineEventType]:
    if tx.kind == TransactionKind.INCOME and tx.owner_account_id == goal_id:
        return TimelineEventType.DEPOSIT
    if tx.kind == TransactionKind.EXPENSE and tx.owner_account_id == goal_id:
        return TimelineEventType.WITHDRAWAL
    if tx.kind == TransactionKind.TRANSFER:
        # Goal-to-itself transfers net to zero
        if tx.source_goal_id == goal_id and tx.target_goal_id == goal_id:
            return None
        if tx.target_goal_id == goal_id:
            return TimelineEventType.DEPOSIT
        if tx.source_goal_id == goal_id:
            return TimelineEventType.WITHDRAWAL
    return None


def build_timeline(
    goal_id: str,
    transactions: Iterable[Transaction],
    activities: Iterable[InvestmentActivityEntry],
    up_to: Optional[dt.date] = None,
) -> list[TimelineEvent]:
    """
    Build the goal's sorted timeline.

    Args:
        goal_id: Goal to build the timeline for
        transactions: Any transactions; those not touching the goal are ignored
        activities: Activity entries; those of other goals are ignored
        up_to: If given, only activity entries dated on or before this day
            are included. Transactions are never date-filtered.
    """
    events: list[TimelineEvent] = []

    for tx in transactions:
        event_type = _classify(goal_id, tx)
        if event_type is None:
            continue
        events.append(TimelineEvent(
            type=event_type,
            date=tx.date,
            amount=tx.amount,
            sort_key=(1, tx.created_at.timestamp(), tx.id),
        ))

    for position, entry in enumerate(activities):
        if entry.goal_id != goal_id:
            continue
        if up_to is not None and entry.date > up_to:
            continue
        events.append(TimelineEvent(
            type=TimelineEventType.DAILY_RETURN,
            date=entry.date,
            amount=entry.amount,
            sort_key=(0, position),
        ))

    events.sort(key=lambda e: (e.date, e.sort_key))
    return events


def iter_states(events: Iterable[TimelineEvent]) -> Iterator[InvestmentState]:
    """Yield the state after each event of a sorted timeline."""
    principal = 0
    accrued = 0

    for event in events:
        if event.type == TimelineEventType.DEPOSIT:
            principal += event.amount
        elif event.type == TimelineEventType.DAILY_RETURN:
            accrued += event.amount
        else:
            from_principal = min(event.amount, principal)
            principal -= from_principal
            accrued = max(0, accrued - (event.amount - from_principal))
        yield InvestmentState(principal=principal, accrued_return=accrued)


def replay(events: Iterable[TimelineEvent]) -> InvestmentState:
    """Fold a sorted timeline into principal and accrued return."""
    state = InvestmentState()
    for state in iter_states(events):
        pass
    return state


def reconstruct_goal_state(
    goal_id: str,
    transactions: Iterable[Transaction],
    activities: Iterable[InvestmentActivityEntry],
    up_to: Optional[dt.date] = None,
) -> InvestmentState:
    """
    Principal and accrued return of one goal.

    Pure: inputs are not modified and the same inputs always give the
    same state.
    """
    return replay(build_timeline(goal_id, transactions, activities, up_to=up_to))
