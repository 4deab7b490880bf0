"""
Balance engine package.

Pure functions over already-loaded records, plus the accrual runner
that persists simulated growth.
"""

from pocket_ledger.engine.projector import (
    LedgerError,
    UnknownTransactionKindError,
    pocket_balances,
    project_balances,
)
from pocket_ledger.engine.reconstructor import (
    TimelineEvent,
    TimelineEventType,
    build_timeline,
    iter_states,
    reconstruct_goal_state,
    replay,
)
from pocket_ledger.engine.accrual import (
    DailyAccrualSimulator,
    daily_growth,
    daily_rate,
    simulate_accrual,
)
from pocket_ledger.engine.facade import GoalBalanceFacade, GoalNotFoundError

__all__ = [
    # Projection
    "LedgerError",
    "UnknownTransactionKindError",
    "pocket_balances",
    "project_balances",
    # Reconstruction
    "TimelineEvent",
    "TimelineEventType",
    "build_timeline",
    "iter_states",
    "reconstruct_goal_state",
    "replay",
    # Accrual
    "DailyAccrualSimulator",
    "daily_growth",
    "daily_rate",
    "simulate_accrual",
    # Facade
    "GoalBalanceFacade",
    "GoalNotFoundError",
]
