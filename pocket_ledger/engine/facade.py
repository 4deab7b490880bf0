"""
Goal Balance Facade

The single place that answers "what is this goal's current balance?".

- Saving goals: the projected transaction balance.
- Investment goals: principal + accrued return, reconstructed from the
  transactions and the current activity log.

Run accrual first (`DailyAccrualSimulator`), then build the facade from
freshly loaded activity entries, otherwise investment balances lag behind.
"""

from collections import defaultdict
from typing import Iterable, Mapping, Optional

from pocket_ledger.engine.projector import LedgerError, project_balances
from pocket_ledger.engine.reconstructor import reconstruct_goal_state
from pocket_ledger.models.ledger import (
    Goal,
    GoalBalanceView,
    GoalKind,
    InvestmentActivityEntry,
    InvestmentState,
    Transaction,
)


class GoalNotFoundError(LedgerError):
    """Balance requested for a goal the facade doesn't know."""
    pass


class GoalBalanceFacade:
    """
    Display balances for a fixed snapshot of goals, transactions and
    activity entries.
    """

    def __init__(
        self,
        goals: Iterable[Goal],
        transactions: Iterable[Transaction],
        activities: Optional[Mapping[str, Iterable[InvestmentActivityEntry]]] = None,
    ):
        self._goals = {goal.id: goal for goal in goals}
        self._transactions = list(transactions)
        self._activities: dict[str, list[InvestmentActivityEntry]] = defaultdict(list)
        for goal_id, entries in (activities or {}).items():
            self._activities[goal_id].extend(entries)
        self._projected: Optional[dict[str, int]] = None

    def _goal(self, goal_id: str) -> Goal:
        try:
            return self._goals[goal_id]
        except KeyError:
            raise GoalNotFoundError(f"Goal not found: {goal_id}")

    @property
    def projected(self) -> dict[str, int]:
        """Transaction-only balances of every account (computed once)."""
        if self._projected is None:
            self._projected = project_balances(self._transactions)
        return self._projected

    def state(self, goal_id: str) -> InvestmentState:
        """
        Principal and accrued return.

        For saving goals the whole balance counts as principal.
        """
        goal = self._goal(goal_id)
        if goal.kind == GoalKind.INVESTMENT:
            return reconstruct_goal_state(
                goal_id,
                self._transactions,
                self._activities.get(goal_id, []),
            )
        return InvestmentState(principal=max(0, self.projected.get(goal_id, 0)))

    def current_balance(self, goal_id: str) -> int:
        goal = self._goal(goal_id)
        if goal.kind == GoalKind.INVESTMENT:
            return self.state(goal_id).total
        return self.projected.get(goal_id, 0)

    def view(self, goal_id: str) -> GoalBalanceView:
        goal = self._goal(goal_id)
        state = self.state(goal_id)
        return GoalBalanceView(
            goal=goal,
            principal=state.principal,
            accrued_return=state.accrued_return,
            current_balance=self.current_balance(goal_id),
        )

    def balances(self) -> dict[str, int]:
        """Current balance of every goal."""
        return {goal_id: self.current_balance(goal_id) for goal_id in self._goals}

    def views(self) -> list[GoalBalanceView]:
        return [self.view(goal_id) for goal_id in self._goals]
