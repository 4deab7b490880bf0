"""Tests for the investment state reconstructor."""

import datetime as dt

from hypothesis import given
from hypothesis import strategies as st

from pocket_ledger.engine import (
    TimelineEvent,
    TimelineEventType,
    build_timeline,
    iter_states,
    reconstruct_goal_state,
    replay,
)
from pocket_ledger.models import MAIN_POCKET_ID, InvestmentState, TransactionKind

from tests.helpers import daily_return, deposit, make_tx, withdrawal


GOAL = "goal-inv"


def day(n: int) -> dt.date:
    return dt.date(2024, 1, 1) + dt.timedelta(days=n)


class TestReconstructGoalState:
    """Tests for reconstruct_goal_state."""

    def test_deposit_then_withdrawal_same_day(self):
        """Deposit and withdrawal on one day after earlier growth."""
        txs = [
            deposit(GOAL, 80_000, day(1), seq=0),
            deposit(GOAL, 100_000, day(5), seq=1),
            withdrawal(GOAL, 30_000, day(5), seq=2),
        ]
        activities = [
            daily_return(GOAL, 5_000, day(2)),
            daily_return(GOAL, 7_000, day(3)),
            daily_return(GOAL, 8_000, day(4)),
        ]

        state = reconstruct_goal_state(GOAL, txs, activities)

        assert state == InvestmentState(principal=150_000, accrued_return=20_000)

    def test_withdrawal_beyond_principal_draws_on_returns(self):
        txs = [
            deposit(GOAL, 1_000, day(0)),
            withdrawal(GOAL, 1_300, day(3), seq=1),
        ]
        activities = [daily_return(GOAL, 500, day(1))]

        state = reconstruct_goal_state(GOAL, txs, activities)

        assert state.principal == 0
        assert state.accrued_return == 200

    def test_withdrawal_beyond_everything_floors_at_zero(self):
        txs = [deposit(GOAL, 100, day(0)), withdrawal(GOAL, 500, day(1), seq=1)]
        assert reconstruct_goal_state(GOAL, txs, []) == InvestmentState()

    def test_same_day_transactions_follow_creation_order(self):
        """Tie-break: earlier created transaction replays first."""
        txs = [
            deposit(GOAL, 10_000, day(0), seq=0),
            deposit(GOAL, 20_000, day(2), seq=5),
            withdrawal(GOAL, 12_000, day(2), seq=3),
        ]
        activities = [daily_return(GOAL, 5_000, day(1))]

        state = reconstruct_goal_state(GOAL, txs, activities)

        # withdrawal (seq 3) empties principal and takes 2,000 of returns
        assert state == InvestmentState(principal=20_000, accrued_return=3_000)

    def test_same_day_returns_replay_before_transactions(self):
        """A withdrawal sees the return earned on its own day."""
        txs = [
            deposit(GOAL, 1_000, day(0)),
            withdrawal(GOAL, 1_100, day(1), seq=1),
        ]
        activities = [daily_return(GOAL, 100, day(1))]

        state = reconstruct_goal_state(GOAL, txs, activities)

        assert state == InvestmentState()

    def test_income_and_expense_owned_by_goal(self):
        txs = [
            make_tx(TransactionKind.INCOME, 900, day(0), source_goal_id=GOAL),
            make_tx(TransactionKind.EXPENSE, 100, day(1), seq=1, source_goal_id=GOAL),
        ]
        assert reconstruct_goal_state(GOAL, txs, []).principal == 800

    def test_other_goals_are_ignored(self):
        txs = [deposit(GOAL, 1_000, day(0)), deposit("goal-other", 5_000, day(0), seq=1)]
        activities = [daily_return("goal-other", 50, day(1))]

        assert reconstruct_goal_state(GOAL, txs, activities) == InvestmentState(principal=1_000)

    def test_up_to_excludes_later_returns(self):
        activities = [daily_return(GOAL, 10, day(1)), daily_return(GOAL, 11, day(2))]
        state = reconstruct_goal_state(
            GOAL, [deposit(GOAL, 1_000, day(0))], activities, up_to=day(1)
        )
        assert state.accrued_return == 10


class TestBuildTimeline:
    """Tests for timeline ordering."""

    def test_sorted_by_date(self):
        txs = [
            deposit(GOAL, 1, day(3), seq=0),
            deposit(GOAL, 2, day(1), seq=1),
        ]
        events = build_timeline(GOAL, txs, [daily_return(GOAL, 3, day(2))])
        assert [e.date for e in events] == [day(1), day(2), day(3)]

    def test_classification(self):
        txs = [
            deposit(GOAL, 1, day(0)),
            withdrawal(GOAL, 1, day(0), seq=1),
            make_tx(
                TransactionKind.TRANSFER, 5, day(0), seq=2,
                source_pocket_id=MAIN_POCKET_ID, target_pocket_id="pocket-food",
            ),
        ]
        events = build_timeline(GOAL, txs, [daily_return(GOAL, 1, day(0))])
        assert [e.type for e in events] == [
            TimelineEventType.DAILY_RETURN,
            TimelineEventType.DEPOSIT,
            TimelineEventType.WITHDRAWAL,
        ]

    def test_replay_of_empty_timeline(self):
        assert replay([]) == InvestmentState()


timeline_event = st.builds(
    TimelineEvent,
    type=st.sampled_from(list(TimelineEventType)),
    date=st.just(day(0)),
    amount=st.integers(min_value=0, max_value=1_000_000),
    sort_key=st.just((0,)),
)


class TestNonNegativityProperty:
    """Property-based tests: no replay prefix goes negative."""

    @given(st.lists(timeline_event, max_size=80))
    def test_every_prefix_is_non_negative(self, events):
        for state in iter_states(events):
            assert state.principal >= 0
            assert state.accrued_return >= 0

    @given(st.lists(timeline_event, max_size=80))
    def test_replay_matches_last_state(self, events):
        states = list(iter_states(events))
        expected = states[-1] if states else InvestmentState()
        assert replay(events) == expected
