"""Integration tests for the transaction and goal flows."""

import datetime as dt
from decimal import Decimal

import pytest

from pocket_ledger.engine import project_balances
from pocket_ledger.models import MAIN_POCKET_ID, AuditEventType, GoalKind
from pocket_ledger.orchestrator import (
    PocketDeletionError,
    TransactionRejectedError,
    create_app_components,
)
from pocket_ledger.services.storage import (
    InMemoryKeyValueStore,
    KeyValueActivityStorage,
    KeyValueAuditStorage,
    KeyValueTransactionStorage,
)


DAY_0 = dt.date(2024, 1, 1)
DAY_1 = dt.date(2024, 1, 2)
DAY_100 = DAY_0 + dt.timedelta(days=100)


@pytest.fixture
def components():
    store = InMemoryKeyValueStore()
    transaction_flow, goal_flow = create_app_components(store)
    return store, transaction_flow, goal_flow


@pytest.fixture
def investment(components):
    """An investment goal at 12% holding 500,000 since day 0."""
    _, transaction_flow, goal_flow = components
    goal = goal_flow.create_goal(
        name="Index fund",
        target_amount=1_000_000,
        duration_months=24,
        kind=GoalKind.INVESTMENT,
        annual_return_percentage=Decimal("12"),
        today=DAY_0,
    )
    transaction_flow.allocate_to_goal(500_000, goal.id, today=DAY_0)
    return goal


class TestTransactionFlow:
    """Tests for TransactionFlow."""

    def test_main_pocket_exists(self, components):
        _, _, goal_flow = components
        assert goal_flow.pocket_balances() == {MAIN_POCKET_ID: 0}

    def test_income_and_expense(self, components):
        _, transaction_flow, goal_flow = components
        transaction_flow.record_income(1_000, today=DAY_0)
        transaction_flow.record_expense(250, today=DAY_0)

        assert goal_flow.pocket_balances() == {MAIN_POCKET_ID: 750}

    def test_rejection_is_raised_and_audited(self, components):
        store, transaction_flow, _ = components

        with pytest.raises(TransactionRejectedError) as exc_info:
            transaction_flow.record_expense(0, today=DAY_0)

        assert exc_info.value.result.has_errors
        events = KeyValueAuditStorage(store).get_recent_events()
        assert events[0].event_type == AuditEventType.TRANSACTION_REJECTED

    def test_future_date_is_corrected(self, components):
        store, transaction_flow, _ = components

        tx, result = transaction_flow.record_income(
            10, date=DAY_1 + dt.timedelta(days=10), today=DAY_1
        )

        assert tx.date == DAY_1
        assert result.warnings
        types = {e.event_type for e in KeyValueAuditStorage(store).get_recent_events()}
        assert AuditEventType.DATE_CORRECTED in types

    def test_transfer_between_pockets(self, components):
        _, transaction_flow, goal_flow = components
        food = transaction_flow.create_pocket("Food")
        transaction_flow.record_income(1_000, today=DAY_0)

        transaction_flow.transfer_between_pockets(400, MAIN_POCKET_ID, food.id, today=DAY_0)

        assert goal_flow.pocket_balances() == {MAIN_POCKET_ID: 600, food.id: 400}

    def test_transfer_to_unknown_pocket(self, components):
        _, transaction_flow, _ = components
        with pytest.raises(TransactionRejectedError):
            transaction_flow.transfer_between_pockets(1, MAIN_POCKET_ID, "pocket-gone", today=DAY_0)

    def test_delete_transaction(self, components):
        _, transaction_flow, goal_flow = components
        tx, _ = transaction_flow.record_income(1_000, today=DAY_0)

        assert transaction_flow.delete_transaction(tx.id) is True
        assert transaction_flow.delete_transaction(tx.id) is False
        assert goal_flow.pocket_balances() == {MAIN_POCKET_ID: 0}

    def test_delete_pocket_preserves_other_balances(self, components):
        _, transaction_flow, goal_flow = components
        goal = goal_flow.create_goal("Car", target_amount=1_000, duration_months=12)
        food = transaction_flow.create_pocket("Food")
        transaction_flow.record_income(1_000, today=DAY_0)
        transaction_flow.transfer_between_pockets(300, MAIN_POCKET_ID, food.id, today=DAY_0)
        transaction_flow.transfer_between_pockets(100, food.id, MAIN_POCKET_ID, today=DAY_0)
        transaction_flow.record_expense(50, pocket_id=food.id, today=DAY_0)
        transaction_flow.allocate_to_goal(20, goal.id, source_pocket_id=food.id, today=DAY_0)

        removed, compensating = transaction_flow.delete_pocket(food.id)

        assert (removed, compensating) == (1, 3)
        assert goal_flow.pocket_balances() == {MAIN_POCKET_ID: 800}
        views = {v.goal.id: v for v in goal_flow.refresh(today=DAY_0)}
        assert views[goal.id].current_balance == 20

    def test_cannot_delete_main_pocket(self, components):
        _, transaction_flow, _ = components
        with pytest.raises(PocketDeletionError):
            transaction_flow.delete_pocket(MAIN_POCKET_ID)

    def test_cannot_delete_unknown_pocket(self, components):
        _, transaction_flow, _ = components
        with pytest.raises(PocketDeletionError):
            transaction_flow.delete_pocket("pocket-gone")

    def test_cannot_create_second_main_pocket(self, components):
        from pocket_ledger.models import PocketKind

        _, transaction_flow, _ = components
        with pytest.raises(ValueError):
            transaction_flow.create_pocket("Another", kind=PocketKind.MAIN)


class TestGoalFlow:
    """Tests for GoalFlow."""

    def test_investment_goal_starts_checkpoint_today(self, investment):
        assert investment.last_return_calculation_date == DAY_0

    def test_saving_goal_has_no_checkpoint(self, components):
        _, _, goal_flow = components
        goal = goal_flow.create_goal("Holiday", target_amount=100, duration_months=3, today=DAY_0)
        assert goal.last_return_calculation_date is None

    def test_refresh_accrues_one_day(self, components, investment):
        _, _, goal_flow = components

        view = goal_flow.refresh(today=DAY_1)[0]

        assert view.principal == 500_000
        assert view.accrued_return == 164
        assert view.current_balance == 500_164

    def test_refresh_twice_is_idempotent(self, components, investment):
        store, _, goal_flow = components

        first = goal_flow.refresh(today=DAY_1)
        second = goal_flow.refresh(today=DAY_1)

        assert first == second
        assert len(KeyValueActivityStorage(store).get_entries(investment.id)) == 1

    def test_withdrawal_limited_to_display_balance(self, components, investment):
        _, transaction_flow, goal_flow = components

        with pytest.raises(TransactionRejectedError) as exc_info:
            transaction_flow.withdraw_from_goal(500_165, investment.id, today=DAY_1)
        assert exc_info.value.result.issues[0].issue_type == "insufficient_balance"

        transaction_flow.withdraw_from_goal(500_164, investment.id, today=DAY_1)

        view = goal_flow.refresh(today=DAY_1)[0]
        assert view.current_balance == 0
        assert goal_flow.pocket_balances() == {MAIN_POCKET_ID: 164}

    def test_delete_goal_cascades_activity(self, components, investment):
        store, _, goal_flow = components
        goal_flow.refresh(today=DAY_1)

        assert goal_flow.delete_goal(investment.id) is True

        assert KeyValueActivityStorage(store).get_entries(investment.id) == []
        assert goal_flow.refresh(today=DAY_1) == []
        assert goal_flow.delete_goal(investment.id) is False

    def test_refresh_audits_accrual(self, components, investment):
        store, _, goal_flow = components
        goal_flow.refresh(today=DAY_1)

        events = KeyValueAuditStorage(store).get_events_by_entity("goal", investment.id)
        assert [e.event_type for e in events] == [
            AuditEventType.GOAL_CREATED,
            AuditEventType.ACCRUAL_COMPLETED,
        ]

    def test_backdated_withdrawal_moves_to_checkpoint(self, components, investment):
        """A withdrawal dated before computed returns is recorded on the checkpoint."""
        store, transaction_flow, goal_flow = components
        balance = goal_flow.refresh(today=DAY_100)[0].current_balance
        assert balance > 500_000

        tx, result = transaction_flow.withdraw_from_goal(
            balance, investment.id, date=DAY_0, today=DAY_100
        )

        assert tx.date == DAY_100
        assert any(i.issue_type == "before_checkpoint" for i in result.issues)
        types = {e.event_type for e in KeyValueAuditStorage(store).get_recent_events()}
        assert AuditEventType.DATE_CORRECTED in types

        view = goal_flow.refresh(today=DAY_100)[0]
        projected = project_balances(
            KeyValueTransactionStorage(store).list_transactions(),
            KeyValueActivityStorage(store).get_entries(investment.id),
        )
        assert view.current_balance == projected[investment.id] == 0
        assert goal_flow.pocket_balances() == {MAIN_POCKET_ID: balance - 500_000}

    def test_withdrawal_after_checkpoint_keeps_its_date(self, components, investment):
        _, transaction_flow, goal_flow = components
        goal_flow.refresh(today=DAY_1)

        tx, result = transaction_flow.withdraw_from_goal(
            1_000, investment.id, date=DAY_1, today=DAY_1
        )

        assert tx.date == DAY_1
        assert not result.warnings
