"""Tests for the key-value storage layer."""

import datetime as dt
import json

import pytest

from pocket_ledger.models import (
    MAIN_POCKET_ID,
    AuditEventBuilder,
    Pocket,
    PocketKind,
    TransactionKind,
)
from pocket_ledger.services.storage import (
    DuplicateError,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueActivityStorage,
    KeyValueGoalStorage,
    KeyValuePocketStorage,
    KeyValueTransactionStorage,
    NotFoundError,
    StorageError,
)

from tests.helpers import daily_return, deposit, investment_goal, make_tx


DAY_0 = dt.date(2024, 1, 1)


class TestJsonFileKeyValueStore:
    """Tests for the JSON file backend."""

    def test_round_trip(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path)
        store.set_item("financial_tracker_goals", "[]")

        assert store.get_item("financial_tracker_goals") == "[]"
        assert (tmp_path / "financial_tracker_goals.json").exists()
        assert store.keys() == ["financial_tracker_goals"]

    def test_missing_key_reads_none(self, tmp_path):
        assert JsonFileKeyValueStore(tmp_path).get_item("nothing") is None

    def test_remove_item(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path)
        store.set_item("k", "1")
        store.remove_item("k")
        assert store.get_item("k") is None

    def test_rejects_unsafe_keys(self, tmp_path):
        with pytest.raises(StorageError):
            JsonFileKeyValueStore(tmp_path).set_item("../escape", "1")

    def test_transactions_survive_a_new_store(self, tmp_path):
        tx = make_tx(TransactionKind.INCOME, 1_000, DAY_0, source_pocket_id=MAIN_POCKET_ID)
        KeyValueTransactionStorage(JsonFileKeyValueStore(tmp_path)).save_transaction(tx)

        reopened = KeyValueTransactionStorage(JsonFileKeyValueStore(tmp_path))

        assert reopened.list_transactions() == [tx]


class TestCollections:
    """Tests for collection behavior on top of the store."""

    def test_corrupt_collection_reads_as_empty(self):
        store = InMemoryKeyValueStore({"financial_tracker_transactions": "{not json"})
        assert KeyValueTransactionStorage(store).list_transactions() == []

    def test_wrong_shape_reads_as_empty(self):
        store = InMemoryKeyValueStore({"financial_tracker_goals": json.dumps({"a": 1})})
        assert KeyValueGoalStorage(store).list_goals() == []

    def test_invalid_records_are_skipped(self, store, transaction_storage):
        good = make_tx(TransactionKind.INCOME, 5, DAY_0, source_pocket_id=MAIN_POCKET_ID)
        transaction_storage.save_transaction(good)
        raw = json.loads(store.get_item("financial_tracker_transactions"))
        raw.append({"id": "tx-bad", "kind": "income", "amount": -3})
        store.set_item("financial_tracker_transactions", json.dumps(raw))

        assert transaction_storage.list_transactions() == [good]

    def test_duplicate_transaction(self, transaction_storage):
        tx = make_tx(TransactionKind.INCOME, 5, DAY_0, source_pocket_id=MAIN_POCKET_ID)
        transaction_storage.save_transaction(tx)
        with pytest.raises(DuplicateError):
            transaction_storage.save_transaction(tx)

    def test_update_unknown_transaction(self, transaction_storage):
        tx = make_tx(TransactionKind.INCOME, 5, DAY_0, source_pocket_id=MAIN_POCKET_ID)
        with pytest.raises(NotFoundError):
            transaction_storage.update_transaction(tx)

    def test_update_keeps_created_at(self, transaction_storage):
        tx = make_tx(TransactionKind.INCOME, 5, DAY_0, source_pocket_id=MAIN_POCKET_ID)
        transaction_storage.save_transaction(tx)

        updated = transaction_storage.update_transaction(tx.model_copy(update={"amount": 9}))

        assert updated.amount == 9
        assert updated.created_at == tx.created_at
        assert transaction_storage.get_transaction(tx.id).amount == 9

    def test_delete_transaction(self, transaction_storage):
        tx = make_tx(TransactionKind.INCOME, 5, DAY_0, source_pocket_id=MAIN_POCKET_ID)
        transaction_storage.save_transaction(tx)

        assert transaction_storage.delete_transaction(tx.id) is True
        assert transaction_storage.delete_transaction(tx.id) is False

    def test_list_for_goal(self, transaction_storage):
        mine = deposit("goal-a", 5, DAY_0)
        transaction_storage.save_transaction(mine)
        transaction_storage.save_transaction(deposit("goal-b", 5, DAY_0, seq=1))

        assert transaction_storage.list_for_goal("goal-a") == [mine]


class TestPocketStorage:
    """Tests for main pocket protection."""

    def test_ensure_main_pocket_is_idempotent(self, store):
        storage = KeyValuePocketStorage(store)
        first = storage.ensure_main_pocket()
        second = storage.ensure_main_pocket()

        assert first.id == second.id == MAIN_POCKET_ID
        assert len(storage.list_pockets()) == 1

    def test_main_pocket_first(self, pocket_storage):
        pocket_storage.save_pocket(Pocket(name="Food"))
        assert pocket_storage.list_pockets()[0].id == MAIN_POCKET_ID

    def test_cannot_delete_main_pocket(self, pocket_storage):
        with pytest.raises(StorageError):
            pocket_storage.delete_pocket(MAIN_POCKET_ID)

    def test_cannot_retype_main_pocket(self, pocket_storage):
        main = pocket_storage.get_pocket(MAIN_POCKET_ID)
        with pytest.raises(StorageError):
            pocket_storage.save_pocket(main.model_copy(update={"kind": PocketKind.SAVING}))

    def test_delete_pocket(self, pocket_storage):
        pocket = pocket_storage.save_pocket(Pocket(name="Food"))
        assert pocket_storage.delete_pocket(pocket.id) is True
        assert pocket_storage.get_pocket(pocket.id) is None
        assert pocket_storage.delete_pocket(pocket.id) is False


class TestGoalStorage:
    """Tests for checkpoint persistence."""

    def test_checkpoint_advances(self, goal_storage):
        goal = goal_storage.save_goal(investment_goal(checkpoint=DAY_0))
        updated = goal_storage.update_checkpoint(goal.id, DAY_0 + dt.timedelta(days=3))
        assert updated.last_return_calculation_date == DAY_0 + dt.timedelta(days=3)

    def test_checkpoint_regression_is_ignored(self, goal_storage):
        goal = goal_storage.save_goal(investment_goal(checkpoint=DAY_0 + dt.timedelta(days=5)))

        goal_storage.update_checkpoint(goal.id, DAY_0)

        assert goal_storage.get_goal(goal.id).last_return_calculation_date == DAY_0 + dt.timedelta(days=5)

    def test_checkpoint_of_unknown_goal(self, goal_storage):
        with pytest.raises(NotFoundError):
            goal_storage.update_checkpoint("goal-missing", DAY_0)


class TestActivityStorage:
    """Tests for the investment activity log."""

    def test_entries_newest_first(self, activity_storage):
        activity_storage.append_entries("goal-a", [
            daily_return("goal-a", 1, DAY_0),
            daily_return("goal-a", 2, DAY_0 + dt.timedelta(days=1)),
        ])
        assert [e.amount for e in activity_storage.get_entries("goal-a")] == [2, 1]

    def test_entries_must_belong_to_goal(self, activity_storage):
        with pytest.raises(StorageError):
            activity_storage.append_entries("goal-a", [daily_return("goal-b", 1, DAY_0)])

    def test_delete_for_goal(self, activity_storage):
        activity_storage.append_entries("goal-a", [daily_return("goal-a", 1, DAY_0)])
        activity_storage.append_entries("goal-b", [daily_return("goal-b", 1, DAY_0)])

        assert activity_storage.delete_for_goal("goal-a") == 1
        assert activity_storage.get_entries("goal-a") == []
        assert list(activity_storage.all_entries()) == ["goal-b"]

    def test_uses_shared_key(self, store):
        KeyValueActivityStorage(store).append_entries("goal-a", [daily_return("goal-a", 1, DAY_0)])
        raw = json.loads(store.get_item("financial_tracker_goal_investment_activity"))
        assert list(raw) == ["goal-a"]


class TestAuditStorage:
    """Tests for audit event persistence."""

    def test_append_and_query(self, audit_storage):
        event = AuditEventBuilder.goal_created("goal-a", "Car", "saving")
        assert audit_storage.append_event(event) is True

        assert audit_storage.get_events_by_entity("goal", "goal-a") == [event]
        assert audit_storage.get_recent_events(limit=1) == [event]
