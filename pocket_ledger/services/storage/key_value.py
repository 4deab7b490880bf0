"""
Key-Value Storage Implementation

DESIGN DECISION: Every collection is one JSON document under one key,
exactly like the browser app's localStorage layout:
- financial_tracker_transactions        -> list of transactions
- financial_tracker_pockets             -> list of pockets
- financial_tracker_goals               -> list of goals
- financial_tracker_goal_investment_activity -> {goal_id: [entries]}

TRADEOFFS:
- Every write rewrites the whole collection (fine for personal use)
- No transactions across collections (flows order their writes carefully)
- Filtering happens in Python

A document that can't be parsed reads as an empty collection, and a
record that fails validation is skipped. Both are logged.
"""

import datetime as dt
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pocket_ledger.config import get_settings
from pocket_ledger.models.ledger import (
    MAIN_POCKET_ID,
    Goal,
    InvestmentActivityEntry,
    Pocket,
    PocketKind,
    Transaction,
    utc_now,
)
from pocket_ledger.models.audit import AuditEvent
from pocket_ledger.services.storage.interface import (
    ActivityStorageInterface,
    AuditStorageInterface,
    DuplicateError,
    GoalStorageInterface,
    KeyValueStore,
    NotFoundError,
    PocketStorageInterface,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


# =============================================================================
# BACKENDS
# =============================================================================

class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store for tests and throwaway sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)


class JsonFileKeyValueStore(KeyValueStore):
    """
    One `<key>.json` file per key inside a data directory.

    Writes go to a temporary file that atomically replaces the target,
    so a crash never leaves a half-written collection behind.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self._data_dir = Path(data_dir or get_settings().storage.data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._data_dir / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _write_file(self, path: Path, value: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self._write_file(path, value)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}")

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove {key}: {e}")

    def keys(self) -> list[str]:
        if not self._data_dir.exists():
            return []
        return sorted(p.stem for p in self._data_dir.glob("*.json"))


def create_key_value_store() -> KeyValueStore:
    """Build the backend named in settings."""
    settings = get_settings().storage
    if settings.backend == "memory":
        return InMemoryKeyValueStore()
    return JsonFileKeyValueStore(settings.data_dir)


# =============================================================================
# COLLECTION HELPERS
# =============================================================================

def _read_document(store: KeyValueStore, key: str, expected: type):
    """Parse the JSON document under `key`, or return an empty one."""
    raw = store.get_item(key)
    if not raw:
        return expected()
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("collection_unreadable", key=key, error=str(e))
        return expected()
    if not isinstance(parsed, expected):
        logger.warning(
            "collection_wrong_shape",
            key=key,
            expected=expected.__name__,
            found=type(parsed).__name__,
        )
        return expected()
    return parsed


def _parse_records(key: str, items: list, model: type[ModelT]) -> list[ModelT]:
    records = []
    for item in items:
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "record_skipped",
                key=key,
                record_id=item.get("id") if isinstance(item, dict) else None,
                error_count=e.error_count(),
            )
    return records


def _dump_records(records: list[BaseModel]) -> list[dict]:
    return [record.model_dump(mode="json") for record in records]


class _KeyValueCollection:
    """Shared plumbing for list-shaped collections."""

    def __init__(self, store: KeyValueStore, key: str):
        self._store = store
        self._key = key

    def _load(self, model: type[ModelT]) -> list[ModelT]:
        items = _read_document(self._store, self._key, list)
        return _parse_records(self._key, items, model)

    def _save(self, records: list[BaseModel]) -> None:
        self._store.set_item(self._key, json.dumps(_dump_records(records)))


# =============================================================================
# COLLECTIONS
# =============================================================================

class KeyValueTransactionStorage(_KeyValueCollection, TransactionStorageInterface):
    """Transactions stored as one JSON list."""

    def __init__(self, store: KeyValueStore, key: Optional[str] = None):
        super().__init__(store, key or get_settings().storage.transactions_key)

    def list_transactions(self) -> list[Transaction]:
        return self._load(Transaction)

    def list_for_goal(self, goal_id: str) -> list[Transaction]:
        """Transactions that move money into or out of one goal."""
        return [t for t in self.list_transactions() if t.touches_goal(goal_id)]

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self.list_transactions():
            if transaction.id == transaction_id:
                return transaction
        return None

    def save_transaction(self, transaction: Transaction) -> Transaction:
        transactions = self.list_transactions()
        if any(t.id == transaction.id for t in transactions):
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        transactions.append(transaction)
        self._save(transactions)
        return transaction

    def update_transaction(self, transaction: Transaction) -> Transaction:
        transactions = self.list_transactions()
        for idx, existing in enumerate(transactions):
            if existing.id == transaction.id:
                updated = transaction.model_copy(
                    update={
                        "created_at": existing.created_at,
                        "updated_at": utc_now(),
                    }
                )
                transactions[idx] = updated
                self._save(transactions)
                return updated
        raise NotFoundError(f"Transaction not found: {transaction.id}")

    def delete_transaction(self, transaction_id: str) -> bool:
        transactions = self.list_transactions()
        remaining = [t for t in transactions if t.id != transaction_id]
        if len(remaining) == len(transactions):
            return False
        self._save(remaining)
        return True

    def replace_all(self, transactions: list[Transaction]) -> None:
        self._save(transactions)


class KeyValuePocketStorage(_KeyValueCollection, PocketStorageInterface):
    """Pockets stored as one JSON list, main pocket first."""

    def __init__(self, store: KeyValueStore, key: Optional[str] = None):
        super().__init__(store, key or get_settings().storage.pockets_key)

    def list_pockets(self) -> list[Pocket]:
        return self._load(Pocket)

    def get_pocket(self, pocket_id: str) -> Optional[Pocket]:
        for pocket in self.list_pockets():
            if pocket.id == pocket_id:
                return pocket
        return None

    def save_pocket(self, pocket: Pocket) -> Pocket:
        pockets = self.list_pockets()
        for idx, existing in enumerate(pockets):
            if existing.id == pocket.id:
                if existing.is_main and pocket.kind != PocketKind.MAIN:
                    raise StorageError("Cannot change Main Pocket type")
                pockets[idx] = pocket
                break
        else:
            pockets.append(pocket)
        self._save(pockets)
        return pocket

    def delete_pocket(self, pocket_id: str) -> bool:
        pockets = self.list_pockets()
        target = next((p for p in pockets if p.id == pocket_id), None)
        if target is None:
            return False
        if target.is_main:
            raise StorageError("Cannot delete Main Pocket")
        self._save([p for p in pockets if p.id != pocket_id])
        return True

    def ensure_main_pocket(self) -> Pocket:
        pockets = self.list_pockets()
        for pocket in pockets:
            if pocket.is_main:
                return pocket
        main = Pocket(
            id=MAIN_POCKET_ID,
            name="Main Pocket",
            kind=PocketKind.MAIN,
            icon="💰",
        )
        pockets.insert(0, main)
        self._save(pockets)
        logger.info("main_pocket_created", pocket_id=main.id)
        return main


class KeyValueGoalStorage(_KeyValueCollection, GoalStorageInterface):
    """Goals stored as one JSON list."""

    def __init__(self, store: KeyValueStore, key: Optional[str] = None):
        super().__init__(store, key or get_settings().storage.goals_key)

    def list_goals(self) -> list[Goal]:
        return self._load(Goal)

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        for goal in self.list_goals():
            if goal.id == goal_id:
                return goal
        return None

    def save_goal(self, goal: Goal) -> Goal:
        goals = self.list_goals()
        for idx, existing in enumerate(goals):
            if existing.id == goal.id:
                goals[idx] = goal
                break
        else:
            goals.append(goal)
        self._save(goals)
        return goal

    def update_checkpoint(self, goal_id: str, checkpoint: dt.date) -> Goal:
        goals = self.list_goals()
        for idx, goal in enumerate(goals):
            if goal.id != goal_id:
                continue
            current = goal.last_return_calculation_date
            if current is not None and checkpoint <= current:
                if checkpoint < current:
                    logger.warning(
                        "checkpoint_regression_ignored",
                        goal_id=goal_id,
                        stored=current.isoformat(),
                        requested=checkpoint.isoformat(),
                    )
                return goal
            updated = goal.model_copy(update={"last_return_calculation_date": checkpoint})
            goals[idx] = updated
            self._save(goals)
            return updated
        raise NotFoundError(f"Goal not found: {goal_id}")

    def delete_goal(self, goal_id: str) -> bool:
        goals = self.list_goals()
        remaining = [g for g in goals if g.id != goal_id]
        if len(remaining) == len(goals):
            return False
        self._save(remaining)
        return True


class KeyValueActivityStorage(ActivityStorageInterface):
    """Investment activity stored as one JSON object keyed by goal id."""

    def __init__(self, store: KeyValueStore, key: Optional[str] = None):
        self._store = store
        self._key = key or get_settings().storage.activity_key

    def _load_map(self) -> dict[str, list]:
        return _read_document(self._store, self._key, dict)

    def _save_map(self, raw: dict[str, list]) -> None:
        self._store.set_item(self._key, json.dumps(raw))

    def get_entries(self, goal_id: str) -> list[InvestmentActivityEntry]:
        items = self._load_map().get(goal_id) or []
        entries = _parse_records(self._key, items, InvestmentActivityEntry)
        # Stable sort keeps append order within a day
        return sorted(entries, key=lambda e: e.date, reverse=True)

    def append_entries(
        self,
        goal_id: str,
        entries: list[InvestmentActivityEntry],
    ) -> None:
        if not entries:
            return
        raw = self._load_map()
        existing = raw.get(goal_id)
        if not isinstance(existing, list):
            existing = []
        for entry in entries:
            if entry.goal_id != goal_id:
                raise StorageError(
                    f"Activity entry {entry.id} belongs to {entry.goal_id}, not {goal_id}"
                )
        existing.extend(_dump_records(entries))
        raw[goal_id] = existing
        self._save_map(raw)

    def delete_for_goal(self, goal_id: str) -> int:
        raw = self._load_map()
        removed = raw.pop(goal_id, None)
        if removed is None:
            return 0
        self._save_map(raw)
        return len(removed) if isinstance(removed, list) else 0

    def all_entries(self) -> dict[str, list[InvestmentActivityEntry]]:
        raw = self._load_map()
        return {
            goal_id: _parse_records(self._key, items, InvestmentActivityEntry)
            for goal_id, items in raw.items()
            if isinstance(items, list)
        }


class KeyValueAuditStorage(_KeyValueCollection, AuditStorageInterface):
    """
    Audit events stored as one JSON list.

    Audit events are append-only.
    """

    def __init__(self, store: KeyValueStore, key: Optional[str] = None):
        super().__init__(store, key or get_settings().storage.audit_key)

    def append_event(self, event: AuditEvent) -> bool:
        try:
            events = self._load(AuditEvent)
            events.append(event)
            self._save(events)
            return True
        except StorageError as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._load(AuditEvent)
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._load(AuditEvent)
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
