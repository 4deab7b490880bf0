"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Keep the browser app's localStorage layout (one JSON document per
   collection) while running on a plain key-value backend
2. Use in-memory storage for testing
3. Keep the balance engine free of any storage I/O

The engine never calls these interfaces itself. The flows load
collections, hand them to the engine, and write back what it produced.
"""

import datetime as dt
from abc import ABC, abstractmethod
from typing import Optional

from pocket_ledger.models.ledger import (
    Goal,
    InvestmentActivityEntry,
    Pocket,
    Transaction,
)
from pocket_ledger.models.audit import AuditEvent


class KeyValueStore(ABC):
    """
    Minimal string key-value store (the localStorage contract).

    Values are opaque strings; the storage adapters put JSON in them.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous one.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List stored keys."""
        pass


class TransactionStorageInterface(ABC):
    """Storage for the canonical transaction list."""

    @abstractmethod
    def list_transactions(self) -> list[Transaction]:
        """All transactions in insertion order."""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    def save_transaction(self, transaction: Transaction) -> Transaction:
        """
        Append a new transaction.

        Raises:
            DuplicateError: If a transaction with the same id exists
        """
        pass

    @abstractmethod
    def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace an existing transaction in place.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: str) -> bool:
        """Delete by id. Returns False if nothing was deleted."""
        pass

    @abstractmethod
    def replace_all(self, transactions: list[Transaction]) -> None:
        """Overwrite the whole collection (used by pocket deletion)."""
        pass


class PocketStorageInterface(ABC):
    """Storage for pockets."""

    @abstractmethod
    def list_pockets(self) -> list[Pocket]:
        pass

    @abstractmethod
    def get_pocket(self, pocket_id: str) -> Optional[Pocket]:
        pass

    @abstractmethod
    def save_pocket(self, pocket: Pocket) -> Pocket:
        """Insert or replace a pocket."""
        pass

    @abstractmethod
    def delete_pocket(self, pocket_id: str) -> bool:
        """
        Delete a pocket.

        Raises:
            StorageError: If asked to delete the main pocket
        """
        pass

    @abstractmethod
    def ensure_main_pocket(self) -> Pocket:
        """Return the main pocket, creating it on first use."""
        pass


class GoalStorageInterface(ABC):
    """Storage for goals, including each goal's accrual checkpoint."""

    @abstractmethod
    def list_goals(self) -> list[Goal]:
        pass

    @abstractmethod
    def get_goal(self, goal_id: str) -> Optional[Goal]:
        pass

    @abstractmethod
    def save_goal(self, goal: Goal) -> Goal:
        """Insert or replace a goal."""
        pass

    @abstractmethod
    def update_checkpoint(self, goal_id: str, checkpoint: dt.date) -> Goal:
        """
        Move a goal's `last_return_calculation_date` forward.

        A checkpoint earlier than the stored one is ignored, so the
        stored value never decreases.

        Raises:
            NotFoundError: If the goal doesn't exist
        """
        pass

    @abstractmethod
    def delete_goal(self, goal_id: str) -> bool:
        pass


class ActivityStorageInterface(ABC):
    """
    Storage for simulated investment return entries.

    Entries are append-only and grouped per goal.
    """

    @abstractmethod
    def get_entries(self, goal_id: str) -> list[InvestmentActivityEntry]:
        """Entries for one goal, newest first."""
        pass

    @abstractmethod
    def append_entries(
        self,
        goal_id: str,
        entries: list[InvestmentActivityEntry],
    ) -> None:
        pass

    @abstractmethod
    def delete_for_goal(self, goal_id: str) -> int:
        """Delete every entry of a goal. Returns how many were removed."""
        pass

    @abstractmethod
    def all_entries(self) -> dict[str, list[InvestmentActivityEntry]]:
        """Every goal's entries, in stored (append) order."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Events for one entity in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
