"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Collections live in a localStorage-style key-value store, backed either by
JSON files on disk or by memory.
"""

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
from pocket_ledger.services.storage.key_value import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueActivityStorage,
    KeyValueAuditStorage,
    KeyValueGoalStorage,
    KeyValuePocketStorage,
    KeyValueTransactionStorage,
    create_key_value_store,
)

__all__ = [
    # Interfaces
    "ActivityStorageInterface",
    "AuditStorageInterface",
    "GoalStorageInterface",
    "KeyValueStore",
    "PocketStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Key-value implementation
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueActivityStorage",
    "KeyValueAuditStorage",
    "KeyValueGoalStorage",
    "KeyValuePocketStorage",
    "KeyValueTransactionStorage",
    "create_key_value_store",
]
