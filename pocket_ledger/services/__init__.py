"""Services package."""

from pocket_ledger.services.storage import (
    ActivityStorageInterface,
    AuditStorageInterface,
    DuplicateError,
    GoalStorageInterface,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueActivityStorage,
    KeyValueAuditStorage,
    KeyValueGoalStorage,
    KeyValuePocketStorage,
    KeyValueStore,
    KeyValueTransactionStorage,
    NotFoundError,
    PocketStorageInterface,
    StorageError,
    TransactionStorageInterface,
    create_key_value_store,
)

__all__ = [
    "ActivityStorageInterface",
    "AuditStorageInterface",
    "DuplicateError",
    "GoalStorageInterface",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueActivityStorage",
    "KeyValueAuditStorage",
    "KeyValueGoalStorage",
    "KeyValuePocketStorage",
    "KeyValueStore",
    "KeyValueTransactionStorage",
    "NotFoundError",
    "PocketStorageInterface",
    "StorageError",
    "TransactionStorageInterface",
    "create_key_value_store",
]
