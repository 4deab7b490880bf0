"""Shared fixtures: an in-memory ledger with injected days."""

import pytest

from pocket_ledger.audit import AuditLogger
from pocket_ledger.services.storage import (
    InMemoryKeyValueStore,
    KeyValueActivityStorage,
    KeyValueAuditStorage,
    KeyValueGoalStorage,
    KeyValuePocketStorage,
    KeyValueTransactionStorage,
)


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def transaction_storage(store):
    return KeyValueTransactionStorage(store)


@pytest.fixture
def pocket_storage(store):
    storage = KeyValuePocketStorage(store)
    storage.ensure_main_pocket()
    return storage


@pytest.fixture
def goal_storage(store):
    return KeyValueGoalStorage(store)


@pytest.fixture
def activity_storage(store):
    return KeyValueActivityStorage(store)


@pytest.fixture
def audit_storage(store):
    return KeyValueAuditStorage(store)


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)
