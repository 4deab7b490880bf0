"""Tests for configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from pocket_ledger.config import (
    AccrualSettings,
    AppSettings,
    StorageSettings,
    validate_all_settings,
)
from pocket_ledger.services.storage import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    create_key_value_store,
)


class TestSettings:
    """Tests for pydantic-settings classes."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("POCKET_LEDGER_STORAGE_BACKEND", raising=False)
        monkeypatch.delenv("POCKET_LEDGER_ACCRUAL_MAX_CATCH_UP_DAYS", raising=False)

        assert StorageSettings().backend == "json"
        assert StorageSettings().data_dir == Path(".pocket_ledger")
        assert AccrualSettings().days_per_year == 365
        assert AccrualSettings().max_catch_up_days == 3660

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("POCKET_LEDGER_ACCRUAL_MAX_CATCH_UP_DAYS", "30")
        monkeypatch.setenv("POCKET_LEDGER_STORAGE_BACKEND", " Memory ")

        assert AccrualSettings().max_catch_up_days == 30
        assert StorageSettings().backend == "memory"

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setenv("POCKET_LEDGER_STORAGE_BACKEND", "sheets")
        with pytest.raises(ValidationError):
            StorageSettings()

    def test_log_level_is_uppercased(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert AppSettings().log_level == "DEBUG"

    def test_validate_all_settings_reports_errors(self, monkeypatch):
        monkeypatch.setenv("POCKET_LEDGER_ACCRUAL_DAYS_PER_YEAR", "12")

        results = validate_all_settings()

        assert results["storage"] is True
        assert results["accrual"] is False
        assert "accrual_error" in results

    def test_backend_selection(self, monkeypatch, tmp_path):
        monkeypatch.setenv("POCKET_LEDGER_STORAGE_BACKEND", "memory")
        assert isinstance(create_key_value_store(), InMemoryKeyValueStore)

        monkeypatch.setenv("POCKET_LEDGER_STORAGE_BACKEND", "json")
        monkeypatch.setenv("POCKET_LEDGER_STORAGE_DATA_DIR", str(tmp_path))
        store = create_key_value_store()
        assert isinstance(store, JsonFileKeyValueStore)
        assert store.data_dir == tmp_path
