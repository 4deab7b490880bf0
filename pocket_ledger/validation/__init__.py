"""Transaction validation package."""

from pocket_ledger.validation.validator import TransactionValidator

__all__ = ["TransactionValidator"]
