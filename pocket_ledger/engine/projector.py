"""
Balance Projector

Derives every pocket and goal balance from the transaction log.

Balances are sums, so transactions can be folded in any order. Transfers
move an amount between two accounts and net to zero globally, which gives
the conservation law the tests rely on:

    sum(balances) == sum(income) - sum(expense)
"""

from collections import defaultdict
from typing import Iterable, Optional

from pocket_ledger.models.ledger import (
    InvestmentActivityEntry,
    Transaction,
    TransactionKind,
)


class LedgerError(Exception):
    """Base exception for balance engine errors."""
    pass


class UnknownTransactionKindError(LedgerError):
    """A transaction kind the projector does not know how to book."""
    pass


def project_balances(
    transactions: Iterable[Transaction],
    activities: Optional[Iterable[InvestmentActivityEntry]] = None,
) -> dict[str, int]:
    """
    Compute the net balance of every account touched by `transactions`.

    Args:
        transactions: Pre-validated transactions, in any order
        activities: Optional simulated return entries; each one is
            credited to its goal

    Returns:
        Mapping of pocket/goal id to balance. Accounts never touched are
        absent (read them with `.get(id, 0)`).
    """
    balances: defaultdict[str, int] = defaultdict(int)

    for tx in transactions:
        if tx.kind == TransactionKind.INCOME:
            balances[tx.owner_account_id] += tx.amount
        elif tx.kind == TransactionKind.EXPENSE:
            balances[tx.owner_account_id] -= tx.amount
        elif tx.kind == TransactionKind.TRANSFER:
            balances[tx.source_account_id] -= tx.amount
            balances[tx.target_account_id] += tx.amount
        else:
            raise UnknownTransactionKindError(f"Cannot book transaction kind: {tx.kind!r}")

    for entry in activities or ():
        balances[entry.goal_id] += entry.amount

    return dict(balances)


def pocket_balances(
    transactions: Iterable[Transaction],
    pocket_ids: Iterable[str],
) -> dict[str, int]:
    """Balances for the given pockets, including pockets with no activity."""
    projected = project_balances(transactions)
    return {pocket_id: projected.get(pocket_id, 0) for pocket_id in pocket_ids}
