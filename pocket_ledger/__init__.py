"""
Pocket Ledger - Source Package

The ledger core of a personal-finance tracker: balances derived from a
transaction log, and simulated daily returns for investment goals.

DESIGN PRINCIPLES:
1. Balances are derived, never stored
2. The engine is pure; flows own all storage I/O
3. Simulated growth is append-only and checkpointed per goal
4. Every automatic change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
