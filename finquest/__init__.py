"""
FinQuest - Savings Ledger Package

The consistency engine behind a gamified personal-finance tracker:
transactions, savings quests and the rules that keep them in sync.

DESIGN PRINCIPLES:
1. Goal balances are derived, never trusted as input
2. Drift is surfaced as data (is_valid), never silently repaired
3. Local state updates first, the remote store catches up
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "2.0.0"
__author__ = "FinQuest Team"
