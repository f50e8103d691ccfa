"""
EcoBudget - Core Package

The state engine behind a personal budgeting app: a transaction ledger
with running aggregates, spending capsules, recurring transactions and a
challenge / XP / level layer on top.

DESIGN PRINCIPLES:
1. Aggregates are maintained incrementally, never recomputed from scratch
2. Every mutation swaps in a whole new snapshot
3. No silent corrections of user input
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "EcoBudget Team"
