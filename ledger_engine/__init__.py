"""
Ledger Engine - Source Package

Bulk ledger ingestion and balance-consistency engine for a
personal-finance ledger.

DESIGN PRINCIPLES:
1. Parse leniently, validate strictly
2. A bad row never sinks the batch
3. No silent corrections to balances
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Ledger Engine Team"
