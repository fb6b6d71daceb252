"""
Reseller Ledger - Source Package

A business ledger for a subscription-reselling operation: sales and
marketing spend, kept either on the device or in a signed-in cloud
database, with profitability metrics derived from whichever is active.

DESIGN PRINCIPLES:
1. One backend is active at a time; switching is an explicit transition
2. Cloud records always belong to the signed-in principal
3. Blocked writes fail loudly, never silently
4. Metrics are recomputed from the current snapshot, never cached
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Reseller Ledger Team"
