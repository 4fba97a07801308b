"""
Inventory Kernel

The allocation ledger for promotional and pharmaceutical stock:
- Atomic transfers between the central pool and per-user holdings
- Append-only movement history
- Role/capability lookup
- Interchangeable in-memory and SQL storage strategies
"""

__version__ = "0.1.0"
