"""
inventory_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``load_settings()`` reads defaults, an optional YAML file and the
    environment into a frozen ``LedgerSettings``; ``build_ledger()`` turns
    those settings into the process's InventoryLedger. No other component
    reads configuration files or environment variables.

Architecture position:
    Configuration. Sits above ``inventory_kernel`` and
    ``inventory_services``; the kernel MUST NEVER import from this package.
"""

from inventory_config.factory import build_ledger, build_storage
from inventory_config.settings import LedgerSettings, load_settings

__all__ = [
    "LedgerSettings",
    "build_ledger",
    "build_storage",
    "load_settings",
]
