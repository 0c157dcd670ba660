"""
StockLedger configuration.

Usage in settings.py:
    STOCKLEDGER = {
        "CATALOG_BACKEND": "stockledger.adapters.catalog.ModelCatalog",
        "LOCK_TIMEOUT": 5.0,
        "EXPIRY_LOOKAHEAD_DAYS": 30,
        "CACHE_ALIAS": "default",
        "CACHE_TIMEOUT": 300,
        "ALERTS_ENABLED": True,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class StockLedgerSettings:
    """StockLedger configuration settings."""

    # Catalog Reference backend (dotted path)
    CATALOG_BACKEND: str = "stockledger.adapters.catalog.ModelCatalog"

    # Seconds to wait for a per-(item, warehouse) critical section
    LOCK_TIMEOUT: float = 5.0

    # Days ahead of expiry at which a batch raises an "expiring" alert
    EXPIRY_LOOKAHEAD_DAYS: int = 30

    # Cache used for read models and catalog lookups
    CACHE_ALIAS: str = "default"
    CACHE_TIMEOUT: int = 300

    # Re-evaluate alerts after every balance change
    ALERTS_ENABLED: bool = True


def get_ledger_settings() -> StockLedgerSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STOCKLEDGER", {})
    return StockLedgerSettings(**{
        k: v for k, v in user_settings.items()
        if k in StockLedgerSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_ledger_settings(), name)


ledger_settings = _LazySettings()
