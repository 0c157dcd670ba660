"""Django app configuration for StockLedger."""

from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class StockLedgerConfig(AppConfig):
    """Configuration for StockLedger app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "stockledger"
    verbose_name = _("Stock Ledger")

    def ready(self):
        from stockledger import receivers  # noqa: F401  (connects signal handlers)
