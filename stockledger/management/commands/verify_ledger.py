"""
Management command to replay the ledger against current balances.

Usage:
    python manage.py verify_ledger
    python manage.py verify_ledger --fix
"""

from django.core.management.base import BaseCommand

from stockledger import stock
from stockledger.models import WarehouseStock


class Command(BaseCommand):
    """Compare every WarehouseStock row with the sum of its movements."""

    help = 'Verifies that balances match the stock movement ledger'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Rewrite drifted balances from the ledger'
        )

    def handle(self, *args, **options):
        drifted = 0
        for row in WarehouseStock.objects.select_related('item', 'warehouse').iterator():
            expected = row.ledger_balance()
            if expected == row.quantity_available:
                continue
            drifted += 1
            self.stdout.write(
                self.style.WARNING(
                    f'{row.item} @ {row.warehouse}: balance {row.quantity_available}, ledger {expected}'
                )
            )
            if options['fix']:
                stock.recalculate(row.item_id, row.warehouse_id)

        if drifted == 0:
            self.stdout.write(self.style.SUCCESS('Ledger and balances agree'))
        elif options['fix']:
            self.stdout.write(self.style.SUCCESS(f'{drifted} balance(s) recalculated'))
        else:
            self.stdout.write(self.style.ERROR(f'{drifted} balance(s) drifted from the ledger'))
