"""
Management command to re-evaluate stock alerts.

Usage:
    python manage.py sweep_stock_alerts
    python manage.py sweep_stock_alerts --item 42
    python manage.py sweep_stock_alerts --dry-run
"""

from django.core.management.base import BaseCommand

from stockledger import stock
from stockledger.models import InventoryItem, WarehouseStock


class Command(BaseCommand):
    """Re-evaluate alerts (thresholds and batch expiry) for every balance row."""

    help = 'Re-evaluates stock alerts, including batch expiry'

    def add_arguments(self, parser):
        parser.add_argument(
            '--item',
            type=int,
            help='Only sweep this inventory item id'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Shows how many rows would be evaluated without touching alerts'
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            rows = WarehouseStock.objects.filter(
                item__in=InventoryItem.objects.active().trackable()
            )
            if options['item']:
                rows = rows.filter(item_id=options['item'])
            self.stdout.write(f'{rows.count()} stock row(s) would be evaluated')
            return

        summary = stock.sweep_alerts(item=options['item'])
        self.stdout.write(
            self.style.SUCCESS(
                f"{summary['evaluated']} row(s) evaluated, "
                f"{summary['touched']} alert(s) changed, "
                f"{summary['skipped']} skipped"
            )
        )
