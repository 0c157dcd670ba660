"""
Initial migration for StockLedger models.
"""

from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    """Create InventoryItem, Warehouse, WarehouseStock, StockMovement, StockAlert."""

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='InventoryItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sku', models.CharField(max_length=64, unique=True, verbose_name='SKU')),
                ('name', models.CharField(max_length=200, verbose_name='Name')),
                ('unit_of_measure', models.CharField(default='piece', max_length=20, verbose_name='Unit of measure')),
                ('unit_cost', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10, verbose_name='Unit cost')),
                ('min_stock_level', models.PositiveIntegerField(default=0, verbose_name='Minimum stock level')),
                ('max_stock_level', models.PositiveIntegerField(default=1000, verbose_name='Maximum stock level')),
                ('reorder_point', models.PositiveIntegerField(default=10, help_text='At or below this quantity the item is low on stock', verbose_name='Reorder point')),
                ('reorder_quantity', models.PositiveIntegerField(default=50, verbose_name='Reorder quantity')),
                ('is_trackable', models.BooleanField(default=True, verbose_name='Trackable')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Inventory item',
                'verbose_name_plural': 'Inventory items',
                'ordering': ['sku'],
                'indexes': [
                    models.Index(fields=['is_active', 'is_trackable'], name='sl_item_active_track_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Warehouse',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=32, unique=True, verbose_name='Code')),
                ('name', models.CharField(max_length=100, verbose_name='Name')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Warehouse',
                'verbose_name_plural': 'Warehouses',
                'ordering': ['code'],
            },
        ),
        migrations.CreateModel(
            name='WarehouseStock',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity_available', models.PositiveIntegerField(default=0, verbose_name='Available')),
                ('quantity_reserved', models.PositiveIntegerField(default=0, verbose_name='Reserved')),
                ('quantity_damaged', models.PositiveIntegerField(default=0, verbose_name='Damaged')),
                ('average_cost', models.DecimalField(decimal_places=4, default=Decimal('0'), help_text='Quantity-weighted moving average of inbound unit costs', max_digits=12, verbose_name='Average cost')),
                ('location', models.CharField(blank=True, default='', help_text='Aisle / shelf / bin', max_length=100, verbose_name='Location')),
                ('last_counted_at', models.DateTimeField(blank=True, null=True, verbose_name='Last counted at')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_rows', to='stockledger.inventoryitem', verbose_name='Item')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_rows', to='stockledger.warehouse', verbose_name='Warehouse')),
                ('last_counted_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Last counted by')),
            ],
            options={
                'verbose_name': 'Warehouse stock',
                'verbose_name_plural': 'Warehouse stock',
                'indexes': [
                    models.Index(fields=['warehouse', 'quantity_available'], name='sl_stock_wh_qty_idx'),
                    models.Index(fields=['last_counted_at'], name='sl_stock_counted_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('item', 'warehouse'), name='unique_stock_item_warehouse'),
                    models.CheckConstraint(condition=models.Q(('quantity_reserved__lte', models.F('quantity_available'))), name='stock_reserved_within_available'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('in', 'Stock In'), ('out', 'Stock Out'), ('adjustment', 'Adjustment'), ('transfer', 'Transfer'), ('damaged', 'Damaged'), ('lost', 'Lost'), ('found', 'Found')], max_length=20, verbose_name='Type')),
                ('quantity', models.PositiveIntegerField(verbose_name='Quantity')),
                ('delta', models.IntegerField(help_text='Signed change applied to quantity_available', verbose_name='Delta')),
                ('quantity_before', models.PositiveIntegerField(verbose_name='Quantity before')),
                ('quantity_after', models.PositiveIntegerField(verbose_name='Quantity after')),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=4, max_digits=12, null=True, verbose_name='Unit cost')),
                ('reference_type', models.CharField(blank=True, default='', max_length=100, verbose_name='Reference type')),
                ('reference_id', models.CharField(blank=True, default='', max_length=100, verbose_name='Reference id')),
                ('batch_number', models.CharField(blank=True, default='', max_length=50, verbose_name='Batch')),
                ('expiry_date', models.DateField(blank=True, null=True, verbose_name='Expiry date')),
                ('movement_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Date/time')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Notes')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='stockledger.inventoryitem', verbose_name='Item')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='stockledger.warehouse', verbose_name='Warehouse')),
                ('actor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Actor')),
            ],
            options={
                'verbose_name': 'Stock movement',
                'verbose_name_plural': 'Stock movements',
                'ordering': ['movement_date', 'id'],
                'indexes': [
                    models.Index(fields=['item', 'warehouse', 'movement_date'], name='sl_move_key_date_idx'),
                    models.Index(fields=['type', 'movement_date'], name='sl_move_type_date_idx'),
                    models.Index(fields=['reference_type', 'reference_id'], name='sl_move_ref_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockAlert',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('low_stock', 'Low Stock'), ('out_of_stock', 'Out of Stock'), ('overstock', 'Overstock'), ('expiring', 'Expiring Soon'), ('expired', 'Expired')], max_length=20, verbose_name='Type')),
                ('status', models.CharField(choices=[('active', 'Active'), ('acknowledged', 'Acknowledged'), ('resolved', 'Resolved')], db_index=True, default='active', max_length=20, verbose_name='Status')),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('critical', 'Critical')], default='medium', max_length=10, verbose_name='Priority')),
                ('current_quantity', models.IntegerField(verbose_name='Current quantity')),
                ('threshold_quantity', models.IntegerField(blank=True, null=True, verbose_name='Threshold')),
                ('message', models.TextField(verbose_name='Message')),
                ('triggered_at', models.DateTimeField(verbose_name='Triggered at')),
                ('acknowledged_at', models.DateTimeField(blank=True, null=True, verbose_name='Acknowledged at')),
                ('resolved_at', models.DateTimeField(blank=True, null=True, verbose_name='Resolved at')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='alerts', to='stockledger.inventoryitem', verbose_name='Item')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='alerts', to='stockledger.warehouse', verbose_name='Warehouse')),
                ('acknowledged_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Acknowledged by')),
                ('resolved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Resolved by')),
            ],
            options={
                'verbose_name': 'Stock alert',
                'verbose_name_plural': 'Stock alerts',
                'indexes': [
                    models.Index(fields=['status', 'priority', 'triggered_at'], name='sl_alert_prio_idx'),
                    models.Index(fields=['item', 'warehouse', 'status'], name='sl_alert_key_status_idx'),
                    models.Index(fields=['type', 'status'], name='sl_alert_type_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status__in', ['active', 'acknowledged'])), fields=('item', 'warehouse', 'type'), name='unique_open_alert_per_key_type'),
                ],
            },
        ),
    ]
