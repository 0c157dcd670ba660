"""
StockLedger signals.

balance_changed(stock, movement)
    Sent after a movement committed a new balance, while the per-key
    critical section is still held. The alert engine listens here.
    movement is None when a balance was rewritten from the ledger.

alert_raised(alert, created)
    Sent when an alert is opened (created=True) or its reading changed.

alert_resolved(alert)
    Sent when an alert transitions to resolved, automatically or by hand.

Notification dispatch subscribes to alert_raised / alert_resolved.
"""

from django.dispatch import Signal

balance_changed = Signal()
alert_raised = Signal()
alert_resolved = Signal()
