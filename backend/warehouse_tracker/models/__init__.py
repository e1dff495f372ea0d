from .pallets import Pallet, Location, PALLET_ACTIVE, PALLET_REMOVED
from .activity import (
    ActivityLogEntry,
    ACTION_CHECK_IN,
    ACTION_PARTIAL_REMOVE,
    ACTION_UNITS_REMOVE,
    ACTION_CHECK_OUT,
    ACTIVITY_ACTIONS,
)
from .billing import CustomerRate, Invoice, INVOICE_STATUSES

__all__ = [
    'Pallet', 'Location', 'PALLET_ACTIVE', 'PALLET_REMOVED',
    'ActivityLogEntry',
    'ACTION_CHECK_IN', 'ACTION_PARTIAL_REMOVE', 'ACTION_UNITS_REMOVE', 'ACTION_CHECK_OUT',
    'ACTIVITY_ACTIONS',
    'CustomerRate', 'Invoice', 'INVOICE_STATUSES',
]
