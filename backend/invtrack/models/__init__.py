from .inventory import (
    Product,
    InventoryHistory,
    DailyInventorySnapshot,
    ACTIVITY_TYPES,
    ACTIVITY_OPENING_STOCK,
    ACTIVITY_PURCHASE,
    ACTIVITY_SALE,
    ACTIVITY_CONSUMPTION,
    ACTIVITY_ADJUSTMENT,
    ACTIVITY_DAILY_SNAPSHOT,
    REFERENCE_TYPES,
    REFERENCE_PURCHASE_ORDER,
    REFERENCE_INVOICE,
    REFERENCE_MANUAL,
    REFERENCE_SYSTEM,
)

__all__ = [
    'Product', 'InventoryHistory', 'DailyInventorySnapshot',
    'ACTIVITY_TYPES', 'ACTIVITY_OPENING_STOCK', 'ACTIVITY_PURCHASE', 'ACTIVITY_SALE',
    'ACTIVITY_CONSUMPTION', 'ACTIVITY_ADJUSTMENT', 'ACTIVITY_DAILY_SNAPSHOT',
    'REFERENCE_TYPES', 'REFERENCE_PURCHASE_ORDER', 'REFERENCE_INVOICE',
    'REFERENCE_MANUAL', 'REFERENCE_SYSTEM',
]
