# Overview: Classification of untagged quantity changes.

"""
Manual stock edits arrive with only a before and after quantity. The
activity type is inferred from the sign of the change:

- decrease -> consumption (usage, wastage, raw material used)
- increase -> adjustment
- no change -> no event

Known limitation, kept for reporting compatibility: a decrease that corrects
an earlier over-count is still booked as consumption, and an increase that is
really a restock is still booked as adjustment. Purchase and invoice flows
pass an explicit activity type and never reach this module.
"""
from __future__ import annotations

from decimal import Decimal

from ..models import ACTIVITY_ADJUSTMENT, ACTIVITY_CONSUMPTION

CONSUMPTION_NOTE = "Manual stock consumption/usage"
ADJUSTMENT_NOTE = "Manual stock adjustment"

DEFAULT_NOTES = {
    ACTIVITY_CONSUMPTION: CONSUMPTION_NOTE,
    ACTIVITY_ADJUSTMENT: ADJUSTMENT_NOTE,
}


def classify(old_qty: Decimal, new_qty: Decimal) -> str | None:
    """Activity type for an untagged change, or None when nothing changed."""
    if new_qty < old_qty:
        return ACTIVITY_CONSUMPTION
    if new_qty > old_qty:
        return ACTIVITY_ADJUSTMENT
    return None


def default_note(activity_type: str) -> str | None:
    return DEFAULT_NOTES.get(activity_type)
