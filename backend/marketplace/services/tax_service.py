# Overview: Pure tax computation for POS transactions.

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from ..validation import ValidationError
from .settings_service import SalesSettings


def compute_tax(subtotal_cents: int, settings: SalesSettings) -> int:
    """
    Tax on a subtotal: subtotal * (pst_rate + gst_rate).

    Rounded once, half-up to whole cents, on the final product. No state and
    no side effects; identical inputs always give identical output.
    """
    if isinstance(subtotal_cents, bool) or not isinstance(subtotal_cents, int):
        raise ValidationError("subtotal_cents must be an integer")
    if subtotal_cents < 0:
        raise ValidationError("subtotal_cents must be >= 0")
    if settings.pst_rate < 0 or settings.gst_rate < 0:
        raise ValidationError("tax rates must be >= 0")

    tax = Decimal(subtotal_cents) * settings.combined_rate
    return int(tax.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
