# Overview: Explicit load/update lifecycle for the process-wide POS tax settings.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import SalesSettingsRow
from ..models.sales import RATE_SCALE
from ..validation import ValidationError, coerce_rate
from .audit_service import append_event
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry


SETTINGS_ROW_ID = 1


@dataclass(frozen=True)
class SalesSettings:
    """Immutable snapshot of the tax configuration handed to tax_service."""
    pst_rate: Decimal
    gst_rate: Decimal

    @property
    def combined_rate(self) -> Decimal:
        return self.pst_rate + self.gst_rate

    def to_dict(self) -> dict:
        return {
            "pst_rate": float(self.pst_rate),
            "gst_rate": float(self.gst_rate),
        }


def rate_to_ppm(key: str, rate: Decimal) -> int:
    scaled = rate * RATE_SCALE
    if scaled != scaled.to_integral_value():
        raise ValidationError(f"{key} supports at most 6 decimal places")
    return int(scaled)


def ppm_to_rate(ppm: int) -> Decimal:
    return Decimal(ppm) / RATE_SCALE


def _defaults_from_config() -> SalesSettings:
    return SalesSettings(
        pst_rate=coerce_rate("DEFAULT_PST_RATE", current_app.config.get("DEFAULT_PST_RATE", "0")),
        gst_rate=coerce_rate("DEFAULT_GST_RATE", current_app.config.get("DEFAULT_GST_RATE", "0")),
    )


def get_sales_settings() -> SalesSettings:
    """
    Load the current tax settings.

    Until the first explicit update the configured defaults apply; reading
    never writes a row.
    """
    row = db.session.get(SalesSettingsRow, SETTINGS_ROW_ID)
    if row is None:
        return _defaults_from_config()
    return SalesSettings(
        pst_rate=ppm_to_rate(row.pst_rate_ppm),
        gst_rate=ppm_to_rate(row.gst_rate_ppm),
    )


def update_sales_settings(*, pst_rate: Any = None, gst_rate: Any = None) -> SalesSettings:
    """
    Explicitly change one or both tax rates.

    Rates are non-negative fractions (0.07 = 7%). Omitted rates keep their
    current value.
    """
    if pst_rate is None and gst_rate is None:
        raise ValidationError("pst_rate or gst_rate is required")

    pst_ppm = rate_to_ppm("pst_rate", coerce_rate("pst_rate", pst_rate)) if pst_rate is not None else None
    gst_ppm = rate_to_ppm("gst_rate", coerce_rate("gst_rate", gst_rate)) if gst_rate is not None else None

    def _op():
        # Read and merge under the write lock so partial updates never clobber each other
        begin_write_transaction()
        row = lock_for_update(
            db.session.query(SalesSettingsRow).filter_by(id=SETTINGS_ROW_ID).populate_existing()
        ).first()
        current = get_sales_settings()
        if row is None:
            row = SalesSettingsRow(id=SETTINGS_ROW_ID)
            db.session.add(row)
        old = {
            "pst_rate_ppm": rate_to_ppm("pst_rate", current.pst_rate),
            "gst_rate_ppm": rate_to_ppm("gst_rate", current.gst_rate),
        }
        new = {
            "pst_rate_ppm": pst_ppm if pst_ppm is not None else old["pst_rate_ppm"],
            "gst_rate_ppm": gst_ppm if gst_ppm is not None else old["gst_rate_ppm"],
        }
        row.pst_rate_ppm = new["pst_rate_ppm"]
        row.gst_rate_ppm = new["gst_rate_ppm"]
        db.session.flush()

        append_event(
            event_type="settings.sales_updated",
            entity_type="sales_settings",
            entity_id=SETTINGS_ROW_ID,
            payload={"old": old, "new": new},
        )
        db.session.commit()

    run_with_retry(_op)
    settings = get_sales_settings()
    current_app.logger.info("Sales settings updated: pst=%s gst=%s", settings.pst_rate, settings.gst_rate)
    return settings
