from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SalesSettingsRow(db.Model):
    """
    Process-wide POS tax configuration (single row, id=1).

    Rates are stored as integer parts-per-million (70000 = 7%) so the
    fraction round-trips exactly on every backend. Read through
    settings_service.get_sales_settings(); changed only by
    settings_service.update_sales_settings().
    """
    __tablename__ = "sales_settings"

    id = db.Column(db.Integer, primary_key=True)
    pst_rate_ppm = db.Column(db.Integer, nullable=False, default=0)
    gst_rate_ppm = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "pst_rate_ppm": self.pst_rate_ppm,
            "gst_rate_ppm": self.gst_rate_ppm,
            "updated_at": to_utc_z(self.updated_at),
        }
