from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z


RATE_SCALE = 1_000_000  # rates stored as parts-per-million


class SalesTransaction(db.Model):
    """
    Immutable POS ledger entry for one sale session.

    Totals are computed by the ledger service, never by callers:
    - subtotal_cents excludes voucher lines
    - total_cents = subtotal_cents + taxes_cents
    - promotional_cost_cents is the cost of voucher lines (not part of total)

    Corrections are recorded as a new kind="VOID" row linked through
    adjusts_transaction_id; existing rows are never updated.
    """
    __tablename__ = "sales_transactions"
    __table_args__ = (
        db.Index("ix_sales_transactions_session_created", "session_id", "created_at"),
        db.UniqueConstraint("adjusts_transaction_id", name="uq_sales_transactions_adjusts"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sale_sessions.id"), nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=False, default="SALE")  # SALE, VOID
    adjusts_transaction_id = db.Column(db.Integer, db.ForeignKey("sales_transactions.id"), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    taxes_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)
    promotional_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    # Rates in effect when the transaction was recorded
    pst_rate_ppm = db.Column(db.Integer, nullable=False, default=0)
    gst_rate_ppm = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    session = db.relationship("SaleSession", backref=db.backref("transactions", lazy=True))
    items = db.relationship(
        "SalesTransactionItem",
        backref="transaction",
        lazy=True,
        order_by="SalesTransactionItem.line_number",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "kind": self.kind,
            "adjusts_transaction_id": self.adjusts_transaction_id,
            "notes": self.notes,
            "subtotal_cents": self.subtotal_cents,
            "taxes_cents": self.taxes_cents,
            "total_cents": self.total_cents,
            "promotional_cost_cents": self.promotional_cost_cents,
            "pst_rate": float(Decimal(self.pst_rate_ppm) / RATE_SCALE),
            "gst_rate": float(Decimal(self.gst_rate_ppm) / RATE_SCALE),
            "created_at": to_utc_z(self.created_at),
            "items": [line.to_dict() for line in self.items],
        }


class SalesTransactionItem(db.Model):
    """
    One POS line with a denormalized price/cost snapshot.

    item_id is a weak reference: reports read the snapshot columns only, so
    repricing or removing the catalog item never rewrites history.
    """
    __tablename__ = "sales_transaction_items"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", "line_number", name="uq_sales_tx_items_line"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("sales_transactions.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    item_id = db.Column(
        db.Integer,
        db.ForeignKey("inventory_items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    item_name = db.Column(db.String(255), nullable=False)

    # Negative on VOID rows
    quantity = db.Column(db.Integer, nullable=False)
    is_voucher = db.Column(db.Boolean, nullable=False, default=False)

    # Snapshots; voucher lines carry unit_price_cents=0 and line_total_cents=0
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)
    line_cost_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "line_number": self.line_number,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "is_voucher": self.is_voucher,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
            "line_cost_cents": self.line_cost_cents,
        }
