from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class InventoryCategory(db.Model):
    """Organizational grouping for catalog items. No coupling to stock logic."""
    __tablename__ = "inventory_categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryItem(db.Model):
    """
    Master catalog item.

    STOCK INVARIANT:
    - track_stock=True  -> current_stock >= 0 at all times
    - track_stock=False -> current_stock is never consulted or mutated

    current_stock is only ever changed through catalog_service.adjust_stock
    (guarded UPDATE); never assign it directly.

    Items referenced by listings or ledger lines are archived (is_active=False)
    rather than deleted so historical reports stay intact.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_category_name", "category_id", "name"),
        db.Index("ix_inventory_items_active", "is_active"),
        db.CheckConstraint(
            "NOT track_stock OR current_stock >= 0",
            name="ck_inventory_items_tracked_stock_nonnegative",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(
        db.Integer,
        db.ForeignKey("inventory_categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sku = db.Column(db.String(64), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    track_stock = db.Column(db.Boolean, nullable=False, default=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("InventoryCategory", backref=db.backref("items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} stock={self.current_stock} tracked={self.track_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "name": self.name,
            "description": self.description,
            "sku": self.sku,
            "cost_price_cents": self.cost_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "margin_cents": self.sale_price_cents - self.cost_price_cents,
            "current_stock": self.current_stock,
            "track_stock": self.track_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
