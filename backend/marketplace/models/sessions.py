from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SaleSession(db.Model):
    """
    A bounded sales context (event, market day, general/online sale).

    Curates a subset of the catalog through SaleListing rows. Curation is a
    pure reference: it never creates, deletes or restocks catalog items.
    """
    __tablename__ = "sale_sessions"
    __table_args__ = (
        db.Index("ix_sale_sessions_event", "event_id"),
        db.Index("ix_sale_sessions_project", "project_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    organizer_type = db.Column(db.String(16), nullable=False, default="internal")  # internal, partner
    association_type = db.Column(db.String(16), nullable=True)  # event, project, general

    # External references (events/projects live outside the engine)
    event_id = db.Column(db.String(64), nullable=True)
    project_id = db.Column(db.String(64), nullable=True)
    partner_name = db.Column(db.String(255), nullable=True)
    partner_contact_id = db.Column(db.String(64), nullable=True)

    # Planning figure, never derived from the ledger
    expected_revenue_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    listings = db.relationship(
        "SaleListing",
        backref="session",
        lazy=True,
        order_by="SaleListing.position",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "organizer_type": self.organizer_type,
            "association_type": self.association_type,
            "event_id": self.event_id,
            "project_id": self.project_id,
            "partner_name": self.partner_name,
            "partner_contact_id": self.partner_contact_id,
            "expected_revenue_cents": self.expected_revenue_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SaleListing(db.Model):
    """A session's reference to one curated catalog item, in display order."""
    __tablename__ = "sale_listings"
    __table_args__ = (
        db.UniqueConstraint("session_id", "item_id", name="uq_sale_listings_session_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sale_sessions.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "item_id": self.item_id,
            "position": self.position,
            "created_at": to_utc_z(self.created_at),
        }
