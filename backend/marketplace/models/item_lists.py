from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ItemList(db.Model):
    """
    A named, reusable ordering of catalog items (a printable menu or price list).

    Lists with event_id=None are general and show up for every event. Like
    session curation, entries are pure references to catalog items.
    """
    __tablename__ = "item_lists"
    __table_args__ = (
        db.Index("ix_item_lists_event", "event_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    event_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    entries = db.relationship(
        "ItemListEntry",
        backref="item_list",
        lazy=True,
        order_by="ItemListEntry.position",
        cascade="all, delete-orphan",
    )

    @property
    def item_order(self) -> list[int]:
        return [entry.item_id for entry in self.entries]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "event_id": self.event_id,
            "item_order": self.item_order,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ItemListEntry(db.Model):
    __tablename__ = "item_list_entries"
    __table_args__ = (
        db.UniqueConstraint("list_id", "item_id", name="uq_item_list_entries_list_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    list_id = db.Column(db.Integer, db.ForeignKey("item_lists.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
