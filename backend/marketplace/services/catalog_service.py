# Overview: Service-layer operations for the master inventory catalog; owns stock quantities.

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import InventoryCategory, InventoryItem, ItemListEntry, SaleListing, SalesTransactionItem
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_int,
    enforce_rules_item,
    validate_payload,
)
from .audit_service import append_event
from .concurrency import lock_for_update, run_with_retry
"""
Catalog Stock Invariants (authoritative)

- track_stock=True items never hold current_stock < 0.
- track_stock=False items are never consulted or mutated for stock.
- Stock changes only through adjust_stock / apply_stock_deltas, which issue a
  guarded UPDATE (current_stock + delta >= 0 in the WHERE clause). A guard
  miss means another writer got there first and is reported as insufficient
  stock rather than applied.
- apply_stock_deltas is all-or-nothing: every delta is checked before any is
  applied, rows are locked in ascending id order, and the caller's DB
  transaction rolls everything back on failure.
"""


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "category_id",
        "name",
        "description",
        "sku",
        "cost_price_cents",
        "sale_price_cents",
        "current_stock",
        "track_stock",
    },
    required_on_create={"name", "cost_price_cents", "sale_price_cents"},
)


class InsufficientStockError(ValueError):
    """Raised when a tracked item's stock would go negative."""
    def __init__(self, message: str, *, item_id: int, requested: int, available: int):
        super().__init__(message)
        self.item_id = item_id
        self.requested = requested
        self.available = available
        self.details = {
            "item_id": item_id,
            "requested_quantity": requested,
            "available_quantity": available,
        }


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def create_category(name: Any) -> InventoryCategory:
    clean = str(name or "").strip()
    if not clean:
        raise ValidationError("name cannot be blank")
    if len(clean) > 128:
        raise ValidationError("name exceeds max length 128")

    def _op():
        existing = db.session.query(InventoryCategory).filter_by(name=clean).first()
        if existing:
            raise ConflictError(f"Category {clean!r} already exists")
        category = InventoryCategory(name=clean)
        db.session.add(category)
        db.session.commit()
        return category

    return run_with_retry(_op)


def update_category(category_id: int, name: Any) -> InventoryCategory:
    """Rename a category. Names stay unique; items keep their category."""
    clean = str(name or "").strip()
    if not clean:
        raise ValidationError("name cannot be blank")
    if len(clean) > 128:
        raise ValidationError("name exceeds max length 128")

    def _op():
        category = lock_for_update(db.session.query(InventoryCategory).filter_by(id=category_id)).first()
        if category is None:
            raise NotFoundError("Category not found")
        clash = (
            db.session.query(InventoryCategory.id)
            .filter(InventoryCategory.name == clean, InventoryCategory.id != category_id)
            .first()
        )
        if clash:
            raise ConflictError(f"Category {clean!r} already exists")
        category.name = clean
        db.session.commit()
        return category

    return run_with_retry(_op)


def list_categories() -> list[InventoryCategory]:
    return db.session.query(InventoryCategory).order_by(InventoryCategory.name.asc()).all()


def delete_category(category_id: int) -> None:
    """Delete a category; its items stay in the catalog, uncategorized."""
    def _op():
        category = db.session.get(InventoryCategory, category_id)
        if category is None:
            raise NotFoundError("Category not found")
        for item in db.session.query(InventoryItem).filter_by(category_id=category_id).all():
            item.category_id = None
        db.session.delete(category)
        db.session.commit()

    run_with_retry(_op)


def _ensure_category(category_id: int | None) -> None:
    if category_id is None:
        return
    if db.session.get(InventoryCategory, category_id) is None:
        raise NotFoundError("Category not found")


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

def _load_item(item_id: int, *, lock: bool = False) -> InventoryItem:
    query = db.session.query(InventoryItem).filter_by(id=item_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise NotFoundError(f"Inventory item {item_id} not found")
    return item


def get_item(item_id: int) -> InventoryItem:
    return _load_item(item_id)


def list_items(
    *,
    category_id: int | None = None,
    search: str | None = None,
    include_inactive: bool = False,
) -> list[InventoryItem]:
    query = db.session.query(InventoryItem)
    if not include_inactive:
        query = query.filter(InventoryItem.is_active.is_(True))
    if category_id is not None:
        query = query.filter(InventoryItem.category_id == category_id)
    if search:
        query = query.filter(InventoryItem.name.ilike(f"%{search.strip()}%"))
    return query.order_by(InventoryItem.name.asc(), InventoryItem.id.asc()).all()


def create_item(data: dict) -> InventoryItem:
    """
    Add an item to the catalog with current_stock = data["current_stock"] (default 0).

    Raises ValidationError for negative prices or stock, NotFoundError for an
    unknown category.
    """
    patch = validate_payload(model=InventoryItem, payload=data, policy=ITEM_POLICY, partial=False)
    enforce_rules_item(patch)

    def _op():
        _ensure_category(patch.get("category_id"))
        item = InventoryItem(
            category_id=patch.get("category_id"),
            name=patch["name"],
            description=patch.get("description"),
            sku=patch.get("sku") or None,
            cost_price_cents=patch["cost_price_cents"],
            sale_price_cents=patch["sale_price_cents"],
            current_stock=patch.get("current_stock") or 0,
            track_stock=patch.get("track_stock", True),
        )
        db.session.add(item)
        db.session.flush()

        append_event(
            event_type="item.created",
            entity_type="inventory_item",
            entity_id=item.id,
            payload={"current_stock": item.current_stock, "track_stock": item.track_stock},
        )
        db.session.commit()
        return item

    return run_with_retry(_op)


def update_item(item_id: int, data: dict) -> InventoryItem:
    """
    Edit item metadata and prices.

    A requested current_stock is converted to a delta against the stored
    level and applied through the guarded stock path, never assigned.
    """
    patch = validate_payload(model=InventoryItem, payload=data, policy=ITEM_POLICY, partial=True)
    enforce_rules_item(patch)
    target_stock = patch.pop("current_stock", None)

    def _op():
        item = _load_item(item_id, lock=True)
        if "category_id" in patch:
            _ensure_category(patch["category_id"])

        for key, value in patch.items():
            setattr(item, key, value)
        db.session.flush()

        if target_stock is not None and item.track_stock:
            delta = target_stock - item.current_stock
            if delta:
                _apply_delta(item, delta)
                append_event(
                    event_type="stock.adjusted",
                    entity_type="inventory_item",
                    entity_id=item.id,
                    note="Stock set from item edit",
                    payload={"delta": delta, "new_stock": target_stock},
                )

        db.session.commit()
        return item

    return run_with_retry(_op)


def archive_item(item_id: int) -> InventoryItem:
    """Soft delete: hide the item from the catalog but keep history intact."""
    def _op():
        item = _load_item(item_id, lock=True)
        if item.is_active:
            item.is_active = False
            db.session.flush()
            append_event(event_type="item.archived", entity_type="inventory_item", entity_id=item.id)
        db.session.commit()
        return item

    return run_with_retry(_op)


def delete_item(item_id: int) -> None:
    """Hard delete, allowed only while no listing or ledger line references the item.

    Item list entries for the item are removed with it.
    """
    def _op():
        item = _load_item(item_id, lock=True)

        listed = db.session.query(SaleListing.id).filter_by(item_id=item_id).first()
        sold = db.session.query(SalesTransactionItem.id).filter_by(item_id=item_id).first()
        if listed or sold:
            raise ConflictError("Item is referenced by a sale session or transaction; archive it instead")

        # Item lists are loose references; drop the item from them
        db.session.query(ItemListEntry).filter_by(item_id=item_id).delete(synchronize_session=False)
        db.session.delete(item)
        append_event(event_type="item.deleted", entity_type="inventory_item", entity_id=item_id)
        db.session.commit()

    run_with_retry(_op)


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------

def _apply_delta(item: InventoryItem, delta: int) -> int:
    """Guarded UPDATE for one tracked item. Caller holds the DB transaction."""
    result = db.session.execute(
        update(InventoryItem)
        .where(
            InventoryItem.id == item.id,
            InventoryItem.track_stock.is_(True),
            InventoryItem.current_stock + delta >= 0,
        )
        .values(
            current_stock=InventoryItem.current_stock + delta,
            version_id=InventoryItem.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    db.session.expire(item)

    if result.rowcount != 1:
        available = db.session.query(InventoryItem.current_stock).filter_by(id=item.id).scalar() or 0
        raise InsufficientStockError(
            f"Insufficient stock for item {item.id}",
            item_id=item.id,
            requested=-delta,
            available=available,
        )
    return item.current_stock


def apply_stock_deltas(deltas: dict[int, int]) -> dict[int, int]:
    """
    Apply several stock deltas all-or-nothing inside the caller's transaction.

    Untracked items are skipped. Every tracked delta is checked before any is
    applied; the first shortfall (in item id order) raises
    InsufficientStockError and nothing is written. Returns new stock levels
    for the tracked items that changed.
    """
    item_ids = sorted(deltas)
    items = lock_for_update(
        db.session.query(InventoryItem)
        .filter(InventoryItem.id.in_(item_ids))
        .order_by(InventoryItem.id.asc())
    ).all()
    by_id = {item.id: item for item in items}

    for item_id in item_ids:
        if item_id not in by_id:
            raise NotFoundError(f"Inventory item {item_id} not found")

    tracked = [by_id[i] for i in item_ids if by_id[i].track_stock and deltas[i]]
    for item in tracked:
        delta = deltas[item.id]
        if item.current_stock + delta < 0:
            raise InsufficientStockError(
                f"Insufficient stock for {item.name!r}: requested {-delta}, available {item.current_stock}",
                item_id=item.id,
                requested=-delta,
                available=item.current_stock,
            )

    return {item.id: _apply_delta(item, deltas[item.id]) for item in tracked}


def adjust_stock(item_id: int, delta: Any, *, note: str | None = None) -> int:
    """
    Atomically change an item's stock by delta and return the new level.

    Untracked items are left alone and their stored level is returned.
    Raises InsufficientStockError if a tracked item would go negative.
    """
    delta = coerce_int("delta", delta)
    if note is not None and not isinstance(note, str):
        raise ValidationError("note must be a string")
    if note is not None and len(note) > 255:
        raise ValidationError("note exceeds max length 255")

    def _op():
        item = _load_item(item_id, lock=True)
        if not item.track_stock or delta == 0:
            db.session.commit()
            return item.current_stock

        new_levels = apply_stock_deltas({item_id: delta})
        append_event(
            event_type="stock.adjusted",
            entity_type="inventory_item",
            entity_id=item_id,
            note=note,
            payload={"delta": delta, "new_stock": new_levels[item_id]},
        )
        db.session.commit()
        return new_levels[item_id]

    try:
        return run_with_retry(_op)
    except InsufficientStockError as exc:
        current_app.logger.warning("Stock adjustment rejected: %s", exc)
        raise
