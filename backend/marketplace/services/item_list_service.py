# Overview: Named, reusable item lists (menus/price lists), optionally scoped to an event.

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import InventoryItem, ItemList, ItemListEntry
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, NotFoundError, ValidationError, normalize_item_ids, validate_payload
from .audit_service import append_event
from .concurrency import lock_for_update, run_with_retry
from .session_service import curate


DEFAULT_LIST_NAME = "New Item List"

ITEM_LIST_POLICY = ModelValidationPolicy(
    writable_fields={"name", "event_id"},
    required_on_create=set(),
)


def _split_payload(data: Any, *, partial: bool) -> tuple[dict, list[int] | None]:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    fields = dict(data)
    raw_ids = fields.pop("item_ids", None)
    patch = validate_payload(model=ItemList, payload=fields, policy=ITEM_LIST_POLICY, partial=partial)
    item_ids = normalize_item_ids(raw_ids) if raw_ids is not None else None
    return patch, item_ids


def _ensure_items_exist(item_ids: list[int]) -> None:
    if not item_ids:
        return
    found = {
        row.id
        for row in db.session.query(InventoryItem.id).filter(InventoryItem.id.in_(item_ids)).all()
    }
    missing = [i for i in item_ids if i not in found]
    if missing:
        raise NotFoundError(f"Inventory item {missing[0]} not found")


def _set_order(item_list: ItemList, item_ids: list[int]) -> None:
    existing = {entry.item_id: entry for entry in item_list.entries}
    wanted = set(item_ids)
    for item_id, entry in existing.items():
        if item_id not in wanted:
            item_list.entries.remove(entry)
    for position, item_id in enumerate(item_ids):
        entry = existing.get(item_id)
        if entry is None:
            item_list.entries.append(ItemListEntry(item_id=item_id, position=position))
        else:
            entry.position = position
    item_list.updated_at = utcnow()


def get_item_list(list_id: int, *, lock: bool = False) -> ItemList:
    query = db.session.query(ItemList).filter_by(id=list_id)
    if lock:
        query = lock_for_update(query)
    item_list = query.first()
    if item_list is None:
        raise NotFoundError(f"Item list {list_id} not found")
    return item_list


def list_item_lists(*, event_id: str | None = None) -> list[ItemList]:
    """
    Oldest first. With an event filter, general lists (no event) are
    included alongside the event's own lists.
    """
    query = db.session.query(ItemList)
    if event_id:
        query = query.filter(or_(ItemList.event_id.is_(None), ItemList.event_id == event_id))
    return query.order_by(ItemList.created_at.asc(), ItemList.id.asc()).all()


def create_item_list(data: Any) -> ItemList:
    patch, item_ids = _split_payload(data, partial=False)
    patch.setdefault("name", DEFAULT_LIST_NAME)

    def _op():
        _ensure_items_exist(item_ids or [])
        item_list = ItemList(**patch)
        for position, item_id in enumerate(item_ids or []):
            item_list.entries.append(ItemListEntry(item_id=item_id, position=position))
        db.session.add(item_list)
        db.session.flush()
        append_event(event_type="item_list.created", entity_type="item_list", entity_id=item_list.id)
        db.session.commit()
        return item_list

    item_list = run_with_retry(_op)
    current_app.logger.info("Created item list %s (%s)", item_list.id, item_list.name)
    return item_list


def update_item_list(list_id: int, data: Any) -> ItemList:
    """Patch name/event_id; item_ids, when given, becomes the exact order."""
    patch, item_ids = _split_payload(data, partial=True)

    def _op():
        item_list = get_item_list(list_id, lock=True)
        for key, value in patch.items():
            setattr(item_list, key, value)
        if item_ids is not None:
            _ensure_items_exist(item_ids)
            _set_order(item_list, item_ids)
        db.session.commit()
        return item_list

    return run_with_retry(_op)


def reorder_item_list(list_id: int, item_ids: Any) -> ItemList:
    """Rearrange the list. item_ids must name exactly the items already on it."""
    ordered = normalize_item_ids(item_ids)

    def _op():
        item_list = get_item_list(list_id, lock=True)
        if len(ordered) != len(item_list.entries) or set(ordered) != set(item_list.item_order):
            raise ValidationError("item_ids must contain exactly the items on the list")
        _set_order(item_list, ordered)
        db.session.commit()
        return item_list

    return run_with_retry(_op)


def add_items(list_id: int, item_ids: Any) -> ItemList:
    """Append items to the end of the list; items already on it are skipped."""
    wanted = normalize_item_ids(item_ids)

    def _op():
        item_list = get_item_list(list_id, lock=True)
        _ensure_items_exist(wanted)
        present = set(item_list.item_order)
        next_position = max((e.position for e in item_list.entries), default=-1) + 1
        for item_id in wanted:
            if item_id in present:
                continue
            item_list.entries.append(ItemListEntry(item_id=item_id, position=next_position))
            next_position += 1
        db.session.commit()
        return item_list

    return run_with_retry(_op)


def remove_item(list_id: int, item_id: int) -> ItemList:
    """Drop an item from the list and close the gap. Absent items are a no-op."""
    def _op():
        item_list = get_item_list(list_id, lock=True)
        remaining = [i for i in item_list.item_order if i != item_id]
        _set_order(item_list, remaining)
        db.session.commit()
        return item_list

    return run_with_retry(_op)


def delete_item_list(list_id: int) -> None:
    def _op():
        item_list = get_item_list(list_id, lock=True)
        db.session.delete(item_list)
        append_event(event_type="item_list.deleted", entity_type="item_list", entity_id=list_id)
        db.session.commit()

    run_with_retry(_op)


def apply_to_session(list_id: int, session_id: int, *, replace: bool = False) -> list[InventoryItem]:
    """Curate a sale session from the list, keeping the list's order."""
    item_list = get_item_list(list_id)
    return curate(session_id, item_list.item_order, replace=replace)
