# Overview: Service-layer operations for sale sessions and their curated item sets.

from __future__ import annotations

from ..extensions import db
from ..models import InventoryItem, SaleListing, SaleSession, SalesTransaction
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    enforce_rules_session,
    normalize_item_ids,
    validate_payload,
)
from .audit_service import append_event
from .concurrency import run_with_retry


SESSION_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "organizer_type",
        "association_type",
        "event_id",
        "project_id",
        "partner_name",
        "partner_contact_id",
        "expected_revenue_cents",
    },
    required_on_create={"name"},
)


def get_session(session_id: int) -> SaleSession:
    session = db.session.get(SaleSession, session_id)
    if session is None:
        raise NotFoundError(f"Sale session {session_id} not found")
    return session


def list_sessions(*, event_id: str | None = None, project_id: str | None = None) -> list[SaleSession]:
    """Newest first. An event filter is the most specific and wins over project."""
    query = db.session.query(SaleSession)
    if event_id:
        query = query.filter(SaleSession.event_id == event_id)
    elif project_id:
        query = query.filter(SaleSession.project_id == project_id)
    return query.order_by(SaleSession.created_at.desc(), SaleSession.id.desc()).all()


def create_session(data: dict) -> SaleSession:
    patch = validate_payload(model=SaleSession, payload=data, policy=SESSION_POLICY, partial=False)
    enforce_rules_session(patch)

    def _op():
        session = SaleSession(**patch)
        db.session.add(session)
        db.session.flush()
        append_event(
            event_type="session.created",
            entity_type="sale_session",
            entity_id=session.id,
            session_id=session.id,
        )
        db.session.commit()
        return session

    return run_with_retry(_op)


def update_session(session_id: int, data: dict) -> SaleSession:
    patch = validate_payload(model=SaleSession, payload=data, policy=SESSION_POLICY, partial=True)
    enforce_rules_session(patch)

    def _op():
        session = get_session(session_id)
        for key, value in patch.items():
            setattr(session, key, value)
        db.session.commit()
        return session

    return run_with_retry(_op)


def delete_session(session_id: int) -> None:
    """Sessions with ledger entries are kept; their history backs the reports."""
    def _op():
        session = get_session(session_id)
        has_sales = db.session.query(SalesTransaction.id).filter_by(session_id=session_id).first()
        if has_sales:
            raise ConflictError("Cannot delete a sale session that has transactions")
        db.session.delete(session)
        db.session.commit()

    run_with_retry(_op)


def curate(session_id: int, item_ids: list, *, replace: bool = False) -> list[InventoryItem]:
    """
    Add catalog items to a session's curated set (or replace the set).

    Pure reference operation: no catalog mutation, no stock effect. Adding an
    already-curated item is a no-op, so repeated calls are idempotent. With
    replace=True the set becomes exactly item_ids, in that order.
    """
    wanted = normalize_item_ids(item_ids)

    def _op():
        session = get_session(session_id)

        if wanted:
            found = {
                row.id
                for row in db.session.query(InventoryItem.id).filter(InventoryItem.id.in_(wanted)).all()
            }
            missing = [i for i in wanted if i not in found]
            if missing:
                raise NotFoundError(f"Inventory item {missing[0]} not found")

        existing = {listing.item_id: listing for listing in session.listings}

        if replace:
            wanted_set = set(wanted)
            for item_id, listing in existing.items():
                if item_id not in wanted_set:
                    session.listings.remove(listing)
            for position, item_id in enumerate(wanted):
                listing = existing.get(item_id)
                if listing is None:
                    session.listings.append(SaleListing(item_id=item_id, position=position))
                else:
                    listing.position = position
        else:
            next_position = max((l.position for l in existing.values()), default=-1) + 1
            for item_id in wanted:
                if item_id in existing:
                    continue
                session.listings.append(SaleListing(item_id=item_id, position=next_position))
                next_position += 1

        db.session.commit()

    run_with_retry(_op)
    return list_session_items(session_id)


def decurate(session_id: int, item_id: int) -> None:
    """Remove an item from the curated set. Absent references are a silent no-op."""
    def _op():
        session = get_session(session_id)
        for listing in list(session.listings):
            if listing.item_id == item_id:
                session.listings.remove(listing)
        db.session.commit()

    run_with_retry(_op)


def list_session_items(session_id: int) -> list[InventoryItem]:
    get_session(session_id)
    rows = (
        db.session.query(InventoryItem)
        .join(SaleListing, SaleListing.item_id == InventoryItem.id)
        .filter(SaleListing.session_id == session_id)
        .order_by(SaleListing.position.asc(), SaleListing.id.asc())
        .all()
    )
    return rows


def curated_item_ids(session_id: int) -> set[int]:
    return {
        row.item_id
        for row in db.session.query(SaleListing.item_id).filter_by(session_id=session_id).all()
    }
