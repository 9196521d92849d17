"""
Point-of-sale ledger - append-only record of completed transactions.

WHY: The ledger is the single source of truth for money math. Callers send
line items; subtotal, taxes, total and promotional cost are computed here and
snapshotted on the transaction so later catalog edits never rewrite history.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import InventoryItem, SaleSession, SalesTransaction, SalesTransactionItem
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, normalize_line_items
from .audit_service import append_event
from .catalog_service import InsufficientStockError, apply_stock_deltas
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .session_service import curated_item_ids
from .settings_service import get_sales_settings, rate_to_ppm
from .tax_service import compute_tax
"""
POS Ledger Invariants (authoritative)

- Voucher lines are excluded from revenue but included in cost tracking:
  subtotal sums sale_price * qty over non-voucher lines only, while
  promotional_cost sums cost_price * qty over voucher lines only.
- total = subtotal + taxes; promotional_cost is never added to total.
- Stock for every tracked line (voucher or not) is decremented as one
  all-or-nothing batch. Any shortfall rejects the whole transaction.
- Recorded transactions are never updated. A VOID is a new transaction
  linked through adjusts_transaction_id that negates the original.
- Transactions for a session are recorded under the database write lock
  (BEGIN IMMEDIATE on SQLite, row locks elsewhere), so stock checks and
  applies never interleave.
"""


def _lock_session(session_id: int) -> SaleSession:
    session = lock_for_update(db.session.query(SaleSession).filter_by(id=session_id)).first()
    if session is None:
        raise NotFoundError(f"Sale session {session_id} not found")
    return session


def _load_line_items(lines: list[dict]) -> dict[int, InventoryItem]:
    item_ids = sorted({line["item_id"] for line in lines})
    items = (
        db.session.query(InventoryItem)
        .filter(InventoryItem.id.in_(item_ids))
        .order_by(InventoryItem.id.asc())
        .all()
    )
    by_id = {item.id: item for item in items}
    for item_id in item_ids:
        if item_id not in by_id:
            raise NotFoundError(f"Inventory item {item_id} not found")
        if not by_id[item_id].is_active:
            raise ValidationError(f"Inventory item {item_id} is archived")
    return by_id


def _curation_enforced(enforce_curation: bool | None) -> bool:
    if enforce_curation is not None:
        return enforce_curation
    return bool(current_app.config.get("ENFORCE_SESSION_CURATION", True))


def record_transaction(
    session_id: int,
    line_items: Any,
    *,
    notes: str | None = None,
    enforce_curation: bool | None = None,
) -> SalesTransaction:
    """
    Validate, price, tax and record one POS transaction.

    Raises NotFoundError (unknown session or item), ValidationError
    (malformed lines, archived or uncurated items) or InsufficientStockError
    (a tracked item would go negative). Every failure leaves stock and the
    ledger untouched.
    """
    lines = normalize_line_items(line_items)
    if notes is not None and not isinstance(notes, str):
        raise ValidationError("notes must be a string")

    def _op():
        begin_write_transaction()
        session = _lock_session(session_id)
        items = _load_line_items(lines)

        if _curation_enforced(enforce_curation):
            curated = curated_item_ids(session.id)
            outside = sorted({line["item_id"] for line in lines} - curated)
            if outside:
                raise ValidationError(f"Inventory item {outside[0]} is not listed in this sale session")

        settings = get_sales_settings()

        # Snapshot prices before stock changes expire the item rows
        tx_lines = []
        subtotal = 0
        promotional_cost = 0
        stock_deltas: dict[int, int] = defaultdict(int)
        for number, line in enumerate(lines, start=1):
            item = items[line["item_id"]]
            qty = line["quantity"]
            line_cost = item.cost_price_cents * qty
            if line["is_voucher"]:
                unit_price = 0
                promotional_cost += line_cost
            else:
                unit_price = item.sale_price_cents
                subtotal += unit_price * qty

            if item.track_stock:
                stock_deltas[item.id] -= qty

            tx_lines.append(
                SalesTransactionItem(
                    line_number=number,
                    item_id=item.id,
                    item_name=item.name,
                    quantity=qty,
                    is_voucher=line["is_voucher"],
                    unit_price_cents=unit_price,
                    unit_cost_cents=item.cost_price_cents,
                    line_total_cents=unit_price * qty,
                    line_cost_cents=line_cost,
                )
            )

        taxes = compute_tax(subtotal, settings)

        if stock_deltas:
            apply_stock_deltas(dict(stock_deltas))

        tx = SalesTransaction(
            session_id=session.id,
            kind="SALE",
            notes=notes,
            subtotal_cents=subtotal,
            taxes_cents=taxes,
            total_cents=subtotal + taxes,
            promotional_cost_cents=promotional_cost,
            pst_rate_ppm=rate_to_ppm("pst_rate", settings.pst_rate),
            gst_rate_ppm=rate_to_ppm("gst_rate", settings.gst_rate),
            created_at=utcnow(),
            items=tx_lines,
        )
        db.session.add(tx)
        db.session.flush()

        append_event(
            event_type="transaction.recorded",
            entity_type="sales_transaction",
            entity_id=tx.id,
            session_id=session.id,
            payload={
                "total_cents": tx.total_cents,
                "stock_deltas": {str(k): v for k, v in stock_deltas.items()},
            },
        )
        db.session.commit()
        return tx

    try:
        tx = run_with_retry(_op)
    except InsufficientStockError as exc:
        current_app.logger.warning("Transaction rejected for session %s: %s", session_id, exc)
        raise

    current_app.logger.info(
        "Recorded transaction %s for session %s: subtotal=%s taxes=%s total=%s",
        tx.id, session_id, tx.subtotal_cents, tx.taxes_cents, tx.total_cents,
    )
    return tx


def get_transaction(transaction_id: int) -> SalesTransaction:
    tx = db.session.get(SalesTransaction, transaction_id)
    if tx is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return tx


def list_transactions(session_id: int) -> list[SalesTransaction]:
    """Ledger entries for a session, newest first."""
    if db.session.get(SaleSession, session_id) is None:
        raise NotFoundError(f"Sale session {session_id} not found")
    return (
        db.session.query(SalesTransaction)
        .filter_by(session_id=session_id)
        .order_by(SalesTransaction.created_at.desc(), SalesTransaction.id.desc())
        .all()
    )


def void_transaction(transaction_id: int, *, reason: str) -> SalesTransaction:
    """
    Reverse a recorded SALE by appending a linked VOID transaction.

    The VOID carries negated quantities and amounts (same price/cost
    snapshots) and returns stock for items that are tracked today. The
    original row is not modified.
    """
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("reason required")
    reason = reason.strip()
    if len(reason) > 255:
        raise ValidationError("reason exceeds max length 255")

    def _op():
        begin_write_transaction()
        original = lock_for_update(
            db.session.query(SalesTransaction).filter_by(id=transaction_id)
        ).first()
        if original is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        if original.kind != "SALE":
            raise ConflictError("Only SALE transactions can be voided")

        already = db.session.query(SalesTransaction.id).filter_by(adjusts_transaction_id=original.id).first()
        if already:
            raise ConflictError("Transaction already voided")

        restock: dict[int, int] = defaultdict(int)
        live_ids = {line.item_id for line in original.items if line.item_id is not None}
        tracked = {
            row.id
            for row in db.session.query(InventoryItem.id).filter(
                InventoryItem.id.in_(live_ids),
                InventoryItem.track_stock.is_(True),
            ).all()
        } if live_ids else set()

        reversal_lines = []
        for line in original.items:
            reversal_lines.append(
                SalesTransactionItem(
                    line_number=line.line_number,
                    item_id=line.item_id,
                    item_name=line.item_name,
                    quantity=-line.quantity,
                    is_voucher=line.is_voucher,
                    unit_price_cents=line.unit_price_cents,
                    unit_cost_cents=line.unit_cost_cents,
                    line_total_cents=-line.line_total_cents,
                    line_cost_cents=-line.line_cost_cents,
                )
            )
            if line.item_id in tracked:
                restock[line.item_id] += line.quantity

        if restock:
            apply_stock_deltas(dict(restock))

        void = SalesTransaction(
            session_id=original.session_id,
            kind="VOID",
            adjusts_transaction_id=original.id,
            notes=reason,
            subtotal_cents=-original.subtotal_cents,
            taxes_cents=-original.taxes_cents,
            total_cents=-original.total_cents,
            promotional_cost_cents=-original.promotional_cost_cents,
            pst_rate_ppm=original.pst_rate_ppm,
            gst_rate_ppm=original.gst_rate_ppm,
            created_at=utcnow(),
            items=reversal_lines,
        )
        db.session.add(void)
        db.session.flush()

        append_event(
            event_type="transaction.voided",
            entity_type="sales_transaction",
            entity_id=original.id,
            session_id=original.session_id,
            note=reason,
            payload={"void_transaction_id": void.id},
        )
        db.session.commit()
        return void

    void = run_with_retry(_op)
    current_app.logger.info("Voided transaction %s with %s", transaction_id, void.id)
    return void
