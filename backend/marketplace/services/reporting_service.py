# Overview: Read-side session reports folded from ledger snapshots; never writes.

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from io import BytesIO

from ..extensions import db
from ..models import SalesTransaction, SalesTransactionItem
from ..time_utils import to_utc_z
from .session_service import get_session


def _per_unit(total_cents: int, quantity: int) -> int:
    if not quantity:
        return 0
    return int((Decimal(total_cents) / Decimal(quantity)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _ledger_rows(session_id: int) -> list:
    """
    Every (transaction, line) pair for the session in one SELECT.

    A single statement reads one committed snapshot on every backend, so the
    folds below never mix pre- and post-commit rows of a concurrent sale.
    Transactions without lines come back with line=None.
    """
    return (
        db.session.query(SalesTransaction, SalesTransactionItem)
        .outerjoin(SalesTransactionItem, SalesTransactionItem.transaction_id == SalesTransaction.id)
        .filter(SalesTransaction.session_id == session_id)
        .order_by(
            SalesTransaction.created_at.desc(),
            SalesTransaction.id.desc(),
            SalesTransactionItem.line_number.asc(),
        )
        .all()
    )


def _sort_key(item_id):
    # Lines whose catalog item is gone sort after every live id
    return (item_id is None, item_id if item_id is not None else 0)


def _fold_lines(rows, *, voucher: bool) -> dict:
    """Net quantities and snapshot totals per item; VOID rows carry negatives and cancel out."""
    folded: dict = {}
    for _tx, line in rows:
        if line is None or bool(line.is_voucher) != voucher:
            continue
        entry = folded.setdefault(
            line.item_id,
            {"item_name": line.item_name, "quantity": 0, "revenue_cents": 0, "cost_cents": 0},
        )
        entry["quantity"] += line.quantity
        entry["revenue_cents"] += line.line_total_cents
        entry["cost_cents"] += line.line_cost_cents
    return folded


def _report_from_rows(session, rows) -> dict:
    transactions = {}
    for tx, _line in rows:
        transactions.setdefault(tx.id, tx)

    revenue = sum(tx.subtotal_cents for tx in transactions.values())
    taxes = sum(tx.taxes_cents for tx in transactions.values())
    gross = sum(tx.total_cents for tx in transactions.values())
    promo = sum(tx.promotional_cost_cents for tx in transactions.values())
    sale_count = sum(1 for tx in transactions.values() if tx.kind == "SALE")
    void_count = sum(1 for tx in transactions.values() if tx.kind == "VOID")
    cogs_cents = sum(line.line_cost_cents for _tx, line in rows if line is not None)

    items_sold = []
    for item_id, row in _fold_lines(rows, voucher=False).items():
        quantity = row["quantity"]
        if quantity <= 0:
            continue
        line_revenue = row["revenue_cents"]
        cost = row["cost_cents"]
        items_sold.append(
            {
                "item_id": item_id,
                "item_name": row["item_name"],
                "quantity": quantity,
                "unit_cost_cents": _per_unit(cost, quantity),
                "unit_price_cents": _per_unit(line_revenue, quantity),
                "total_cost_cents": cost,
                "total_revenue_cents": line_revenue,
                "profit_cents": line_revenue - cost,
            }
        )

    vouchers = []
    for item_id, row in _fold_lines(rows, voucher=True).items():
        quantity = row["quantity"]
        if quantity <= 0:
            continue
        cost = row["cost_cents"]
        vouchers.append(
            {
                "item_id": item_id,
                "item_name": row["item_name"],
                "quantity": quantity,
                "unit_cost_cents": _per_unit(cost, quantity),
                "total_cost_cents": cost,
            }
        )

    units: dict = {}
    names: dict = {}
    for entry in items_sold + vouchers:
        units[entry["item_id"]] = units.get(entry["item_id"], 0) + entry["quantity"]
        names.setdefault(entry["item_id"], entry["item_name"])
    ranked = sorted(units.items(), key=lambda kv: (-kv[1], _sort_key(kv[0])))
    best_sellers = [
        {"item_id": item_id, "item_name": names[item_id], "quantity": quantity}
        for item_id, quantity in ranked
    ]

    items_sold.sort(key=lambda e: _sort_key(e["item_id"]))
    vouchers.sort(key=lambda e: _sort_key(e["item_id"]))

    return {
        "session": session.to_dict(),
        "expected_revenue_cents": session.expected_revenue_cents,
        "actual_revenue_cents": revenue,
        "cogs_cents": cogs_cents,
        "promotional_cost_cents": promo,
        "net_profit_cents": revenue - cogs_cents,
        "taxes_collected_cents": taxes,
        "gross_total_cents": gross,
        "transaction_count": sale_count,
        "void_count": void_count,
        "vouchers_redeemed": sum(v["quantity"] for v in vouchers),
        "items_sold": items_sold,
        "vouchers": vouchers,
        "best_sellers": best_sellers,
    }


def build_report(session_id: int) -> dict:
    """
    Financial summary for one sale session.

    actual_revenue_cents sums transaction subtotals (vouchers excluded);
    cogs_cents sums line costs over every line, voucher or not; net profit is
    revenue minus COGS. Best sellers rank by net units (voucher units count)
    descending, then by item id ascending.
    """
    session = get_session(session_id)
    return _report_from_rows(session, _ledger_rows(session_id))


def _log_from_rows(rows) -> list[dict]:
    return [
        {
            "transaction_id": tx.id,
            "kind": tx.kind,
            "created_at": to_utc_z(tx.created_at),
            "line_number": line.line_number,
            "item_id": line.item_id,
            "item_name": line.item_name,
            "quantity": line.quantity,
            "is_voucher": line.is_voucher,
            "unit_price_cents": line.unit_price_cents,
            "unit_cost_cents": line.unit_cost_cents,
            "line_total_cents": line.line_total_cents,
            "line_cost_cents": line.line_cost_cents,
        }
        for tx, line in rows
        if line is not None
    ]


def sales_log(session_id: int) -> list[dict]:
    """Every ledger line for the session, newest transaction first."""
    get_session(session_id)
    return _log_from_rows(_ledger_rows(session_id))


def _money(cents: int | None) -> float:
    return round((cents or 0) / 100.0, 2)


def export_report_xlsx(session_id: int, *, include_transactions: bool = False) -> bytes:
    """
    Render the session report as an Excel workbook.

    Sheets: Summary, Items, Vouchers and, when include_transactions is set
    (the "full" variant), Transactions.
    """
    from openpyxl import Workbook

    session_row = get_session(session_id)
    rows = _ledger_rows(session_id)
    report = _report_from_rows(session_row, rows)
    session = report["session"]

    wb = Workbook()
    summary = wb.active
    summary.title = "Summary"
    summary.append(["Session", session["name"]])
    summary.append(["Organizer", session["organizer_type"]])
    summary.append(["Partner", session.get("partner_name") or ""])
    summary.append([])
    for label, key in (
        ("Expected revenue", "expected_revenue_cents"),
        ("Actual revenue", "actual_revenue_cents"),
        ("Cost of goods sold", "cogs_cents"),
        ("Promotional cost", "promotional_cost_cents"),
        ("Net profit", "net_profit_cents"),
        ("Taxes collected", "taxes_collected_cents"),
        ("Gross total", "gross_total_cents"),
    ):
        summary.append([label, _money(report[key])])
    summary.append(["Transactions", report["transaction_count"]])
    summary.append(["Voids", report["void_count"]])
    summary.append(["Vouchers redeemed", report["vouchers_redeemed"]])

    items = wb.create_sheet("Items")
    items.append(["Item", "Quantity", "Unit cost", "Unit price", "Total cost", "Total revenue", "Profit"])
    for entry in report["items_sold"]:
        items.append([
            entry["item_name"],
            entry["quantity"],
            _money(entry["unit_cost_cents"]),
            _money(entry["unit_price_cents"]),
            _money(entry["total_cost_cents"]),
            _money(entry["total_revenue_cents"]),
            _money(entry["profit_cents"]),
        ])

    voucher_sheet = wb.create_sheet("Vouchers")
    voucher_sheet.append(["Item", "Quantity", "Unit cost", "Total cost"])
    for entry in report["vouchers"]:
        voucher_sheet.append([
            entry["item_name"],
            entry["quantity"],
            _money(entry["unit_cost_cents"]),
            _money(entry["total_cost_cents"]),
        ])

    if include_transactions:
        log = wb.create_sheet("Transactions")
        log.append(["Transaction", "Kind", "Recorded at", "Item", "Quantity", "Voucher", "Line total", "Line cost"])
        for line in _log_from_rows(rows):
            log.append([
                line["transaction_id"],
                line["kind"],
                line["created_at"],
                line["item_name"],
                line["quantity"],
                "yes" if line["is_voucher"] else "no",
                _money(line["line_total_cents"]),
                _money(line["line_cost_cents"]),
            ])

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
