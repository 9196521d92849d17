# Overview: Flask API routes for the POS ledger; the client sends lines, the server computes money.

# backend/marketplace/routes/sales.py
from flask import Blueprint, jsonify

from ..services import ledger_service
from .errors import json_body, json_error


sales_bp = Blueprint("sales", __name__, url_prefix="/api")


@sales_bp.post("/sessions/<int:session_id>/transactions")
def record_transaction(session_id: int):
    """
    Body: {"line_items": [{"item_id": int, "quantity": int, "is_voucher": bool}], "notes": str}

    Returns 201 with the recorded transaction, 409 with details when a
    tracked item lacks stock.
    """
    try:
        data = json_body()
        tx = ledger_service.record_transaction(
            session_id,
            data.get("line_items"),
            notes=data.get("notes"),
        )
        return jsonify({"transaction": tx.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "record transaction")


@sales_bp.get("/sessions/<int:session_id>/transactions")
def list_transactions(session_id: int):
    try:
        txs = ledger_service.list_transactions(session_id)
        return jsonify({"items": [tx.to_dict() for tx in txs], "count": len(txs)})
    except Exception as exc:
        return json_error(exc, "list transactions")


@sales_bp.get("/transactions/<int:transaction_id>")
def get_transaction(transaction_id: int):
    try:
        return jsonify({"transaction": ledger_service.get_transaction(transaction_id).to_dict()})
    except Exception as exc:
        return json_error(exc, "load transaction")


@sales_bp.post("/transactions/<int:transaction_id>/void")
def void_transaction(transaction_id: int):
    """Body: {"reason": str}"""
    try:
        data = json_body()
        void = ledger_service.void_transaction(transaction_id, reason=data.get("reason"))
        return jsonify({"transaction": void.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "void transaction")
