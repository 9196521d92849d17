# backend/marketplace/routes/system.py
"""
System health and audit trail endpoints.

Checks database connectivity and reports catalog/session counts for
deployment debugging.
"""

import time

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import InventoryItem, SaleSession
from ..services import audit_service
from ..time_utils import to_utc_z, utcnow
from ..validation import ValidationError, coerce_int
from .errors import json_error

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        item_count = db.session.query(InventoryItem).count()
        session_count = db.session.query(SaleSession).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "inventory_items": item_count,
                "sale_sessions": session_count,
            },
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503
    return {
        "status": database_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
    }, http_status


@system_bp.get("/audit")
def audit_events():
    """
    Query params:
    - entity_type: str (optional), e.g. inventory_item, sales_transaction
    - entity_id: int (optional)
    - session_id: int (optional)
    - limit: int (optional, default 200, max 1000)
    """
    try:
        entity_id = request.args.get("entity_id")
        session_id = request.args.get("session_id")
        limit = coerce_int("limit", request.args.get("limit", "200"))
        if limit < 1 or limit > 1000:
            raise ValidationError("limit must be between 1 and 1000")
        events = audit_service.list_events(
            entity_type=request.args.get("entity_type"),
            entity_id=coerce_int("entity_id", entity_id) if entity_id else None,
            session_id=coerce_int("session_id", session_id) if session_id else None,
            limit=limit,
        )
        return jsonify({"items": [e.to_dict() for e in events], "count": len(events)})
    except Exception as exc:
        return json_error(exc, "list audit events")
