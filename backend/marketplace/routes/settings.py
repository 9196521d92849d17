# backend/marketplace/routes/settings.py
from flask import Blueprint, jsonify

from ..services import settings_service
from .errors import json_body, json_error


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/sales")
def get_sales_settings():
    try:
        return jsonify({"settings": settings_service.get_sales_settings().to_dict()})
    except Exception as exc:
        return json_error(exc, "load sales settings")


@settings_bp.put("/sales")
def update_sales_settings():
    """Body: {"pst_rate": number, "gst_rate": number}; either may be omitted."""
    try:
        data = json_body()
        unknown = sorted(set(data) - {"pst_rate", "gst_rate"})
        if unknown:
            return jsonify({"error": f"Field not allowed: {unknown[0]}"}), 400
        settings = settings_service.update_sales_settings(
            pst_rate=data.get("pst_rate"),
            gst_rate=data.get("gst_rate"),
        )
        return jsonify({"settings": settings.to_dict()})
    except Exception as exc:
        return json_error(exc, "update sales settings")
