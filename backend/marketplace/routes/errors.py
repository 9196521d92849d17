# Overview: Maps service-layer exceptions to JSON error responses.

from __future__ import annotations

from flask import current_app, jsonify, request

from ..services.catalog_service import InsufficientStockError
from ..validation import ConflictError, NotFoundError, ValidationError


def json_error(exc: Exception, action: str):
    """
    Domain errors keep their message; anything else is logged with a
    traceback and hidden behind a generic 500.
    """
    if isinstance(exc, InsufficientStockError):
        return jsonify({"error": str(exc), "details": exc.details}), 409
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


def json_body() -> dict:
    """Request JSON as a dict; a missing or non-object body is a validation error."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data
