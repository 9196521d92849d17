# Overview: Flask API routes for the inventory catalog; parses input and returns JSON responses.

# backend/marketplace/routes/catalog.py
from flask import Blueprint, jsonify, request

from ..services import catalog_service
from ..validation import coerce_int
from .errors import json_body, json_error


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


@catalog_bp.get("/categories")
def list_categories():
    try:
        categories = catalog_service.list_categories()
        return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)})
    except Exception as exc:
        return json_error(exc, "list categories")


@catalog_bp.post("/categories")
def create_category():
    try:
        data = json_body()
        category = catalog_service.create_category(data.get("name"))
        return jsonify({"category": category.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "create category")


@catalog_bp.patch("/categories/<int:category_id>")
def update_category(category_id: int):
    try:
        data = json_body()
        category = catalog_service.update_category(category_id, data.get("name"))
        return jsonify({"category": category.to_dict()})
    except Exception as exc:
        return json_error(exc, "update category")


@catalog_bp.delete("/categories/<int:category_id>")
def delete_category(category_id: int):
    try:
        catalog_service.delete_category(category_id)
        return "", 204
    except Exception as exc:
        return json_error(exc, "delete category")


@catalog_bp.get("/items")
def list_items():
    """
    Query params:
    - category_id: int (optional)
    - search: str (optional) - case-insensitive name match
    - include_inactive: bool (optional, default false)
    """
    try:
        raw_category = request.args.get("category_id")
        category_id = coerce_int("category_id", raw_category) if raw_category else None
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        items = catalog_service.list_items(
            category_id=category_id,
            search=request.args.get("search"),
            include_inactive=include_inactive,
        )
        return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})
    except Exception as exc:
        return json_error(exc, "list inventory items")


@catalog_bp.post("/items")
def create_item():
    try:
        item = catalog_service.create_item(json_body())
        return jsonify({"item": item.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "create inventory item")


@catalog_bp.get("/items/<int:item_id>")
def get_item(item_id: int):
    try:
        return jsonify({"item": catalog_service.get_item(item_id).to_dict()})
    except Exception as exc:
        return json_error(exc, "load inventory item")


@catalog_bp.patch("/items/<int:item_id>")
def update_item(item_id: int):
    try:
        item = catalog_service.update_item(item_id, json_body())
        return jsonify({"item": item.to_dict()})
    except Exception as exc:
        return json_error(exc, "update inventory item")


@catalog_bp.delete("/items/<int:item_id>")
def delete_item(item_id: int):
    try:
        catalog_service.delete_item(item_id)
        return "", 204
    except Exception as exc:
        return json_error(exc, "delete inventory item")


@catalog_bp.post("/items/<int:item_id>/archive")
def archive_item(item_id: int):
    try:
        item = catalog_service.archive_item(item_id)
        return jsonify({"item": item.to_dict()})
    except Exception as exc:
        return json_error(exc, "archive inventory item")


@catalog_bp.post("/items/<int:item_id>/adjust")
def adjust_stock(item_id: int):
    """Body: {"delta": int, "note": str (optional)}"""
    try:
        data = json_body()
        if "delta" not in data:
            return jsonify({"error": "delta required"}), 400
        new_stock = catalog_service.adjust_stock(item_id, data["delta"], note=data.get("note"))
        return jsonify({"item_id": item_id, "current_stock": new_stock})
    except Exception as exc:
        return json_error(exc, "adjust stock")
