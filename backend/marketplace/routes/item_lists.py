# Overview: Flask API routes for reusable item lists (menus and price lists).

# backend/marketplace/routes/item_lists.py
from flask import Blueprint, jsonify, request

from ..services import item_list_service
from ..validation import ValidationError, coerce_int
from .errors import json_body, json_error


item_lists_bp = Blueprint("item_lists", __name__, url_prefix="/api/item-lists")


@item_lists_bp.get("")
def list_item_lists():
    """
    Query params:
    - event_id: str (optional) - event lists plus general (event-less) lists
    """
    try:
        lists = item_list_service.list_item_lists(event_id=request.args.get("event_id"))
        return jsonify({"items": [item_list.to_dict() for item_list in lists], "count": len(lists)})
    except Exception as exc:
        return json_error(exc, "list item lists")


@item_lists_bp.post("")
def create_item_list():
    """Body: {"name": str, "event_id": str|null, "item_ids": [int]}; all optional."""
    try:
        item_list = item_list_service.create_item_list(json_body())
        return jsonify({"item_list": item_list.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "create item list")


@item_lists_bp.get("/<int:list_id>")
def get_item_list(list_id: int):
    try:
        return jsonify({"item_list": item_list_service.get_item_list(list_id).to_dict()})
    except Exception as exc:
        return json_error(exc, "get item list")


@item_lists_bp.patch("/<int:list_id>")
def update_item_list(list_id: int):
    try:
        item_list = item_list_service.update_item_list(list_id, json_body())
        return jsonify({"item_list": item_list.to_dict()})
    except Exception as exc:
        return json_error(exc, "update item list")


@item_lists_bp.delete("/<int:list_id>")
def delete_item_list(list_id: int):
    try:
        item_list_service.delete_item_list(list_id)
        return "", 204
    except Exception as exc:
        return json_error(exc, "delete item list")


@item_lists_bp.put("/<int:list_id>/order")
def reorder_item_list(list_id: int):
    """Body: {"item_ids": [int]} - the list's items in their new order."""
    try:
        item_list = item_list_service.reorder_item_list(list_id, json_body().get("item_ids"))
        return jsonify({"item_list": item_list.to_dict()})
    except Exception as exc:
        return json_error(exc, "reorder item list")


@item_lists_bp.post("/<int:list_id>/items")
def add_items(list_id: int):
    """Body: {"item_ids": [int]}"""
    try:
        item_list = item_list_service.add_items(list_id, json_body().get("item_ids"))
        return jsonify({"item_list": item_list.to_dict()})
    except Exception as exc:
        return json_error(exc, "add item list items")


@item_lists_bp.delete("/<int:list_id>/items/<int:item_id>")
def remove_item(list_id: int, item_id: int):
    try:
        item_list = item_list_service.remove_item(list_id, item_id)
        return jsonify({"item_list": item_list.to_dict()})
    except Exception as exc:
        return json_error(exc, "remove item list item")


@item_lists_bp.post("/<int:list_id>/apply")
def apply_to_session(list_id: int):
    """Body: {"session_id": int, "replace": bool (optional, default false)}"""
    try:
        data = json_body()
        if "session_id" not in data:
            raise ValidationError("session_id required")
        session_id = coerce_int("session_id", data["session_id"])
        replace = data.get("replace", False)
        if not isinstance(replace, bool):
            raise ValidationError("replace must be a boolean")
        items = item_list_service.apply_to_session(list_id, session_id, replace=replace)
        return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})
    except Exception as exc:
        return json_error(exc, "apply item list")
