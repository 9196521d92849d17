# Overview: Flask API routes for sale sessions and their curated items.

# backend/marketplace/routes/sessions.py
from flask import Blueprint, jsonify, request

from ..services import session_service
from ..validation import ValidationError
from .errors import json_body, json_error


sessions_bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")


@sessions_bp.get("")
def list_sessions():
    """
    Query params:
    - event_id: str (optional)
    - project_id: str (optional) - ignored when event_id is given
    """
    try:
        sessions = session_service.list_sessions(
            event_id=request.args.get("event_id"),
            project_id=request.args.get("project_id"),
        )
        return jsonify({"items": [s.to_dict() for s in sessions], "count": len(sessions)})
    except Exception as exc:
        return json_error(exc, "list sale sessions")


@sessions_bp.post("")
def create_session():
    try:
        session = session_service.create_session(json_body())
        return jsonify({"session": session.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "create sale session")


@sessions_bp.get("/<int:session_id>")
def get_session(session_id: int):
    try:
        return jsonify({"session": session_service.get_session(session_id).to_dict()})
    except Exception as exc:
        return json_error(exc, "load sale session")


@sessions_bp.patch("/<int:session_id>")
def update_session(session_id: int):
    try:
        session = session_service.update_session(session_id, json_body())
        return jsonify({"session": session.to_dict()})
    except Exception as exc:
        return json_error(exc, "update sale session")


@sessions_bp.delete("/<int:session_id>")
def delete_session(session_id: int):
    try:
        session_service.delete_session(session_id)
        return "", 204
    except Exception as exc:
        return json_error(exc, "delete sale session")


@sessions_bp.get("/<int:session_id>/items")
def list_session_items(session_id: int):
    try:
        items = session_service.list_session_items(session_id)
        return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})
    except Exception as exc:
        return json_error(exc, "list session items")


@sessions_bp.post("/<int:session_id>/items")
def curate_session_items(session_id: int):
    """Body: {"item_ids": [int], "replace": bool (optional, default false)}"""
    try:
        data = json_body()
        replace = data.get("replace", False)
        if not isinstance(replace, bool):
            raise ValidationError("replace must be a boolean")
        items = session_service.curate(session_id, data.get("item_ids"), replace=replace)
        return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})
    except Exception as exc:
        return json_error(exc, "curate session items")


@sessions_bp.delete("/<int:session_id>/items/<int:item_id>")
def decurate_session_item(session_id: int, item_id: int):
    try:
        session_service.decurate(session_id, item_id)
        return "", 204
    except Exception as exc:
        return json_error(exc, "remove session item")
