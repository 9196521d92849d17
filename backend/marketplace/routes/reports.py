# backend/marketplace/routes/reports.py
from io import BytesIO

from flask import Blueprint, jsonify, request, send_file

from ..services import reporting_service
from .errors import json_error


reports_bp = Blueprint("reports", __name__, url_prefix="/api/sessions")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@reports_bp.get("/<int:session_id>/report")
def session_report(session_id: int):
    try:
        return jsonify(reporting_service.build_report(session_id))
    except Exception as exc:
        return json_error(exc, "build session report")


@reports_bp.get("/<int:session_id>/sales-log")
def session_sales_log(session_id: int):
    try:
        lines = reporting_service.sales_log(session_id)
        return jsonify({"items": lines, "count": len(lines)})
    except Exception as exc:
        return json_error(exc, "load sales log")


@reports_bp.get("/<int:session_id>/report.xlsx")
def session_report_xlsx(session_id: int):
    """Query params: variant=summary|full (default summary)."""
    variant = request.args.get("variant", "summary")
    if variant not in {"summary", "full"}:
        return jsonify({"error": "variant must be summary or full"}), 400
    try:
        content = reporting_service.export_report_xlsx(
            session_id,
            include_transactions=variant == "full",
        )
    except Exception as exc:
        return json_error(exc, "export session report")
    return send_file(
        BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=f"session-{session_id}-{variant}.xlsx",
    )
