"""
Event summary export endpoint.

    GET /api/v1/events/<event_id>/export/summary
        format: excel | csv (default: excel)

Content is built in memory; no temp files.
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, Response, jsonify, request

from tourdesk.services.export_service import generate_summary_csv, generate_summary_excel
from tourdesk.utils.errors import register_domain_error_handlers

logger = logging.getLogger(__name__)

export_bp = Blueprint("export", __name__, url_prefix="/api/v1")
register_domain_error_handlers(export_bp)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@export_bp.route("/events/<int:event_id>/export/summary", methods=["GET"])
def export_summary(event_id: int):
    """Export the itinerary summary of an event as xlsx or csv.

    Returns:
        Binary file download with a Content-Disposition filename.
    """
    fmt = request.args.get("format", "excel").lower()
    if fmt not in ("excel", "csv"):
        return jsonify({
            "error": "Unsupported format. Supported values: excel, csv.",
            "code": "ERR_VALIDATION_INVALID",
        }), 400

    date_str = datetime.now(timezone.utc).strftime("%Y%m%d")
    if fmt == "csv":
        content = generate_summary_csv(event_id)
        filename = f"event_{event_id}_summary_{date_str}.csv"
        return Response(
            content,
            mimetype="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    content = generate_summary_excel(event_id)
    filename = f"event_{event_id}_summary_{date_str}.xlsx"
    logger.info("Summary export: %s (%d bytes)", filename, len(content), extra={"event_id": event_id})
    return Response(
        content,
        mimetype=XLSX_MIMETYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
