from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..services.program_reports import generate_program_reports
from ..utils.acl import ProgramAccessError
from ..utils.rbac import login_required

bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@bp.get("/programs")
@login_required
def program_reports(current_user):
    program_raw = request.args.get("programId")
    program_id = None
    if program_raw:
        try:
            program_id = int(program_raw)
        except ValueError:
            return jsonify({"error": "Invalid programId"}), 400

    try:
        reports = generate_program_reports(current_user, program_id)
    except ProgramAccessError as exc:
        current_app.logger.info(
            "[REPORTS] user=%s denied program=%s", current_user.id, program_id
        )
        return jsonify({"error": str(exc)}), 403
    except Exception:
        current_app.logger.exception("[REPORTS] Get program reports error")
        return jsonify({"error": "Failed to get program reports"}), 500

    return jsonify(reports)
