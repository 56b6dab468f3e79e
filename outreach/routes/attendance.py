from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..app import db
from ..services.attendance import (
    AttendanceNotFoundError,
    AttendanceValidationError,
    list_attendance,
    record_attendance,
)
from ..services.programs import ProgramNotFoundError
from ..utils.acl import ProgramAccessError
from ..utils.rbac import login_required

bp = Blueprint("attendance", __name__, url_prefix="/api/session-attendance")


@bp.get("")
@login_required
def index(current_user):
    try:
        rows = list_attendance(
            current_user,
            session_id=request.args.get("sessionId") or None,
            program_participant_id=request.args.get("programParticipantId") or None,
        )
    except (AttendanceNotFoundError, ProgramNotFoundError) as exc:
        return jsonify({"error": str(exc)}), 404
    except ProgramAccessError as exc:
        return jsonify({"error": str(exc)}), 403
    except Exception:
        current_app.logger.exception("[ATTENDANCE] Fetch session attendance error")
        return jsonify({"error": "Failed to fetch session attendance"}), 500
    return jsonify(rows)


@bp.post("")
@login_required
def record(current_user):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "JSON body required"}), 400

    try:
        attendance = record_attendance(current_user, payload)
        db.session.commit()
    except AttendanceValidationError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400
    except (AttendanceNotFoundError, ProgramNotFoundError) as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 404
    except ProgramAccessError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 403
    except Exception:
        db.session.rollback()
        current_app.logger.exception("[ATTENDANCE] Record attendance error")
        return jsonify({"error": "Failed to record attendance"}), 500

    current_app.logger.info(
        "[ATTENDANCE] user=%s session=%s participant=%s status=%s",
        current_user.id,
        attendance.session_id,
        attendance.program_participant_id,
        attendance.attendance_status,
    )
    return jsonify(attendance.to_dict()), 201
