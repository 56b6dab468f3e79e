from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..app import db
from ..services.enrollment import (
    EnrollmentValidationError,
    enroll_participant,
    list_participants,
)
from ..services.programs import ProgramNotFoundError
from ..utils.acl import ProgramAccessError
from ..utils.rbac import login_required

bp = Blueprint("participants", __name__, url_prefix="/api/program-participants")


@bp.get("")
@login_required
def index(current_user):
    try:
        rows = list_participants(current_user, request.args.get("programId") or None)
    except ProgramNotFoundError as exc:
        return jsonify({"error": str(exc)}), 404
    except ProgramAccessError as exc:
        return jsonify({"error": str(exc)}), 403
    except Exception:
        current_app.logger.exception("[ENROLL] Fetch program participants error")
        return jsonify({"error": "Failed to fetch program participants"}), 500
    return jsonify(rows)


@bp.post("")
@login_required
def enroll(current_user):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "JSON body required"}), 400

    try:
        participant = enroll_participant(current_user, payload)
        db.session.commit()
    except EnrollmentValidationError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400
    except ProgramNotFoundError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 404
    except ProgramAccessError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 403
    except Exception:
        db.session.rollback()
        current_app.logger.exception("[ENROLL] Enroll participant error")
        return jsonify({"error": "Failed to enroll participant"}), 500

    current_app.logger.info(
        "[ENROLL] user=%s enrolled participant=%s program=%s",
        current_user.id,
        participant.id,
        participant.program_id,
    )
    return jsonify(participant.to_dict()), 201
