from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..app import db
from ..services.programs import ProgramNotFoundError
from ..services.sessions import (
    SessionNotFoundError,
    SessionValidationError,
    create_session,
    delete_session,
    list_sessions,
    session_detail,
    update_session,
)
from ..utils.acl import ProgramAccessError
from ..utils.rbac import login_required

bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")


@bp.get("")
@login_required
def index(current_user):
    try:
        rows = list_sessions(current_user, request.args.get("programId") or None)
    except ProgramNotFoundError as exc:
        return jsonify({"error": str(exc)}), 404
    except ProgramAccessError as exc:
        return jsonify({"error": str(exc)}), 403
    except Exception:
        current_app.logger.exception("[SESSIONS] Fetch sessions error")
        return jsonify({"error": "Failed to fetch sessions"}), 500
    return jsonify(rows)


@bp.post("")
@login_required
def create(current_user):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "JSON body required"}), 400

    try:
        sess = create_session(current_user, payload)
        db.session.commit()
    except SessionValidationError as exc:
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
        current_app.logger.exception("[SESSIONS] Create session error")
        return jsonify({"error": "Failed to create session"}), 500

    current_app.logger.info(
        "[SESSIONS] user=%s created session=%s program=%s number=%s",
        current_user.id,
        sess.id,
        sess.program_id,
        sess.session_number,
    )
    return jsonify(sess.to_dict()), 201


@bp.get("/<int:session_id>")
@login_required
def show(current_user, session_id):
    try:
        row = session_detail(current_user, session_id)
    except (SessionNotFoundError, ProgramNotFoundError) as exc:
        return jsonify({"error": str(exc)}), 404
    except ProgramAccessError as exc:
        return jsonify({"error": str(exc)}), 403
    except Exception:
        current_app.logger.exception("[SESSIONS] Fetch session error")
        return jsonify({"error": "Failed to fetch session"}), 500
    return jsonify(row)


@bp.put("/<int:session_id>")
@login_required
def update(current_user, session_id):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "JSON body required"}), 400

    try:
        sess = update_session(current_user, session_id, payload)
        db.session.commit()
    except SessionValidationError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400
    except (SessionNotFoundError, ProgramNotFoundError) as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 404
    except ProgramAccessError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 403
    except Exception:
        db.session.rollback()
        current_app.logger.exception("[SESSIONS] Update session error")
        return jsonify({"error": "Failed to update session"}), 500

    current_app.logger.info(
        "[SESSIONS] user=%s updated session=%s status=%s",
        current_user.id,
        sess.id,
        sess.status,
    )
    return jsonify(sess.to_dict())


@bp.delete("/<int:session_id>")
@login_required
def destroy(current_user, session_id):
    try:
        delete_session(current_user, session_id)
        db.session.commit()
    except SessionValidationError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400
    except (SessionNotFoundError, ProgramNotFoundError) as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 404
    except ProgramAccessError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 403
    except Exception:
        db.session.rollback()
        current_app.logger.exception("[SESSIONS] Delete session error")
        return jsonify({"error": "Failed to delete session"}), 500

    current_app.logger.info(
        "[SESSIONS] user=%s deleted session=%s", current_user.id, session_id
    )
    return jsonify({"success": True})
