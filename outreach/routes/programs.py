from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..app import db
from ..services.programs import (
    ProgramNotFoundError,
    ProgramValidationError,
    create_program,
    delete_program,
    list_programs,
    load_program,
    update_program,
)
from ..utils.acl import ProgramAccessError
from ..utils.rbac import login_required

bp = Blueprint("programs", __name__, url_prefix="/api/programs")


def _json_body():
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else None


@bp.get("")
@login_required
def index(current_user):
    try:
        rows = list_programs(current_user)
    except Exception:
        current_app.logger.exception("[PROGRAMS] Fetch programs error")
        return jsonify({"error": "Failed to fetch programs"}), 500
    return jsonify(rows)


@bp.post("")
@login_required
def create(current_user):
    payload = _json_body()
    if payload is None:
        return jsonify({"error": "JSON body required"}), 400

    try:
        program = create_program(current_user, payload)
        db.session.commit()
    except ProgramValidationError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("[PROGRAMS] Create program error")
        return jsonify({"error": "Failed to create program"}), 500

    current_app.logger.info(
        "[PROGRAMS] user=%s created program=%s code=%s",
        current_user.id,
        program.id,
        program.program_code,
    )
    return jsonify(program.to_dict()), 201


@bp.get("/<int:program_id>")
@login_required
def show(current_user, program_id):
    try:
        program = load_program(current_user, program_id)
    except ProgramNotFoundError as exc:
        return jsonify({"error": str(exc)}), 404
    except ProgramAccessError as exc:
        return jsonify({"error": str(exc)}), 403
    except Exception:
        current_app.logger.exception("[PROGRAMS] Fetch program error")
        return jsonify({"error": "Failed to fetch program"}), 500
    return jsonify(program.to_dict())


@bp.put("/<int:program_id>")
@login_required
def update(current_user, program_id):
    payload = _json_body()
    if payload is None:
        return jsonify({"error": "JSON body required"}), 400

    try:
        program = update_program(current_user, program_id, payload)
        db.session.commit()
    except ProgramValidationError as exc:
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
        current_app.logger.exception("[PROGRAMS] Update program error")
        return jsonify({"error": "Failed to update program"}), 500

    current_app.logger.info(
        "[PROGRAMS] user=%s updated program=%s status=%s",
        current_user.id,
        program.id,
        program.status,
    )
    return jsonify(program.to_dict())


@bp.delete("/<int:program_id>")
@login_required
def destroy(current_user, program_id):
    try:
        delete_program(current_user, program_id)
        db.session.commit()
    except ProgramValidationError as exc:
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
        current_app.logger.exception("[PROGRAMS] Delete program error")
        return jsonify({"error": "Failed to delete program"}), 500

    current_app.logger.info(
        "[PROGRAMS] user=%s deleted program=%s", current_user.id, program_id
    )
    return jsonify({"success": True})
