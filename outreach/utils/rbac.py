from functools import wraps

from flask import jsonify, session

from ..app import db, User


def login_required(fn):
    """Require a signed-in, active user; the view receives it as ``current_user``."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        user_id = session.get("user_id")
        if not user_id:
            return jsonify({"error": "Unauthorized"}), 401
        user = db.session.get(User, user_id)
        if not user or not user.is_active:
            return jsonify({"error": "Unauthorized"}), 401
        return fn(*args, **kwargs, current_user=user)

    return wrapper
