import logging
import os

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import inspect

db = SQLAlchemy()

from .models import User  # noqa: E402


def create_app():
    app = Flask(__name__)
    app.secret_key = os.getenv("SECRET_KEY", "dev")
    app.json.sort_keys = False

    DB_USER = os.getenv("DB_USER", "outreach")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_NAME = os.getenv("DB_NAME", "outreach")
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}/{DB_NAME}",
    )

    app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["REPORTS_LOG_ORPHANS"] = os.getenv("REPORTS_LOG_ORPHANS", "1") != "0"

    db.init_app(app)

    @app.get("/health")
    def health():  # pragma: no cover - simple healthcheck
        return "OK", 200

    @app.errorhandler(404)
    def not_found(_exc):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_exc):
        return jsonify({"error": "Method not allowed"}), 405

    from .routes.programs import bp as programs_bp
    from .routes.reports import bp as reports_bp
    from .routes.sessions import bp as sessions_bp
    from .routes.participants import bp as participants_bp
    from .routes.attendance import bp as attendance_bp

    app.register_blueprint(programs_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(sessions_bp)
    app.register_blueprint(participants_bp)
    app.register_blueprint(attendance_bp)

    with app.app_context():
        if not os.getenv("FLASK_SKIP_SEED"):
            seed_initial_user_safely()

    return app


def seed_initial_user_safely() -> None:
    """Seed an initial admin user if the users table exists and is empty."""

    try:
        if db.engine.url.drivername.startswith("sqlite"):
            return
        if "users" not in inspect(db.engine).get_table_names():
            logging.info("seed skipped (users table missing)")
            return

        if db.session.query(User).count() > 0:
            return

        first_admin_email = os.getenv("FIRST_ADMIN_EMAIL", "admin@example.org").lower()
        admin = User(email=first_admin_email, name=first_admin_email, role="admin")
        db.session.add(admin)
        db.session.commit()
        logging.info("Seeded initial admin %s", first_admin_email)
    except Exception:
        db.session.rollback()
        logging.exception("seed_initial_user_safely failed")
