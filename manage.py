from outreach.app import create_app, db
import json

from flask_migrate import Migrate
from flask.cli import FlaskGroup
import click
from sqlalchemy import func
from flask import current_app
from outreach.constants import ROLES
from outreach.models import User
from outreach.services.program_reports import generate_program_reports
from outreach.utils.acl import ProgramAccessError


migrate = Migrate()


def create_outreach_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_outreach_app)


@cli.command("create_user")
@click.option("--email", "email", required=True)
@click.option("--name", "name", default="")
@click.option("--role", "role", type=click.Choice(ROLES), default="user")
def create_user(email: str, name: str, role: str):
    """Create a user who can conduct programs."""
    existing = (
        db.session.query(User)
        .filter(func.lower(User.email) == email.lower())
        .one_or_none()
    )
    if existing:
        click.echo(f"User already exists id={existing.id}", err=True)
        return
    user = User(email=email, name=name or email, role=role)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("[USERS] created user=%s role=%s", user.id, role)
    click.echo(f"Created user id={user.id} role={role}")


@cli.command("program_report")
@click.option("--user-id", "user_id", required=True, type=int)
@click.option("--program-id", "program_id", type=int, default=None)
@click.option("--indent", "indent", type=int, default=2)
def program_report(user_id: int, program_id: int | None, indent: int):
    """Print program reports as JSON, as seen by the given user."""
    user = db.session.get(User, user_id)
    if not user:
        click.echo("User not found", err=True)
        raise SystemExit(1)
    try:
        reports = generate_program_reports(user, program_id)
    except ProgramAccessError as exc:
        click.echo(str(exc), err=True)
        raise SystemExit(1)
    click.echo(json.dumps(reports, indent=indent or None))


if __name__ == "__main__":
    cli()
