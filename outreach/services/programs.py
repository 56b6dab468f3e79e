from __future__ import annotations

import math
from datetime import date
from typing import Any, Dict, List, Optional

from ..app import db
from ..constants import DEFAULT_COMPLETION_SHARE, PROGRAM_STATUSES
from ..models import Program, ProgramParticipant, Session
from ..utils.acl import is_admin, require_program_access


class ProgramNotFoundError(LookupError):
    """Raised when a referenced program does not exist."""


class ProgramValidationError(ValueError):
    """Raised when program fields fail validation."""


UPDATABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "category": "category",
    "status": "status",
    "notes": "notes",
}


def load_program(user: Any, program_id: Any, *, missing: str = "Program not found") -> Program:
    """Fetch a program the user may work with, or raise."""

    try:
        program = db.session.get(Program, int(program_id))
    except (TypeError, ValueError):
        program = None
    if program is None:
        raise ProgramNotFoundError(missing)
    require_program_access(user, program)
    return program


def accessible_program_ids(user: Any) -> Optional[List[int]]:
    """Ids of the programs a non-admin conducts; ``None`` means no restriction."""

    if is_admin(user):
        return None
    rows = db.session.query(Program.id).filter(Program.conducted_by == user.id).all()
    return [row.id for row in rows]


def programs_by_id(program_ids) -> dict:
    ids = {pid for pid in program_ids if pid is not None}
    if not ids:
        return {}
    return {p.id: p for p in Program.query.filter(Program.id.in_(ids)).all()}


def list_programs(user: Any) -> List[Dict[str, Any]]:
    query = Program.query
    if not is_admin(user):
        query = query.filter(Program.conducted_by == user.id)
    return [p.to_dict() for p in query.order_by(Program.id).all()]


def _parse_date(value: Any, field: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ProgramValidationError(f"{field} must be formatted YYYY-MM-DD")


def _parse_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ProgramValidationError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ProgramValidationError(f"{field} must be an integer")


def _check_schedule(start: Optional[date], end: Optional[date]) -> None:
    if start and end and end <= start:
        raise ProgramValidationError("End date must be after start date")


def _check_session_counts(total: int, minimum: int) -> None:
    if total < 1:
        raise ProgramValidationError("Total sessions must be at least 1")
    if minimum < 0:
        raise ProgramValidationError("Minimum sessions for completion cannot be negative")
    if minimum > total:
        raise ProgramValidationError(
            "Minimum sessions for completion cannot exceed total sessions"
        )


def _initials(user: Any) -> str:
    name = (getattr(user, "name", None) or getattr(user, "email", "") or "").split("@")[0]
    letters = "".join(part[0] for part in name.replace(".", " ").split() if part)
    return (letters or "X").upper()


def generate_program_code(user: Any, start_date: date) -> str:
    """``<initials>-<YYYYMMDD>-PROG-<counter>``, unique across programs."""

    prefix = f"{_initials(user)}-{start_date:%Y%m%d}-PROG"
    taken = {
        row.program_code
        for row in db.session.query(Program.program_code)
        .filter(Program.program_code.like(f"{prefix}-%"))
        .all()
    }
    counter = len(taken) + 1
    while f"{prefix}-{counter:03d}" in taken:
        counter += 1
    return f"{prefix}-{counter:03d}"


def create_program(user: Any, payload: Dict[str, Any]) -> Program:
    """Create a program conducted by ``user`` in the planned state."""

    required = ("title", "startDate", "endDate", "totalSessions")
    if any(payload.get(key) in (None, "") for key in required):
        raise ProgramValidationError(
            "Title, start date, end date, and total sessions are required"
        )

    start_date = _parse_date(payload["startDate"], "startDate")
    end_date = _parse_date(payload["endDate"], "endDate")
    _check_schedule(start_date, end_date)

    total = _parse_int(payload["totalSessions"], "totalSessions")
    if payload.get("minimumSessionsForCompletion") in (None, ""):
        minimum = math.ceil(total * DEFAULT_COMPLETION_SHARE)
    else:
        minimum = _parse_int(
            payload["minimumSessionsForCompletion"], "minimumSessionsForCompletion"
        )
    _check_session_counts(total, minimum)

    expected = payload.get("expectedParticipants")
    expected = 0 if expected in (None, "") else _parse_int(expected, "expectedParticipants")

    program = Program(
        program_code=generate_program_code(user, start_date),
        title=payload["title"],
        description=payload.get("description") or "",
        category=payload.get("category"),
        start_date=start_date,
        end_date=end_date,
        total_sessions=total,
        minimum_sessions_for_completion=minimum,
        conducted_by=user.id,
        status="planned",
        expected_participants=expected,
        enrolled_participants=0,
        completed_participants=0,
        notes=payload.get("notes"),
    )
    db.session.add(program)
    db.session.flush()
    return program


def update_program(user: Any, program_id: Any, payload: Dict[str, Any]) -> Program:
    """Apply editable fields; code, owner and participant counters are left alone."""

    program = load_program(user, program_id)
    if "title" in payload and not payload["title"]:
        raise ProgramValidationError("Title cannot be empty")

    start_date = program.start_date
    end_date = program.end_date
    if payload.get("startDate") not in (None, ""):
        start_date = _parse_date(payload["startDate"], "startDate")
    if payload.get("endDate") not in (None, ""):
        end_date = _parse_date(payload["endDate"], "endDate")
    _check_schedule(start_date, end_date)

    total = program.total_sessions
    minimum = program.minimum_sessions_for_completion
    if "totalSessions" in payload:
        total = _parse_int(payload["totalSessions"], "totalSessions")
    if "minimumSessionsForCompletion" in payload:
        minimum = _parse_int(
            payload["minimumSessionsForCompletion"], "minimumSessionsForCompletion"
        )
    _check_session_counts(total, minimum)

    if "status" in payload and payload["status"] not in PROGRAM_STATUSES:
        raise ProgramValidationError(
            "Invalid program status. Must be one of: " + ", ".join(PROGRAM_STATUSES)
        )

    for key, attr in UPDATABLE_FIELDS.items():
        if key in payload:
            setattr(program, attr, payload[key])
    if "expectedParticipants" in payload:
        program.expected_participants = _parse_int(
            payload["expectedParticipants"], "expectedParticipants"
        )
    program.start_date = start_date
    program.end_date = end_date
    program.total_sessions = total
    program.minimum_sessions_for_completion = minimum
    db.session.flush()
    return program


def delete_program(user: Any, program_id: Any) -> None:
    program = load_program(user, program_id)
    has_sessions = db.session.query(Session.id).filter(Session.program_id == program.id).first()
    has_participants = (
        db.session.query(ProgramParticipant.id)
        .filter(ProgramParticipant.program_id == program.id)
        .first()
    )
    if has_sessions or has_participants:
        raise ProgramValidationError(
            "Cannot delete program that has sessions or participants. "
            "Please remove them first."
        )
    db.session.delete(program)
    db.session.flush()
