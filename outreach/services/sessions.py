from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from ..app import db
from ..constants import SESSION_STATUSES
from ..models import Program, Session, SessionAttendance
from .programs import accessible_program_ids, load_program, programs_by_id


class SessionValidationError(ValueError):
    """Raised when session parameters fail validation."""


class SessionNotFoundError(LookupError):
    """Raised when a referenced session does not exist."""


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise SessionValidationError("date must be formatted YYYY-MM-DD")


def _parse_time(value: Any) -> time:
    if isinstance(value, time):
        return value
    raw = str(value).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(raw, fmt).time()
        except ValueError:
            continue
    raise SessionValidationError("startTime and endTime must be formatted HH:MM")


def session_code_for(program: Program, session_number: int) -> str:
    if program.program_code:
        return f"{program.program_code}-S{session_number}"
    return f"S{session_number}"


def next_session_number(program_id: int) -> int:
    highest = (
        db.session.query(func.max(Session.session_number))
        .filter(Session.program_id == program_id)
        .scalar()
    )
    return (highest or 0) + 1


def list_sessions(user: Any, program_id: Optional[Any] = None) -> List[Dict[str, Any]]:
    query = Session.query
    if program_id is not None:
        program = load_program(user, program_id)
        query = query.filter(Session.program_id == program.id)
    else:
        allowed = accessible_program_ids(user)
        if allowed is not None:
            query = query.filter(Session.program_id.in_(allowed))

    sessions = query.order_by(Session.session_number, Session.id).all()
    programs = programs_by_id(s.program_id for s in sessions)
    rows = []
    for sess in sessions:
        row = sess.to_dict()
        program = programs.get(sess.program_id)
        if program is not None:
            row["programTitle"] = program.title
            row["programCode"] = program.program_code
        rows.append(row)
    return rows


def create_session(user: Any, payload: Dict[str, Any]) -> Session:
    """Schedule a new session in a program the user conducts (or any, for admins)."""

    required = ("programId", "title", "date", "startTime", "endTime")
    if any(not payload.get(key) for key in required):
        raise SessionValidationError(
            "Program ID, title, date, start time, and end time are required"
        )

    program = load_program(user, payload["programId"])

    session_date = _parse_date(payload["date"])
    start_time = _parse_time(payload["startTime"])
    end_time = _parse_time(payload["endTime"])
    if end_time <= start_time:
        raise SessionValidationError("End time must be after start time")

    if (program.start_date and session_date < program.start_date) or (
        program.end_date and session_date > program.end_date
    ):
        raise SessionValidationError("Session date must be within program duration")

    session_number = payload.get("sessionNumber")
    if session_number is not None and session_number != "":
        try:
            session_number = int(session_number)
        except (TypeError, ValueError):
            raise SessionValidationError("sessionNumber must be an integer")
        if session_number < 1:
            raise SessionValidationError("sessionNumber must be 1 or greater")
    else:
        session_number = next_session_number(program.id)

    exists = (
        db.session.query(Session.id)
        .filter(
            Session.program_id == program.id,
            Session.session_number == session_number,
        )
        .first()
    )
    if exists:
        raise SessionValidationError(
            f"Session number {session_number} already exists for this program"
        )

    if session_number > program.total_sessions:
        raise SessionValidationError(
            f"Cannot create session {session_number}. "
            f"Program only has {program.total_sessions} total sessions."
        )

    try:
        expected = int(payload.get("expectedParticipants") or 0)
    except (TypeError, ValueError):
        expected = 0

    sess = Session(
        program_id=program.id,
        session_number=session_number,
        session_code=session_code_for(program, session_number),
        title=payload["title"],
        description=payload.get("description") or "",
        date=session_date,
        start_time=start_time,
        end_time=end_time,
        conducted_by=user.id,
        status="planned",
        expected_participants=expected or program.expected_participants,
        actual_participants=0,
        attendance_rate=0,
        notes=payload.get("notes"),
    )
    db.session.add(sess)
    db.session.flush()
    return sess


def load_session(user: Any, session_id: Any) -> Session:
    try:
        sess = db.session.get(Session, int(session_id))
    except (TypeError, ValueError):
        sess = None
    if sess is None:
        raise SessionNotFoundError("Session not found")
    load_program(user, sess.program_id, missing="Associated program not found")
    return sess


def session_detail(user: Any, session_id: Any) -> Dict[str, Any]:
    sess = load_session(user, session_id)
    row = sess.to_dict()
    row["programTitle"] = sess.program.title
    row["programCode"] = sess.program.program_code
    return row


def update_session(user: Any, session_id: Any, payload: Dict[str, Any]) -> Session:
    """Edit schedule, status and notes; number, code and counts stay as recorded."""

    sess = load_session(user, session_id)
    program = sess.program

    if "title" in payload and not payload["title"]:
        raise SessionValidationError("Title cannot be empty")

    if "status" in payload and payload["status"] not in SESSION_STATUSES:
        raise SessionValidationError(
            "Invalid session status. Must be one of: " + ", ".join(SESSION_STATUSES)
        )

    session_date = sess.date
    start_time = sess.start_time
    end_time = sess.end_time
    if payload.get("date") not in (None, ""):
        session_date = _parse_date(payload["date"])
        if (program.start_date and session_date < program.start_date) or (
            program.end_date and session_date > program.end_date
        ):
            raise SessionValidationError("Session date must be within program duration")
    if payload.get("startTime") not in (None, ""):
        start_time = _parse_time(payload["startTime"])
    if payload.get("endTime") not in (None, ""):
        end_time = _parse_time(payload["endTime"])
    if start_time and end_time and end_time <= start_time:
        raise SessionValidationError("End time must be after start time")

    if "expectedParticipants" in payload:
        try:
            sess.expected_participants = int(payload["expectedParticipants"] or 0)
        except (TypeError, ValueError):
            raise SessionValidationError("expectedParticipants must be an integer")

    for key in ("title", "description", "status", "notes"):
        if key in payload:
            setattr(sess, key, payload[key])
    sess.date = session_date
    sess.start_time = start_time
    sess.end_time = end_time
    db.session.flush()
    return sess


def delete_session(user: Any, session_id: Any) -> None:
    sess = load_session(user, session_id)
    has_attendance = (
        db.session.query(SessionAttendance.id)
        .filter(SessionAttendance.session_id == sess.id)
        .first()
    )
    if has_attendance:
        raise SessionValidationError(
            "Cannot delete session that has attendance records. "
            "Please remove them first."
        )
    db.session.delete(sess)
    db.session.flush()
