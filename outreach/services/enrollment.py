from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..app import db
from ..constants import ACTIVE_PARTICIPANT_STATUSES, CLOSED_PROGRAM_STATUSES, GENDERS
from ..models import ProgramParticipant
from .programs import accessible_program_ids, load_program, programs_by_id


class EnrollmentValidationError(ValueError):
    """Raised when an enrolment request fails validation."""


def list_participants(user: Any, program_id: Optional[Any] = None) -> List[Dict[str, Any]]:
    query = ProgramParticipant.query
    if program_id is not None:
        program = load_program(user, program_id)
        query = query.filter(ProgramParticipant.program_id == program.id)
    else:
        allowed = accessible_program_ids(user)
        if allowed is not None:
            query = query.filter(ProgramParticipant.program_id.in_(allowed))

    participants = query.order_by(ProgramParticipant.id).all()
    programs = programs_by_id(p.program_id for p in participants)
    rows = []
    for participant in participants:
        row = participant.to_dict()
        program = programs.get(participant.program_id)
        if program is not None:
            row["programTitle"] = program.title
            row["programCode"] = program.program_code
            row["programTotalSessions"] = program.total_sessions
            row["programMinimumSessions"] = program.minimum_sessions_for_completion
        rows.append(row)
    return rows


def enroll_participant(user: Any, payload: Dict[str, Any]) -> ProgramParticipant:
    required = ("programId", "name", "age", "gender", "idNumber", "phoneNumber")
    if any(payload.get(key) in (None, "") for key in required):
        raise EnrollmentValidationError(
            "Program ID, name, age, gender, ID number, and phone number are required"
        )
    if payload["gender"] not in GENDERS:
        raise EnrollmentValidationError("Gender must be male, female, or other")
    try:
        age = int(payload["age"])
    except (TypeError, ValueError):
        raise EnrollmentValidationError("Age must be a whole number")
    if age < 0:
        raise EnrollmentValidationError("Age must be a whole number")

    program = load_program(user, payload["programId"])

    if program.status in CLOSED_PROGRAM_STATUSES:
        raise EnrollmentValidationError(
            "Cannot enroll participants in a completed or cancelled program"
        )

    id_number = str(payload["idNumber"]).strip()
    duplicate = (
        db.session.query(ProgramParticipant.id)
        .filter(
            ProgramParticipant.program_id == program.id,
            ProgramParticipant.id_number == id_number,
        )
        .first()
    )
    if duplicate:
        raise EnrollmentValidationError(
            "Participant with this ID number is already enrolled in this program"
        )

    current = ProgramParticipant.query.filter(
        ProgramParticipant.program_id == program.id,
        ProgramParticipant.status.in_(ACTIVE_PARTICIPANT_STATUSES),
    ).count()
    if current >= (program.expected_participants or 0):
        raise EnrollmentValidationError("Program has reached its capacity limit")

    flags = payload.get("specialStatus")
    if flags is None:
        flags = {}
    elif not isinstance(flags, dict):
        raise EnrollmentValidationError("specialStatus must be an object")

    participant = ProgramParticipant(
        program_id=program.id,
        name=payload["name"],
        age=age,
        gender=payload["gender"],
        id_number=id_number,
        phone_number=str(payload["phoneNumber"]),
        is_disabled=bool(flags.get("isDisabled")),
        is_wounded=bool(flags.get("isWounded")),
        is_separated=bool(flags.get("isSeparated")),
        is_unaccompanied=bool(flags.get("isUnaccompanied")),
        status="enrolled",
        sessions_attended=0,
        sessions_completed=0,
        attendance_rate=0,
        overall_materials_received=[],
        notes=payload.get("notes") or "",
    )
    db.session.add(participant)
    program.enrolled_participants = (program.enrolled_participants or 0) + 1
    db.session.flush()
    return participant
