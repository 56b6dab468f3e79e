from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from ..app import db
from ..constants import (
    ATTENDANCE_STATUSES,
    HELD_SESSION_STATUSES,
    PARTIAL_COMPLETION_RATE,
    PASSING_PERFORMANCES,
    PRESENT_STATUSES,
    SESSION_PERFORMANCES,
)
from ..models import ProgramParticipant, Session, SessionAttendance
from ..utils.rates import percent
from .programs import accessible_program_ids, load_program


class AttendanceValidationError(ValueError):
    """Raised when attendance parameters fail validation."""


class AttendanceNotFoundError(LookupError):
    """Raised when the session or enrolment referenced does not exist."""


def _get(model, raw_id, message: str):
    try:
        obj = db.session.get(model, int(raw_id))
    except (TypeError, ValueError):
        obj = None
    if obj is None:
        raise AttendanceNotFoundError(message)
    return obj


def _normalize_materials(raw: Any) -> List[Dict[str, Any]]:
    if raw in (None, ""):
        return []
    if not isinstance(raw, list):
        raise AttendanceValidationError("sessionMaterialsReceived must be a list")
    materials = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("productId"):
            raise AttendanceValidationError(
                "Each material needs a productId, productName and quantity"
            )
        try:
            quantity = int(item.get("quantity") or 0)
        except (TypeError, ValueError):
            raise AttendanceValidationError("Material quantity must be a whole number")
        if quantity < 0:
            raise AttendanceValidationError("Material quantity must be a whole number")
        entry = {
            "productId": str(item["productId"]),
            "productName": item.get("productName") or "",
            "quantity": quantity,
        }
        if item.get("receivedAt"):
            entry["receivedAt"] = item["receivedAt"]
        materials.append(entry)
    return materials


def _fold_overall_materials(
    existing: List[Dict[str, Any]], materials: List[Dict[str, Any]], session_number: int
) -> List[Dict[str, Any]]:
    # New list so the JSON column registers the change
    folded = [dict(m, sessionsReceived=list(m.get("sessionsReceived") or [])) for m in existing]
    by_product = {m.get("productId"): m for m in folded}
    for material in materials:
        entry = by_product.get(material["productId"])
        if entry:
            entry["totalQuantity"] = (entry.get("totalQuantity") or 0) + material["quantity"]
            entry["sessionsReceived"].append(session_number)
            continue
        entry = {
            "productId": material["productId"],
            "productName": material["productName"],
            "totalQuantity": material["quantity"],
            "sessionsReceived": [session_number],
        }
        by_product[material["productId"]] = entry
        folded.append(entry)
    return folded


def _update_participant_progress(
    participant: ProgramParticipant,
    program,
    sess: Session,
    record: SessionAttendance,
    now: datetime,
) -> None:
    if record.attendance_status in PRESENT_STATUSES:
        participant.sessions_attended = (participant.sessions_attended or 0) + 1
    if record.session_performance in PASSING_PERFORMANCES:
        participant.sessions_completed = (participant.sessions_completed or 0) + 1
    if record.session_materials_received:
        participant.overall_materials_received = _fold_overall_materials(
            participant.overall_materials_received or [],
            record.session_materials_received,
            sess.session_number,
        )

    held = Session.query.filter(
        Session.program_id == sess.program_id,
        Session.status.in_(HELD_SESSION_STATUSES),
    ).count()
    if held <= 0:
        return

    rate = percent(participant.sessions_attended, held)
    completed = participant.sessions_attended >= program.minimum_sessions_for_completion
    participant.attendance_rate = rate
    if completed:
        participant.program_outcome = "completed"
    elif rate >= PARTIAL_COMPLETION_RATE:
        participant.program_outcome = "partially-completed"
    else:
        participant.program_outcome = "not-completed"
    if completed and participant.status != "completed":
        participant.status = "completed"
        participant.completion_date = now


def _update_session_counts(sess: Session) -> None:
    attended = SessionAttendance.query.filter(
        SessionAttendance.session_id == sess.id,
        SessionAttendance.attendance_status.in_(PRESENT_STATUSES),
    ).count()
    sess.actual_participants = attended
    sess.attendance_rate = percent(attended, sess.expected_participants)


def record_attendance(user: Any, payload: Dict[str, Any]) -> SessionAttendance:
    """Record one participant's attendance at one session and refresh stored progress."""

    required = ("sessionId", "programParticipantId", "attendanceStatus")
    if any(payload.get(key) in (None, "") for key in required):
        raise AttendanceValidationError(
            "Session ID, program participant ID, and attendance status are required"
        )

    status = payload["attendanceStatus"]
    if status not in ATTENDANCE_STATUSES:
        raise AttendanceValidationError(
            "Invalid attendance status. Must be one of: " + ", ".join(ATTENDANCE_STATUSES)
        )
    performance = payload.get("sessionPerformance") or None
    if performance is not None and performance not in SESSION_PERFORMANCES:
        raise AttendanceValidationError(
            "Invalid session performance. Must be one of: "
            + ", ".join(SESSION_PERFORMANCES)
        )
    materials = _normalize_materials(payload.get("sessionMaterialsReceived"))

    sess = _get(Session, payload["sessionId"], "Session not found")
    program = load_program(user, sess.program_id, missing="Associated program not found")
    participant = _get(
        ProgramParticipant,
        payload["programParticipantId"],
        "Program participant not found",
    )
    if participant.program_id != sess.program_id:
        raise AttendanceValidationError(
            "Participant is not enrolled in the program this session belongs to"
        )

    existing = (
        db.session.query(SessionAttendance.id)
        .filter(
            SessionAttendance.session_id == sess.id,
            SessionAttendance.program_participant_id == participant.id,
        )
        .first()
    )
    if existing:
        raise AttendanceValidationError(
            "Attendance already recorded for this participant in this session"
        )

    now = datetime.utcnow()
    record = SessionAttendance(
        session_id=sess.id,
        program_participant_id=participant.id,
        participant_name=participant.name,
        attendance_status=status,
        check_in_time=payload.get("checkInTime"),
        check_out_time=payload.get("checkOutTime"),
        session_materials_received=materials,
        session_performance=performance,
        session_notes=payload.get("sessionNotes") or "",
        recorded_by=user.id,
        recorded_at=now,
    )
    db.session.add(record)
    db.session.flush()

    _update_participant_progress(participant, program, sess, record, now)
    _update_session_counts(sess)
    return record


def list_attendance(
    user: Any,
    session_id: Optional[Any] = None,
    program_participant_id: Optional[Any] = None,
) -> List[Dict[str, Any]]:
    query = SessionAttendance.query
    if session_id is not None:
        sess = _get(Session, session_id, "Session not found")
        load_program(user, sess.program_id, missing="Associated program not found")
        query = query.filter(SessionAttendance.session_id == sess.id)
    elif program_participant_id is not None:
        participant = _get(
            ProgramParticipant, program_participant_id, "Program participant not found"
        )
        load_program(user, participant.program_id, missing="Associated program not found")
        query = query.filter(SessionAttendance.program_participant_id == participant.id)
    else:
        allowed = accessible_program_ids(user)
        if allowed is not None:
            participant_ids = [
                row.id
                for row in db.session.query(ProgramParticipant.id).filter(
                    ProgramParticipant.program_id.in_(allowed)
                )
            ]
            query = query.filter(
                SessionAttendance.program_participant_id.in_(participant_ids)
            )

    records = query.order_by(
        SessionAttendance.recorded_at.desc(), SessionAttendance.id.desc()
    ).all()

    session_ids = {r.session_id for r in records}
    participant_ids = {r.program_participant_id for r in records}
    sessions = (
        {s.id: s for s in Session.query.filter(Session.id.in_(session_ids))}
        if session_ids
        else {}
    )
    participants = (
        {
            p.id: p
            for p in ProgramParticipant.query.filter(
                ProgramParticipant.id.in_(participant_ids)
            )
        }
        if participant_ids
        else {}
    )

    rows = []
    for record in records:
        row = record.to_dict()
        sess = sessions.get(record.session_id)
        if sess is not None:
            row["sessionTitle"] = sess.title
            row["sessionCode"] = sess.session_code
            row["sessionNumber"] = sess.session_number
            row["sessionDate"] = sess.date.isoformat() if sess.date else None
        participant = participants.get(record.program_participant_id)
        if participant is not None:
            row["participantName"] = participant.name
            row["participantAge"] = participant.age
            row["participantGender"] = participant.gender
        rows.append(row)
    return rows
