"""Program report aggregation.

A report run is four steps: pick the programs the caller may see, bulk-load
their sessions, enrolments and attendance in three queries, index those rows
by owner id, then walk each program once to build its statistics. Nothing is
written back.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from flask import current_app

from ..app import db
from ..constants import (
    ACTIVE_PARTICIPANT_STATUSES,
    AGE_BANDS,
    GENDERS,
    PASSING_PERFORMANCES,
    PRESENT_STATUSES,
    SPECIAL_STATUS_FLAGS,
)
from ..models import Program, ProgramParticipant, Session, SessionAttendance
from ..utils.acl import is_admin, require_program_access
from ..utils.rates import percent


@dataclass
class ProgramData:
    sessions: List[Session] = field(default_factory=list)
    participants: List[ProgramParticipant] = field(default_factory=list)
    attendance: List[SessionAttendance] = field(default_factory=list)


@dataclass
class ProgramIndex:
    sessions_by_program: Dict[int, List[Session]]
    participants_by_program: Dict[int, List[ProgramParticipant]]
    attendance_by_session: Dict[int, List[SessionAttendance]]


def visible_programs(user: Any, program_id: Optional[int] = None) -> List[Program]:
    """Programs the user may report on.

    An explicit ``program_id`` selects that program alone and raises
    :class:`~outreach.utils.acl.ProgramAccessError` unless the user is an
    admin or conducts it. An unknown id yields no programs.
    """

    if program_id is not None:
        program = db.session.get(Program, program_id)
        if program is None:
            return []
        require_program_access(user, program)
        return [program]

    query = Program.query
    if not is_admin(user):
        query = query.filter(Program.conducted_by == user.id)
    return query.order_by(Program.id).all()


def fetch_program_data(program_ids: List[int]) -> ProgramData:
    if not program_ids:
        return ProgramData()

    sessions = (
        Session.query.filter(Session.program_id.in_(program_ids))
        .order_by(Session.id)
        .all()
    )
    participants = (
        ProgramParticipant.query.filter(ProgramParticipant.program_id.in_(program_ids))
        .order_by(ProgramParticipant.id)
        .all()
    )
    session_ids = [s.id for s in sessions]
    attendance: List[SessionAttendance] = []
    if session_ids:
        attendance = (
            SessionAttendance.query.filter(SessionAttendance.session_id.in_(session_ids))
            .order_by(SessionAttendance.id)
            .all()
        )
    return ProgramData(sessions=sessions, participants=participants, attendance=attendance)


def index_program_data(data: ProgramData) -> ProgramIndex:
    sessions_by_program: Dict[int, List[Session]] = defaultdict(list)
    participants_by_program: Dict[int, List[ProgramParticipant]] = defaultdict(list)
    attendance_by_session: Dict[int, List[SessionAttendance]] = defaultdict(list)

    for sess in data.sessions:
        sessions_by_program[sess.program_id].append(sess)
    for participant in data.participants:
        participants_by_program[participant.program_id].append(participant)
    for record in data.attendance:
        attendance_by_session[record.session_id].append(record)

    return ProgramIndex(
        sessions_by_program=dict(sessions_by_program),
        participants_by_program=dict(participants_by_program),
        attendance_by_session=dict(attendance_by_session),
    )


def age_band(age: int) -> str:
    for label, upper in AGE_BANDS:
        if upper is None or age < upper:
            return label
    raise AssertionError("AGE_BANDS must end with an open band")


def _count_by(items: Iterable[Any], attr: str, keys: Iterable[str]) -> Dict[str, int]:
    counts = {key: 0 for key in keys}
    for item in items:
        value = getattr(item, attr, None)
        if value in counts:
            counts[value] += 1
    return counts


def _add_material(
    totals: List[Dict[str, Any]],
    by_product: Dict[Any, Dict[str, Any]],
    material: Dict[str, Any],
    session_number: int,
) -> None:
    product_id = material.get("productId")
    quantity = material.get("quantity") or 0
    entry = by_product.get(product_id)
    if entry is not None:
        entry["totalQuantity"] += quantity
        entry["sessionsReceived"].append(session_number)
        return
    # First sighting keeps the record's own fields (quantity, receivedAt)
    entry = dict(material)
    entry.update(
        {
            "productId": product_id,
            "productName": material.get("productName"),
            "totalQuantity": quantity,
            "sessionsReceived": [session_number],
        }
    )
    by_product[product_id] = entry
    totals.append(entry)


def _material_distribution(aggregates: Iterable[Dict[str, Any]]) -> Dict[str, Dict[str, int]]:
    summary: Dict[str, Dict[str, Any]] = {}
    for data in aggregates:
        participant_id = data["participant"].id
        for material in data["materials"]:
            name = material["productName"] or str(material["productId"])
            bucket = summary.setdefault(
                name, {"totalQuantity": 0, "participants": set(), "sessions": set()}
            )
            bucket["totalQuantity"] += material["totalQuantity"]
            bucket["participants"].add(participant_id)
            bucket["sessions"].update(material["sessionsReceived"])
    return {
        name: {
            "totalQuantity": bucket["totalQuantity"],
            "participantCount": len(bucket["participants"]),
            "sessionCount": len(bucket["sessions"]),
        }
        for name, bucket in summary.items()
    }


def build_program_report(
    program: Program,
    sessions: List[Session],
    participants: List[ProgramParticipant],
    attendance_by_session: Dict[int, List[SessionAttendance]],
) -> Dict[str, Any]:
    """Build one program's report from already-loaded rows."""

    total_enrolled = len(participants)
    completed_participants = sum(1 for p in participants if p.status == "completed")
    active_participants = sum(
        1 for p in participants if p.status in ACTIVE_PARTICIPANT_STATUSES
    )
    dropped_out = sum(1 for p in participants if p.status == "dropped-out")

    # Reported totals follow the sessions that exist, not Program.total_sessions
    total_sessions = len(sessions)
    completed_sessions = sum(1 for s in sessions if s.status == "completed")
    planned_sessions = sum(1 for s in sessions if s.status == "planned")

    aggregates: Dict[int, Dict[str, Any]] = {
        p.id: {
            "participant": p,
            "sessions_attended": 0,
            "sessions_completed": 0,
            "materials": [],
            "materials_by_product": {},
            "details": [],
        }
        for p in participants
    }
    unique_attendees = set()
    orphaned = 0

    for sess in sessions:
        for record in attendance_by_session.get(sess.id, []):
            data = aggregates.get(record.program_participant_id)
            if data is None:
                orphaned += 1
                continue

            materials = list(record.session_materials_received or [])
            data["details"].append(
                {
                    "sessionId": sess.id,
                    "sessionNumber": sess.session_number,
                    "sessionTitle": sess.title,
                    "sessionDate": sess.date.isoformat() if sess.date else None,
                    "attendanceStatus": record.attendance_status,
                    "materialsReceived": materials,
                    "sessionPerformance": record.session_performance,
                }
            )

            if record.attendance_status in PRESENT_STATUSES:
                data["sessions_attended"] += 1
                unique_attendees.add(record.program_participant_id)

            # Independent of presence: a session can be attended but not passed
            if record.session_performance in PASSING_PERFORMANCES:
                data["sessions_completed"] += 1

            for material in materials:
                _add_material(
                    data["materials"],
                    data["materials_by_product"],
                    material,
                    sess.session_number,
                )

    age_groups = {label: 0 for label, _upper in AGE_BANDS}
    for p in participants:
        age_groups[age_band(p.age)] += 1

    special_status = {
        label: sum(1 for p in participants if getattr(p, attr, False))
        for label, attr in SPECIAL_STATUS_FLAGS
    }

    minimum = program.minimum_sessions_for_completion
    eligible = sum(
        1 for data in aggregates.values() if data["sessions_attended"] >= minimum
    )
    total_attended = sum(data["sessions_attended"] for data in aggregates.values())

    statistics = {
        "totalEnrolledParticipants": total_enrolled,
        "uniqueAttendees": len(unique_attendees),
        "completedParticipants": completed_participants,
        "activeParticipants": active_participants,
        "droppedOutParticipants": dropped_out,
        "eligibleForCompletion": eligible,
        "totalSessions": total_sessions,
        "completedSessions": completed_sessions,
        "plannedSessions": planned_sessions,
        "overallAttendanceRate": percent(
            total_attended, total_enrolled * completed_sessions
        ),
        "completionRate": percent(completed_participants, total_enrolled),
        "retentionRate": percent(total_enrolled - dropped_out, total_enrolled),
        "ageGroups": age_groups,
        "genderDistribution": _count_by(participants, "gender", GENDERS),
        "specialStatus": special_status,
        "orphanedAttendanceRecords": orphaned,
    }

    session_rows = []
    for sess in sessions:
        records = attendance_by_session.get(sess.id, [])
        row = sess.to_dict()
        row["attendanceCount"] = sum(
            1 for r in records if r.attendance_status in PRESENT_STATUSES
        )
        row["totalAttendanceRecords"] = len(records)
        session_rows.append(row)

    participant_rows = []
    for data in aggregates.values():
        row = data["participant"].to_dict()
        row.update(
            {
                "sessionsAttended": data["sessions_attended"],
                "sessionsCompleted": data["sessions_completed"],
                "attendanceRate": percent(data["sessions_attended"], completed_sessions),
                "isEligibleForCompletion": data["sessions_attended"] >= minimum,
                "totalMaterialsReceived": data["materials"],
                "attendanceDetails": data["details"],
            }
        )
        participant_rows.append(row)

    return {
        "program": program.to_dict(),
        "statistics": statistics,
        "sessions": session_rows,
        "participants": participant_rows,
        "materialDistribution": _material_distribution(aggregates.values()),
    }


def generate_program_reports(user: Any, program_id: Optional[int] = None) -> List[Dict[str, Any]]:
    programs = visible_programs(user, program_id)
    if not programs:
        return []

    data = fetch_program_data([p.id for p in programs])
    index = index_program_data(data)

    reports = []
    for program in programs:
        report = build_program_report(
            program,
            index.sessions_by_program.get(program.id, []),
            index.participants_by_program.get(program.id, []),
            index.attendance_by_session,
        )
        orphaned = report["statistics"]["orphanedAttendanceRecords"]
        if orphaned and current_app.config.get("REPORTS_LOG_ORPHANS", True):
            current_app.logger.info(
                "[REPORTS] program=%s skipped %s attendance records with no enrolment",
                program.id,
                orphaned,
            )
        reports.append(report)

    current_app.logger.info(
        "[REPORTS] user=%s programs=%s sessions=%s participants=%s attendance=%s",
        getattr(user, "id", None),
        len(programs),
        len(data.sessions),
        len(data.participants),
        len(data.attendance),
    )
    return reports
