from __future__ import annotations

from sqlalchemy.orm import validates

from .app import db
from .constants import ADMIN


def _iso(value):
    return value.isoformat() if value is not None else None


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255))
    role = db.Column(db.String(16), nullable=False, default="user", server_default="user")
    is_active = db.Column(
        db.Boolean, nullable=False, default=True, server_default=db.text("true")
    )
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    __table_args__ = (
        db.Index("ix_users_email_lower", db.func.lower(email), unique=True),
    )

    @validates("email")
    def lower_email(self, key, value):  # pragma: no cover - simple normalizer
        return value.lower()

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN


class Program(db.Model):
    __tablename__ = "programs"

    id = db.Column(db.Integer, primary_key=True)
    program_code = db.Column(db.String(64))
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(120))
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    total_sessions = db.Column(db.Integer, nullable=False, default=1)
    minimum_sessions_for_completion = db.Column(db.Integer, nullable=False, default=1)
    conducted_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    conductor = db.relationship("User")
    status = db.Column(
        db.String(16), nullable=False, default="planned", server_default="planned"
    )
    expected_participants = db.Column(db.Integer, nullable=False, default=0)
    enrolled_participants = db.Column(db.Integer, nullable=False, default=0)
    completed_participants = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime, server_default=db.func.now(), onupdate=db.func.now()
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "programCode": self.program_code,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "totalSessions": self.total_sessions,
            "minimumSessionsForCompletion": self.minimum_sessions_for_completion,
            "conductedBy": self.conducted_by,
            "status": self.status,
            "expectedParticipants": self.expected_participants,
            "enrolledParticipants": self.enrolled_participants,
            "completedParticipants": self.completed_participants,
            "notes": self.notes,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class Session(db.Model):
    __tablename__ = "sessions"

    id = db.Column(db.Integer, primary_key=True)
    program_id = db.Column(
        db.Integer,
        db.ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    program = db.relationship("Program")
    session_number = db.Column(db.Integer, nullable=False)
    session_code = db.Column(db.String(80))
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    date = db.Column(db.Date)
    start_time = db.Column(db.Time)
    end_time = db.Column(db.Time)
    conducted_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    status = db.Column(
        db.String(16), nullable=False, default="planned", server_default="planned"
    )
    expected_participants = db.Column(db.Integer, nullable=False, default=0)
    actual_participants = db.Column(db.Integer, nullable=False, default=0)
    attendance_rate = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime, server_default=db.func.now(), onupdate=db.func.now()
    )
    __table_args__ = (
        db.UniqueConstraint(
            "program_id", "session_number", name="uix_session_program_number"
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "programId": self.program_id,
            "sessionNumber": self.session_number,
            "sessionCode": self.session_code,
            "title": self.title,
            "description": self.description,
            "date": _iso(self.date),
            "startTime": self.start_time.strftime("%H:%M") if self.start_time else None,
            "endTime": self.end_time.strftime("%H:%M") if self.end_time else None,
            "conductedBy": self.conducted_by,
            "status": self.status,
            "expectedParticipants": self.expected_participants,
            "actualParticipants": self.actual_participants,
            "attendanceRate": self.attendance_rate,
            "notes": self.notes,
        }


class ProgramParticipant(db.Model):
    __tablename__ = "program_participants"

    id = db.Column(db.Integer, primary_key=True)
    program_id = db.Column(
        db.Integer,
        db.ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    program = db.relationship("Program")
    name = db.Column(db.String(255), nullable=False)
    age = db.Column(db.Integer, nullable=False)
    gender = db.Column(db.String(16), nullable=False)
    id_number = db.Column(db.String(64))
    phone_number = db.Column(db.String(64))
    is_disabled = db.Column(
        db.Boolean, nullable=False, default=False, server_default=db.text("false")
    )
    is_wounded = db.Column(
        db.Boolean, nullable=False, default=False, server_default=db.text("false")
    )
    is_separated = db.Column(
        db.Boolean, nullable=False, default=False, server_default=db.text("false")
    )
    is_unaccompanied = db.Column(
        db.Boolean, nullable=False, default=False, server_default=db.text("false")
    )
    enrollment_date = db.Column(db.DateTime, server_default=db.func.now())
    status = db.Column(
        db.String(16), nullable=False, default="enrolled", server_default="enrolled"
    )
    completion_date = db.Column(db.DateTime)
    sessions_attended = db.Column(db.Integer, nullable=False, default=0)
    sessions_completed = db.Column(db.Integer, nullable=False, default=0)
    attendance_rate = db.Column(db.Integer, nullable=False, default=0)
    overall_materials_received = db.Column(db.JSON, nullable=False, default=list)
    program_outcome = db.Column(db.String(32))
    notes = db.Column(db.Text, default="")
    __table_args__ = (
        db.UniqueConstraint(
            "program_id", "id_number", name="uix_program_participant_id_number"
        ),
    )

    @property
    def special_status(self) -> dict:
        return {
            "isDisabled": bool(self.is_disabled),
            "isWounded": bool(self.is_wounded),
            "isSeparated": bool(self.is_separated),
            "isUnaccompanied": bool(self.is_unaccompanied),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "programId": self.program_id,
            "name": self.name,
            "age": self.age,
            "gender": self.gender,
            "idNumber": self.id_number,
            "phoneNumber": self.phone_number,
            "specialStatus": self.special_status,
            "enrollmentDate": _iso(self.enrollment_date),
            "status": self.status,
            "completionDate": _iso(self.completion_date),
            "sessionsAttended": self.sessions_attended,
            "sessionsCompleted": self.sessions_completed,
            "attendanceRate": self.attendance_rate,
            "overallMaterialsReceived": list(self.overall_materials_received or []),
            "programOutcome": self.program_outcome,
            "notes": self.notes,
        }


class SessionAttendance(db.Model):
    __tablename__ = "session_attendance"

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(
        db.Integer,
        db.ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Not a foreign key: records may outlive the enrolment they point to
    program_participant_id = db.Column(db.Integer, nullable=False, index=True)
    participant_name = db.Column(db.String(255))
    attendance_status = db.Column(db.String(16), nullable=False)
    check_in_time = db.Column(db.String(16))
    check_out_time = db.Column(db.String(16))
    session_materials_received = db.Column(db.JSON, nullable=False, default=list)
    session_performance = db.Column(db.String(32))
    session_notes = db.Column(db.Text, default="")
    recorded_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    recorded_at = db.Column(db.DateTime, server_default=db.func.now())
    __table_args__ = (
        db.UniqueConstraint(
            "session_id",
            "program_participant_id",
            name="uix_session_attendance_participant",
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "programParticipantId": self.program_participant_id,
            "participantName": self.participant_name,
            "attendanceStatus": self.attendance_status,
            "checkInTime": self.check_in_time,
            "checkOutTime": self.check_out_time,
            "sessionMaterialsReceived": list(self.session_materials_received or []),
            "sessionPerformance": self.session_performance,
            "sessionNotes": self.session_notes,
            "recordedBy": self.recorded_by,
            "recordedAt": _iso(self.recorded_at),
        }
