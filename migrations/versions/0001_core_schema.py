"""core schema: users, programs, sessions, program participants, attendance

Revision ID: 0001_core_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_core_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255)),
        sa.Column("role", sa.String(16), nullable=False, server_default="user"),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")
        ),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_users_email_lower", "users", [sa.text("lower(email)")], unique=True
    )

    op.create_table(
        "programs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("program_code", sa.String(64)),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("category", sa.String(120)),
        sa.Column("start_date", sa.Date()),
        sa.Column("end_date", sa.Date()),
        sa.Column("total_sessions", sa.Integer(), nullable=False),
        sa.Column("minimum_sessions_for_completion", sa.Integer(), nullable=False),
        sa.Column("conducted_by", sa.Integer()),
        sa.Column("status", sa.String(16), nullable=False, server_default="planned"),
        sa.Column("expected_participants", sa.Integer(), nullable=False),
        sa.Column("enrolled_participants", sa.Integer(), nullable=False),
        sa.Column("completed_participants", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["conducted_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_programs_conducted_by", "programs", ["conducted_by"])

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("program_id", sa.Integer(), nullable=False),
        sa.Column("session_number", sa.Integer(), nullable=False),
        sa.Column("session_code", sa.String(80)),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("date", sa.Date()),
        sa.Column("start_time", sa.Time()),
        sa.Column("end_time", sa.Time()),
        sa.Column("conducted_by", sa.Integer()),
        sa.Column("status", sa.String(16), nullable=False, server_default="planned"),
        sa.Column("expected_participants", sa.Integer(), nullable=False),
        sa.Column("actual_participants", sa.Integer(), nullable=False),
        sa.Column("attendance_rate", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["program_id"], ["programs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["conducted_by"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint(
            "program_id", "session_number", name="uix_session_program_number"
        ),
    )
    op.create_index("ix_sessions_program_id", "sessions", ["program_id"])

    op.create_table(
        "program_participants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("program_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("age", sa.Integer(), nullable=False),
        sa.Column("gender", sa.String(16), nullable=False),
        sa.Column("id_number", sa.String(64)),
        sa.Column("phone_number", sa.String(64)),
        sa.Column(
            "is_disabled", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column(
            "is_wounded", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column(
            "is_separated", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column(
            "is_unaccompanied",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("enrollment_date", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("status", sa.String(16), nullable=False, server_default="enrolled"),
        sa.Column("completion_date", sa.DateTime()),
        sa.Column("sessions_attended", sa.Integer(), nullable=False),
        sa.Column("sessions_completed", sa.Integer(), nullable=False),
        sa.Column("attendance_rate", sa.Integer(), nullable=False),
        sa.Column("overall_materials_received", sa.JSON(), nullable=False),
        sa.Column("program_outcome", sa.String(32)),
        sa.Column("notes", sa.Text()),
        sa.ForeignKeyConstraint(["program_id"], ["programs.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "program_id", "id_number", name="uix_program_participant_id_number"
        ),
    )
    op.create_index(
        "ix_program_participants_program_id", "program_participants", ["program_id"]
    )

    op.create_table(
        "session_attendance",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("program_participant_id", sa.Integer(), nullable=False),
        sa.Column("participant_name", sa.String(255)),
        sa.Column("attendance_status", sa.String(16), nullable=False),
        sa.Column("check_in_time", sa.String(16)),
        sa.Column("check_out_time", sa.String(16)),
        sa.Column("session_materials_received", sa.JSON(), nullable=False),
        sa.Column("session_performance", sa.String(32)),
        sa.Column("session_notes", sa.Text()),
        sa.Column("recorded_by", sa.Integer()),
        sa.Column("recorded_at", sa.DateTime(), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["recorded_by"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint(
            "session_id",
            "program_participant_id",
            name="uix_session_attendance_participant",
        ),
    )
    op.create_index(
        "ix_session_attendance_session_id", "session_attendance", ["session_id"]
    )
    op.create_index(
        "ix_session_attendance_program_participant_id",
        "session_attendance",
        ["program_participant_id"],
    )


def downgrade() -> None:
    op.drop_table("session_attendance")
    op.drop_table("program_participants")
    op.drop_table("sessions")
    op.drop_table("programs")
    op.drop_index("ix_users_email_lower", table_name="users")
    op.drop_table("users")
