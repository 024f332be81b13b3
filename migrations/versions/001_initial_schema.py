"""Initial schema: clinics, doctors, patients, schedules, time off, appointments, slots.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

shift_type = sa.Enum("MORNING", "EVENING", name="shifttype")
time_off_type = sa.Enum("BREAK", "VACATION", "OTHER", name="timeofftype")
appointment_status = sa.Enum("BOOKED", "CANCELLED", "COMPLETED", "NO_SHOW", name="appointmentstatus")
slot_status = sa.Enum("AVAILABLE", "BOOKED", "BLOCKED", name="slotstatus")


def upgrade() -> None:
    op.create_table(
        "clinics",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("timezone", sa.String(), nullable=False, server_default="UTC"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "doctors",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("clinic_id", sa.Integer(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("specialization", sa.String(), nullable=True),
        sa.Column("appointment_duration_min", sa.Integer(), nullable=False, server_default="15"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("has_license", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("schedule_configured_at", sa.DateTime(), nullable=True),
        sa.Column("slots_generated_from", sa.Date(), nullable=True),
        sa.Column("slots_generated_to", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["clinic_id"], ["clinics.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_doctors_clinic_id"), "doctors", ["clinic_id"], unique=False)

    op.create_table(
        "patients",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("clinic_id", sa.Integer(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["clinic_id"], ["clinics.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_patients_clinic_id"), "patients", ["clinic_id"], unique=False)

    op.create_table(
        "doctor_shift_templates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("clinic_id", sa.Integer(), nullable=False),
        sa.Column("doctor_id", sa.Integer(), nullable=False),
        sa.Column("shift_type", shift_type, nullable=False),
        sa.Column("start_time", sa.String(), nullable=False),
        sa.Column("end_time", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(["clinic_id"], ["clinics.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("doctor_id", "shift_type", name="uq_shift_templates_doctor_shift"),
    )
    op.create_index(op.f("ix_doctor_shift_templates_clinic_id"), "doctor_shift_templates", ["clinic_id"])
    op.create_index(op.f("ix_doctor_shift_templates_doctor_id"), "doctor_shift_templates", ["doctor_id"])

    op.create_table(
        "doctor_weekly_shifts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("clinic_id", sa.Integer(), nullable=False),
        sa.Column("doctor_id", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("shift_type", shift_type, nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.ForeignKeyConstraint(["clinic_id"], ["clinics.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("doctor_id", "day_of_week", "shift_type", name="uq_weekly_shifts_doctor_day_shift"),
    )
    op.create_index(op.f("ix_doctor_weekly_shifts_clinic_id"), "doctor_weekly_shifts", ["clinic_id"])
    op.create_index(op.f("ix_doctor_weekly_shifts_doctor_id"), "doctor_weekly_shifts", ["doctor_id"])

    op.create_table(
        "doctor_time_offs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("clinic_id", sa.Integer(), nullable=False),
        sa.Column("doctor_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("type", time_off_type, nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["clinic_id"], ["clinics.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_doctor_time_offs_clinic_id"), "doctor_time_offs", ["clinic_id"])
    op.create_index(op.f("ix_doctor_time_offs_doctor_id"), "doctor_time_offs", ["doctor_id"])
    op.create_index(op.f("ix_doctor_time_offs_start_date"), "doctor_time_offs", ["start_date"])
    op.create_index(op.f("ix_doctor_time_offs_end_date"), "doctor_time_offs", ["end_date"])

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("clinic_id", sa.Integer(), nullable=False),
        sa.Column("doctor_id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=True),
        sa.Column("starts_at", sa.DateTime(), nullable=False),
        sa.Column("ends_at", sa.DateTime(), nullable=False),
        sa.Column("status", appointment_status, nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["clinic_id"], ["clinics.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_clinic_id"), "appointments", ["clinic_id"])
    op.create_index(op.f("ix_appointments_doctor_id"), "appointments", ["doctor_id"])
    op.create_index(op.f("ix_appointments_patient_id"), "appointments", ["patient_id"])
    op.create_index(op.f("ix_appointments_starts_at"), "appointments", ["starts_at"])
    op.create_index(op.f("ix_appointments_status"), "appointments", ["status"])

    op.create_table(
        "slots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("clinic_id", sa.Integer(), nullable=False),
        sa.Column("doctor_id", sa.Integer(), nullable=False),
        sa.Column("slot_date", sa.Date(), nullable=False),
        sa.Column("starts_at", sa.DateTime(), nullable=False),
        sa.Column("ends_at", sa.DateTime(), nullable=False),
        sa.Column("shift_type", shift_type, nullable=False),
        sa.Column("status", slot_status, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["clinic_id"], ["clinics.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("doctor_id", "starts_at", name="uq_slots_doctor_starts_at"),
    )
    op.create_index(op.f("ix_slots_clinic_id"), "slots", ["clinic_id"])
    op.create_index(op.f("ix_slots_doctor_id"), "slots", ["doctor_id"])
    op.create_index(op.f("ix_slots_slot_date"), "slots", ["slot_date"])
    op.create_index(op.f("ix_slots_starts_at"), "slots", ["starts_at"])


def downgrade() -> None:
    op.drop_table("slots")
    op.drop_table("appointments")
    op.drop_table("doctor_time_offs")
    op.drop_table("doctor_weekly_shifts")
    op.drop_table("doctor_shift_templates")
    op.drop_table("patients")
    op.drop_table("doctors")
    op.drop_table("clinics")
    bind = op.get_bind()
    for enum in (slot_status, appointment_status, time_off_type, shift_type):
        enum.drop(bind, checkfirst=True)
