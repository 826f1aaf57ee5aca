"""Lesson booking schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


student_plan_enum = sa.Enum("A", "B", "C1", "C2", name="student_plan_enum", native_enum=False)
credit_tier_enum = sa.Enum("lite", "pro", name="credit_tier_enum", native_enum=False)
lesson_type_enum = sa.Enum("standard", "retention", "first_time_free", name="lesson_type_enum", native_enum=False)
booking_payment_status_enum = sa.Enum("pending", "paid", name="booking_payment_status_enum", native_enum=False)
funding_source_enum = sa.Enum(
    "paid",
    "retention",
    "first_time",
    "included_lite",
    "included_pro",
    name="funding_source_enum",
    native_enum=False,
)
booking_status_enum = sa.Enum("scheduled", "cancelled", name="booking_status_enum", native_enum=False)
refund_status_enum = sa.Enum("none", "pending", name="refund_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


LEDGER_FUNCTIONS = (
    """
    CREATE OR REPLACE FUNCTION get_available_credits(p_student_id uuid) RETURNS integer
    LANGUAGE sql STABLE AS $$
        SELECT COALESCE(SUM(credits_remaining), 0)::integer
        FROM lesson_credits
        WHERE student_id = p_student_id
    $$
    """,
    """
    CREATE OR REPLACE FUNCTION is_eligible_for_consultation(p_student_id uuid) RETURNS boolean
    LANGUAGE sql STABLE AS $$
        SELECT NOT EXISTS (
            SELECT 1 FROM first_time_consultations
            WHERE student_id = p_student_id AND claimed
        )
    $$
    """,
    """
    CREATE OR REPLACE FUNCTION use_lesson_credit(p_student_id uuid) RETURNS void
    LANGUAGE plpgsql AS $$
    DECLARE
        v_credit_id uuid;
    BEGIN
        SELECT id INTO v_credit_id
        FROM lesson_credits
        WHERE student_id = p_student_id AND credits_remaining > 0
        ORDER BY created_at
        LIMIT 1
        FOR UPDATE;

        IF v_credit_id IS NULL THEN
            RAISE EXCEPTION 'no lesson credits left for student %', p_student_id;
        END IF;

        UPDATE lesson_credits
        SET credits_remaining = credits_remaining - 1,
            credits_used = credits_used + 1,
            updated_at = now()
        WHERE id = v_credit_id;
    END
    $$
    """,
    """
    CREATE OR REPLACE FUNCTION restore_lesson_credit(p_student_id uuid) RETURNS void
    LANGUAGE plpgsql AS $$
    DECLARE
        v_credit_id uuid;
    BEGIN
        SELECT id INTO v_credit_id
        FROM lesson_credits
        WHERE student_id = p_student_id AND credits_used > 0
        ORDER BY created_at DESC
        LIMIT 1
        FOR UPDATE;

        IF v_credit_id IS NULL THEN
            RETURN;
        END IF;

        UPDATE lesson_credits
        SET credits_remaining = credits_remaining + 1,
            credits_used = credits_used - 1,
            updated_at = now()
        WHERE id = v_credit_id;
    END
    $$
    """,
)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "students",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("romaji_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("plan", student_plan_enum, nullable=True),
        sa.Column("line_user_id", sa.String(length=64), nullable=True),
    )
    op.create_index("ix_students_email", "students", ["email"], unique=False)

    op.create_table(
        "teacher_availability",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_teacher_availability_day_of_week_range"),
        sa.CheckConstraint("end_time > start_time", name="ck_teacher_availability_window_order"),
    )
    op.create_index("ix_teacher_availability_day_of_week", "teacher_availability", ["day_of_week"], unique=False)

    op.create_table(
        "lesson_bookings",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("lesson_type", lesson_type_enum, nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("payment_status", booking_payment_status_enum, nullable=False),
        sa.Column("funding_source", funding_source_enum, nullable=False),
        sa.Column("google_calendar_event_id", sa.String(length=255), nullable=True),
        sa.Column("google_meet_link", sa.String(length=512), nullable=True),
        sa.Column("status", booking_status_enum, nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=512), nullable=True),
        sa.Column("refund_status", refund_status_enum, nullable=True),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["students.id"],
            name="fk_lesson_bookings_student_id_students",
            ondelete="RESTRICT",
        ),
        sa.CheckConstraint("price >= 0", name="ck_lesson_bookings_price_non_negative"),
        sa.CheckConstraint("ends_at > scheduled_at", name="ck_lesson_bookings_interval_order"),
        sa.CheckConstraint(
            "(price > 0 AND payment_status = 'pending') OR (price = 0 AND payment_status = 'paid')",
            name="ck_lesson_bookings_payment_matches_price",
        ),
    )
    op.create_index("ix_lesson_bookings_student_id", "lesson_bookings", ["student_id"], unique=False)
    op.create_index("ix_lesson_bookings_user_id", "lesson_bookings", ["user_id"], unique=False)
    op.create_index("ix_lesson_bookings_scheduled_at", "lesson_bookings", ["scheduled_at"], unique=False)
    op.create_index("ix_lesson_bookings_status", "lesson_bookings", ["status"], unique=False)
    op.execute(
        "ALTER TABLE lesson_bookings ADD CONSTRAINT ex_lesson_bookings_no_overlap "
        "EXCLUDE USING gist (tstzrange(scheduled_at, ends_at, '[)') WITH &&) "
        "WHERE (status = 'scheduled')",
    )

    op.create_table(
        "lesson_credits",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tier", credit_tier_enum, nullable=False),
        sa.Column("credits_remaining", sa.Integer(), nullable=False),
        sa.Column("credits_used", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["students.id"],
            name="fk_lesson_credits_student_id_students",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint("credits_remaining >= 0", name="ck_lesson_credits_credits_non_negative"),
    )
    op.create_index("ix_lesson_credits_student_id", "lesson_credits", ["student_id"], unique=False)

    op.create_table(
        "first_time_consultations",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("claimed", sa.Boolean(), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["students.id"],
            name="fk_first_time_consultations_student_id_students",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["booking_id"],
            ["lesson_bookings.id"],
            name="fk_first_time_consultations_booking_id_lesson_bookings",
            ondelete="SET NULL",
        ),
        sa.UniqueConstraint("student_id", name="uq_first_time_consultations_student_id"),
    )

    for statement in LEDGER_FUNCTIONS:
        op.execute(statement)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS restore_lesson_credit(uuid)")
    op.execute("DROP FUNCTION IF EXISTS use_lesson_credit(uuid)")
    op.execute("DROP FUNCTION IF EXISTS is_eligible_for_consultation(uuid)")
    op.execute("DROP FUNCTION IF EXISTS get_available_credits(uuid)")

    op.drop_table("first_time_consultations")

    op.drop_index("ix_lesson_credits_student_id", table_name="lesson_credits")
    op.drop_table("lesson_credits")

    op.execute("ALTER TABLE lesson_bookings DROP CONSTRAINT IF EXISTS ex_lesson_bookings_no_overlap")
    op.drop_index("ix_lesson_bookings_status", table_name="lesson_bookings")
    op.drop_index("ix_lesson_bookings_scheduled_at", table_name="lesson_bookings")
    op.drop_index("ix_lesson_bookings_user_id", table_name="lesson_bookings")
    op.drop_index("ix_lesson_bookings_student_id", table_name="lesson_bookings")
    op.drop_table("lesson_bookings")

    op.drop_index("ix_teacher_availability_day_of_week", table_name="teacher_availability")
    op.drop_table("teacher_availability")

    op.drop_index("ix_students_email", table_name="students")
    op.drop_table("students")
