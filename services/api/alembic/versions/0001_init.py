from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=False, index=True),
        sa.Column("team_id", sa.String(64), nullable=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(64), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
    )

    op.create_table(
        "residents",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=False, index=True),
        sa.Column("team_id", sa.String(64), nullable=False, index=True),
        sa.Column("first_name", sa.String(128), nullable=False),
        sa.Column("last_name", sa.String(128), nullable=False),
        sa.Column("date_of_birth", sa.String(10), nullable=True),
        sa.Column("room_number", sa.String(32), nullable=True),
        sa.Column("admission_date", sa.String(10), nullable=True),
        sa.Column("status", sa.String(32), nullable=True, index=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
    )

    op.create_table(
        "alerts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("resident_id", sa.String(64), sa.ForeignKey("residents.id", ondelete="CASCADE"), nullable=False),
        sa.Column("organization_id", sa.String(64), nullable=False, index=True),
        sa.Column("team_id", sa.String(64), nullable=False),
        sa.Column("alert_type", sa.String(32), nullable=False),
        sa.Column("severity", sa.String(16), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("time_period", sa.String(16), nullable=True),
        sa.Column("dedupe_key", sa.String(255), nullable=False),
        sa.Column("metadata", sa.Text(), nullable=True),
        sa.Column("is_resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("resolved_at", sa.BigInteger(), nullable=True),
        sa.Column("resolved_by", sa.String(64), nullable=True),
        sa.Column("resolution_note", sa.Text(), nullable=True),
        sa.Column("auto_resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_alerts_resident_type_resolved", "alerts", ["resident_id", "alert_type", "is_resolved"])

    op.create_table(
        "food_fluid_logs",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("resident_id", sa.String(64), sa.ForeignKey("residents.id", ondelete="CASCADE"), nullable=False),
        sa.Column("organization_id", sa.String(64), nullable=False, index=True),
        sa.Column("section", sa.String(16), nullable=False),
        sa.Column("type_of_food_drink", sa.String(255), nullable=False),
        sa.Column("portion_served", sa.String(64), nullable=False),
        sa.Column("amount_eaten", sa.String(16), nullable=False),
        sa.Column("fluid_consumed_ml", sa.Float(), nullable=True),
        sa.Column("signature", sa.String(128), nullable=False),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("logged_at", sa.BigInteger(), nullable=False),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("archived_at", sa.BigInteger(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=True),
    )
    op.create_index("ix_food_fluid_logs_resident_date", "food_fluid_logs", ["resident_id", "date"])

    op.create_table(
        "night_check_configurations",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("resident_id", sa.String(64), sa.ForeignKey("residents.id", ondelete="CASCADE"), nullable=False),
        sa.Column("organization_id", sa.String(64), nullable=False, index=True),
        sa.Column("team_id", sa.String(64), nullable=False),
        sa.Column("check_type", sa.String(32), nullable=False),
        sa.Column("frequency_minutes", sa.Integer(), nullable=True),
        sa.Column("selected_items", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_by", sa.String(64), nullable=True),
        sa.Column("updated_at", sa.BigInteger(), nullable=True),
    )
    op.create_index("ix_night_check_configurations_resident_active", "night_check_configurations", ["resident_id", "is_active"])

    op.create_table(
        "night_check_recordings",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("configuration_id", sa.String(64), sa.ForeignKey("night_check_configurations.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("resident_id", sa.String(64), sa.ForeignKey("residents.id", ondelete="CASCADE"), nullable=False),
        sa.Column("organization_id", sa.String(64), nullable=False, index=True),
        sa.Column("check_type", sa.String(32), nullable=False),
        sa.Column("recorded_at", sa.BigInteger(), nullable=False),
        sa.Column("check_data", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("recorded_by", sa.String(64), nullable=False),
        sa.Column("recorded_by_name", sa.String(255), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
    )

    op.create_table(
        "medications",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("resident_id", sa.String(64), sa.ForeignKey("residents.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("organization_id", sa.String(64), nullable=False, index=True),
        sa.Column("team_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("strength", sa.String(32), nullable=False),
        sa.Column("strength_unit", sa.String(8), nullable=False),
        sa.Column("dosage_form", sa.String(32), nullable=False),
        sa.Column("route", sa.String(32), nullable=False),
        sa.Column("frequency", sa.String(64), nullable=False),
        sa.Column("schedule_type", sa.String(32), nullable=False),
        sa.Column("times", sa.Text(), nullable=False),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.Column("prescriber_name", sa.String(255), nullable=False),
        sa.Column("start_date", sa.String(10), nullable=False),
        sa.Column("end_date", sa.String(10), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
    )

    op.create_table(
        "medication_intakes",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("medication_id", sa.String(64), sa.ForeignKey("medications.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("resident_id", sa.String(64), sa.ForeignKey("residents.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("organization_id", sa.String(64), nullable=False, index=True),
        sa.Column("team_id", sa.String(64), nullable=False),
        sa.Column("scheduled_time", sa.BigInteger(), nullable=False, index=True),
        sa.Column("state", sa.String(16), nullable=False, index=True),
        sa.Column("state_modified_by", sa.String(64), nullable=True),
        sa.Column("state_modified_at", sa.BigInteger(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
        sa.UniqueConstraint("medication_id", "scheduled_time", name="uq_medication_intakes_slot"),
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("time", sa.BigInteger(), nullable=False, index=True),
        sa.Column("organization_id", sa.String(64), nullable=True, index=True),
        sa.Column("actor_user_id", sa.String(64), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("resource", sa.String(128), nullable=False),
        sa.Column("resource_id", sa.String(128), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
    )

def downgrade():
    op.drop_table("audit_log")
    op.drop_table("medication_intakes")
    op.drop_table("medications")
    op.drop_table("night_check_recordings")
    op.drop_table("night_check_configurations")
    op.drop_table("food_fluid_logs")
    op.drop_table("alerts")
    op.drop_table("residents")
    op.drop_table("users")
