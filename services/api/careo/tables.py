from __future__ import annotations

import sqlalchemy as sa

# Timestamps are epoch milliseconds; days are YYYY-MM-DD in the care-home timezone.
metadata = sa.MetaData()

users = sa.Table(
    "users", metadata,
    sa.Column("id", sa.String(64), primary_key=True),
    sa.Column("organization_id", sa.String(64), nullable=False, index=True),
    sa.Column("team_id", sa.String(64), nullable=True),
    sa.Column("email", sa.String(255), nullable=False, unique=True),
    sa.Column("password_hash", sa.String(255), nullable=False),
    sa.Column("role", sa.String(64), nullable=False),
    sa.Column("created_at", sa.BigInteger(), nullable=False),
)

residents = sa.Table(
    "residents", metadata,
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

alerts = sa.Table(
    "alerts", metadata,
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
    sa.Index("ix_alerts_resident_type_resolved", "resident_id", "alert_type", "is_resolved"),
)

food_fluid_logs = sa.Table(
    "food_fluid_logs", metadata,
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
    sa.Index("ix_food_fluid_logs_resident_date", "resident_id", "date"),
)

night_check_configurations = sa.Table(
    "night_check_configurations", metadata,
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
    sa.Index("ix_night_check_configurations_resident_active", "resident_id", "is_active"),
)

night_check_recordings = sa.Table(
    "night_check_recordings", metadata,
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

medications = sa.Table(
    "medications", metadata,
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

medication_intakes = sa.Table(
    "medication_intakes", metadata,
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

audit_log = sa.Table(
    "audit_log", metadata,
    sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
    sa.Column("time", sa.BigInteger(), nullable=False, index=True),
    sa.Column("organization_id", sa.String(64), nullable=True, index=True),
    sa.Column("actor_user_id", sa.String(64), nullable=True),
    sa.Column("action", sa.String(128), nullable=False),
    sa.Column("resource", sa.String(128), nullable=False),
    sa.Column("resource_id", sa.String(128), nullable=True),
    sa.Column("detail", sa.Text(), nullable=True),
)
