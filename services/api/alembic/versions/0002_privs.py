from __future__ import annotations
from alembic import op

revision = "0002_privs"
down_revision = "0001_init"
branch_labels = None
depends_on = None

def upgrade():
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("""
DO $$
BEGIN
  IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname='careo_app') THEN
    CREATE ROLE careo_app;
  END IF;
  IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname='careo_readonly') THEN
    CREATE ROLE careo_readonly;
  END IF;
  IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname='careo_migrator') THEN
    CREATE ROLE careo_migrator;
  END IF;
END $$;
""")

    # App role: CRUD on care records; the audit log is append-only.
    op.execute("GRANT SELECT, INSERT, UPDATE, DELETE ON users, residents, alerts, food_fluid_logs, "
               "night_check_configurations, night_check_recordings, medications, medication_intakes TO careo_app;")
    op.execute("GRANT SELECT, INSERT ON audit_log TO careo_app;")
    op.execute("GRANT USAGE, SELECT ON ALL SEQUENCES IN SCHEMA public TO careo_app;")

    op.execute("GRANT SELECT ON ALL TABLES IN SCHEMA public TO careo_readonly;")

    op.execute("GRANT ALL PRIVILEGES ON ALL TABLES IN SCHEMA public TO careo_migrator;")
    op.execute("GRANT ALL PRIVILEGES ON ALL SEQUENCES IN SCHEMA public TO careo_migrator;")

def downgrade():
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("REVOKE ALL ON ALL TABLES IN SCHEMA public FROM careo_app, careo_readonly, careo_migrator;")
    op.execute("REVOKE ALL ON ALL SEQUENCES IN SCHEMA public FROM careo_app, careo_migrator;")
