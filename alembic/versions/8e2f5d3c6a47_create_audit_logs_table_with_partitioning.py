"""create audit_logs table with partitioning

Revision ID: 8e2f5d3c6a47
Revises: 4c1e7a9b2d10
Create Date: 2026-10-17 10:31:05.774019
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa  # noqa


# revision identifiers, used by Alembic.
revision: str = "8e2f5d3c6a47"
down_revision: Union[str, Sequence[str], None] = "4c1e7a9b2d10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONTHS = ("2026_10", "2026_11", "2026_12", "2027_01")


def _bounds(month: str) -> tuple[str, str]:
    year, mon = (int(p) for p in month.split("_"))
    nxt_year, nxt_mon = (year + 1, 1) if mon == 12 else (year, mon + 1)
    return f"{year:04d}-{mon:02d}-01", f"{nxt_year:04d}-{nxt_mon:02d}-01"


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS audit")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS audit.audit_logs(
            id BIGINT GENERATED ALWAYS AS IDENTITY,
            ts_utc timestamptz NOT NULL DEFAULT now(),
            request_id text,
            scope text NOT NULL,
            action text NOT NULL,
            actor text,
            actor_roles text[] NOT NULL DEFAULT '{}',
            actor_ip inet,
            route text,
            object_type text,
            object_id bigint,
            chart_id bigint,
            session_id text,
            status text NOT NULL,
            reason text,
            meta jsonb NOT NULL DEFAULT '{}'::jsonb,
            CONSTRAINT chk_audit_status CHECK (status IN ('SUCCESS','FAIL')),
            PRIMARY KEY (ts_utc, id)
        ) PARTITION BY RANGE (ts_utc)
        """
    )

    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_ts ON audit.audit_logs (ts_utc DESC)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_action_ts ON audit.audit_logs (action, ts_utc DESC)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_obj ON audit.audit_logs (object_type, object_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_chart ON audit.audit_logs (chart_id, ts_utc DESC)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_session ON audit.audit_logs (session_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_meta_gin ON audit.audit_logs USING gin (meta jsonb_path_ops)")

    for month in MONTHS:
        lower, upper = _bounds(month)
        op.execute(
            f"""
            CREATE TABLE IF NOT EXISTS audit.audit_logs_{month}
              PARTITION OF audit.audit_logs
              FOR VALUES FROM (TIMESTAMPTZ '{lower} 00:00:00+00') TO (TIMESTAMPTZ '{upper} 00:00:00+00')
            """
        )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS audit.audit_logs_default
          PARTITION OF audit.audit_logs DEFAULT
        """
    )


def downgrade() -> None:
    op.execute("DROP SCHEMA IF EXISTS audit CASCADE")
