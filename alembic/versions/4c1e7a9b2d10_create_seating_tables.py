"""create seating tables

Revision ID: 4c1e7a9b2d10
Revises:
Create Date: 2026-10-17 10:12:41.208113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4c1e7a9b2d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

seat_status = sa.Enum("AVAILABLE", "RESERVED", "SOLD", name="seat_status")


def upgrade() -> None:
    op.create_table(
        "seating_charts",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_seats", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reserved_seats", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sold_seats", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("reserved_seats >= 0", name="chk_chart_reserved_nonneg"),
        sa.CheckConstraint("sold_seats >= 0", name="chk_chart_sold_nonneg"),
        sa.CheckConstraint("reserved_seats + sold_seats <= total_seats", name="chk_chart_counts_within_total"),
    )
    op.create_index("ix_seating_charts_event_id", "seating_charts", ["event_id"], unique=True)

    op.create_table(
        "chart_sections",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("chart_id", sa.Integer(), sa.ForeignKey("seating_charts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("key", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.UniqueConstraint("chart_id", "position", name="uq_chart_section_position"),
        sa.UniqueConstraint("chart_id", "key", name="uq_chart_section_key"),
    )

    op.create_table(
        "chart_tables",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("chart_sections.id", ondelete="CASCADE"),
                  nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("label", sa.Text(), nullable=False),
        sa.UniqueConstraint("section_id", "position", name="uq_chart_table_position"),
        sa.UniqueConstraint("section_id", "label", name="uq_chart_table_label"),
    )

    op.create_table(
        "chart_seats",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("chart_id", sa.Integer(), sa.ForeignKey("seating_charts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("table_id", sa.Integer(), sa.ForeignKey("chart_tables.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("number", sa.Text(), nullable=False),
        sa.Column("status", seat_status, nullable=False, server_default="AVAILABLE"),
        sa.Column("session_id", sa.Text(), nullable=True),
        sa.Column("session_expiry", sa.BigInteger(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("table_id", "position", name="uq_chart_seat_position"),
        sa.UniqueConstraint("table_id", "number", name="uq_chart_seat_number"),
        sa.CheckConstraint(
            "(status = 'RESERVED' AND session_id IS NOT NULL AND session_expiry IS NOT NULL) OR "
            "(status <> 'RESERVED' AND session_id IS NULL AND session_expiry IS NULL)",
            name="chk_seat_hold_fields"
        ),
    )
    op.create_index("ix_chart_seats_chart_id", "chart_seats", ["chart_id"])
    op.create_index(
        "ix_chart_seats_hold_expiry",
        "chart_seats",
        ["session_expiry", "chart_id"],
        postgresql_where=sa.text("status = 'RESERVED'")
    )
    op.create_index(
        "ix_chart_seats_session",
        "chart_seats",
        ["chart_id", "session_id"],
        postgresql_where=sa.text("session_id IS NOT NULL")
    )


def downgrade() -> None:
    op.drop_table("chart_seats")
    op.drop_table("chart_tables")
    op.drop_table("chart_sections")
    op.drop_table("seating_charts")
    seat_status.drop(op.get_bind(), checkfirst=True)
