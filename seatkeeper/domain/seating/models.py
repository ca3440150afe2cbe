from seatkeeper.core.database import Base
from enum import Enum
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Identity, Text, ForeignKey, Integer, BigInteger, TIMESTAMP, func, text, \
    Enum as SQLEnum, UniqueConstraint, CheckConstraint, Index


class SeatStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    SOLD = "SOLD"


class SeatingChart(Base):
    __tablename__ = "seating_charts"

    id: Mapped[int] = mapped_column(Identity(always=True), primary_key=True)
    event_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    reserved_seats: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    sold_seats: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    sections: Mapped[list["ChartSection"]] = relationship(
        back_populates="chart",
        lazy="selectin",
        order_by="ChartSection.position",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint("reserved_seats >= 0", name="chk_chart_reserved_nonneg"),
        CheckConstraint("sold_seats >= 0", name="chk_chart_sold_nonneg"),
        CheckConstraint("reserved_seats + sold_seats <= total_seats", name="chk_chart_counts_within_total"),
    )

    @property
    def available_seats(self) -> int:
        return self.total_seats - self.reserved_seats - self.sold_seats


class ChartSection(Base):
    __tablename__ = "chart_sections"

    id: Mapped[int] = mapped_column(Identity(always=True), primary_key=True)
    chart_id: Mapped[int] = mapped_column(ForeignKey("seating_charts.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    key: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)

    chart: Mapped["SeatingChart"] = relationship(back_populates="sections", lazy="noload")
    tables: Mapped[list["ChartTable"]] = relationship(
        back_populates="section",
        lazy="selectin",
        order_by="ChartTable.position",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        UniqueConstraint("chart_id", "position", name="uq_chart_section_position"),
        UniqueConstraint("chart_id", "key", name="uq_chart_section_key"),
    )


class ChartTable(Base):
    __tablename__ = "chart_tables"

    id: Mapped[int] = mapped_column(Identity(always=True), primary_key=True)
    section_id: Mapped[int] = mapped_column(ForeignKey("chart_sections.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    label: Mapped[str] = mapped_column(Text, nullable=False)

    section: Mapped["ChartSection"] = relationship(back_populates="tables", lazy="noload")
    seats: Mapped[list["Seat"]] = relationship(
        lazy="selectin",
        order_by="Seat.position",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        UniqueConstraint("section_id", "position", name="uq_chart_table_position"),
        UniqueConstraint("section_id", "label", name="uq_chart_table_label"),
    )


class Seat(Base):
    __tablename__ = "chart_seats"

    id: Mapped[int] = mapped_column(Identity(always=True), primary_key=True)
    # seats carry no back-reference to their table/chart objects; chart_id is kept for per-chart sweeps
    chart_id: Mapped[int] = mapped_column(ForeignKey("seating_charts.id", ondelete="CASCADE"), nullable=False,
                                          index=True)
    table_id: Mapped[int] = mapped_column(ForeignKey("chart_tables.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    number: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[SeatStatus] = mapped_column(SQLEnum(SeatStatus, name="seat_status"), nullable=False,
                                               server_default=SeatStatus.AVAILABLE.value)
    session_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    session_expiry: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        UniqueConstraint("table_id", "position", name="uq_chart_seat_position"),
        UniqueConstraint("table_id", "number", name="uq_chart_seat_number"),
        CheckConstraint(
            "(status = 'RESERVED' AND session_id IS NOT NULL AND session_expiry IS NOT NULL) OR "
            "(status <> 'RESERVED' AND session_id IS NULL AND session_expiry IS NULL)",
            name="chk_seat_hold_fields"
        ),
        Index(
            "ix_chart_seats_hold_expiry",
            "session_expiry",
            "chart_id",
            postgresql_where=text("status = 'RESERVED'")
        ),
        Index("ix_chart_seats_session", "chart_id", "session_id", postgresql_where=text("session_id IS NOT NULL")),
    )
