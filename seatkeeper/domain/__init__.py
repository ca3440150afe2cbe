from .seating.models import SeatingChart, ChartSection, ChartTable, Seat, SeatStatus

__all__ = ("SeatingChart", "ChartSection", "ChartTable", "Seat", "SeatStatus")
