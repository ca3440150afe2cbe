from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from seatkeeper.core.config import HOLD_TTL_MS, SESSION_HOLD_MAX_SEATS
from seatkeeper.core.utils.text_utils import strip_text
from seatkeeper.domain.seating.models import SeatStatus


def _ensure_unique(values: list[str], what: str) -> None:
    seen = set()
    for value in values:
        if value in seen:
            raise ValueError(f"Duplicate {what}: {value}")
        seen.add(value)


class SeatCreateDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    number: str = Field(min_length=1, max_length=16)

    _strip_number = field_validator("number", mode='before')(strip_text)


class TableCreateDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    label: str = Field(min_length=1, max_length=50)
    seats: list[SeatCreateDTO] = Field(min_length=1, max_length=500)

    _strip_label = field_validator("label", mode='before')(strip_text)

    @model_validator(mode='after')
    def _unique_seat_numbers(self):
        _ensure_unique([s.number for s in self.seats], "seat number")
        return self


class SectionCreateDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    key: str = Field(min_length=1, max_length=32)
    name: str = Field(min_length=1, max_length=100)
    tables: list[TableCreateDTO] = Field(default_factory=list)

    _strip_key = field_validator("key", mode='before')(strip_text)
    _strip_name = field_validator("name", mode='before')(strip_text)

    @model_validator(mode='after')
    def _unique_table_labels(self):
        _ensure_unique([t.label for t in self.tables], "table label")
        return self


class SeatingChartCreateDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    event_id: int = Field(gt=0)
    name: str = Field(min_length=2, max_length=100)
    sections: list[SectionCreateDTO] = Field(min_length=1)

    _strip_name = field_validator("name", mode='before')(strip_text)

    @model_validator(mode='after')
    def _unique_section_keys(self):
        _ensure_unique([s.key for s in self.sections], "section key")
        return self


class SeatingChartUpdateDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    name: str = Field(min_length=2, max_length=100)

    _strip_name = field_validator("name", mode='before')(strip_text)


class SeatReadDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra='forbid')

    id: int
    position: int
    number: str
    status: SeatStatus
    session_expiry: int | None = None


class TableReadDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra='forbid')

    id: int
    position: int
    label: str
    seats: list[SeatReadDTO]


class SectionReadDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra='forbid')

    id: int
    position: int
    key: str
    name: str
    tables: list[TableReadDTO]


class SeatingChartSummaryDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra='forbid')

    id: int
    event_id: int
    name: str
    version: int
    total_seats: int
    reserved_seats: int
    sold_seats: int
    available_seats: int
    created_at: datetime
    updated_at: datetime


class SeatingChartReadDTO(SeatingChartSummaryDTO):
    sections: list[SectionReadDTO]


class HoldRequestDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    session_id: str = Field(min_length=8, max_length=128)
    ttl_ms: int | None = Field(default=None, ge=1000, le=HOLD_TTL_MS)

    _strip_session = field_validator("session_id", mode='before')(strip_text)


class SessionRequestDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    session_id: str = Field(min_length=8, max_length=128)

    _strip_session = field_validator("session_id", mode='before')(strip_text)


class SessionHoldRequestDTO(HoldRequestDTO):
    seat_ids: list[int] = Field(min_length=1, max_length=SESSION_HOLD_MAX_SEATS)

    @field_validator("seat_ids")
    @classmethod
    def _positive_unique_ids(cls, v: list[int]) -> list[int]:
        if any(seat_id <= 0 for seat_id in v):
            raise ValueError("Seat ids must be positive")
        if len(set(v)) != len(v):
            raise ValueError("Seat ids must be unique")
        return v


class SessionReleaseRequestDTO(SessionRequestDTO):
    seat_ids: list[int] | None = Field(default=None, min_length=1, max_length=SESSION_HOLD_MAX_SEATS)


class SeatHoldReadDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra='forbid')

    chart_id: int
    seat_id: int = Field(validation_alias='id')
    status: SeatStatus
    session_id: str | None = None
    session_expiry: int | None = None
    version: int


class SessionHoldReadDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    chart_id: int
    session_id: str
    seat_ids: list[int]
    expires_at: int


class SessionReleaseReadDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    chart_id: int
    session_id: str
    released_seats: int


class SweepStatsDTO(BaseModel):
    released_seats: int
    charts_updated: int
    charts_failed: int
