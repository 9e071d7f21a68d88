from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from salon_reports.schemas.salon import BookingChannel, PetSize

TimeBasis = Literal["service", "checkout", "transaction"]
DateRangePreset = Literal[
    "today",
    "yesterday",
    "last7",
    "thisWeek",
    "last30",
    "thisMonth",
    "lastMonth",
    "quarter",
    "ytd",
    "custom",
]
TerminalStatus = Literal["completed", "cancelled", "no-show"]


class DateRangeFilter(BaseModel):
    preset: DateRangePreset = "last30"
    start_date: Optional[date] = Field(
        default=None, description="First day of a custom range (inclusive)"
    )
    end_date: Optional[date] = Field(
        default=None, description="Last day of a custom range (inclusive)"
    )


class GlobalFilters(BaseModel):
    """Date range plus opt-in facets; an empty facet never excludes a record."""

    date_range: DateRangeFilter = Field(default_factory=DateRangeFilter)
    time_basis: TimeBasis = "checkout"
    staff_ids: List[str] = Field(default_factory=list)
    service_ids: List[str] = Field(default_factory=list)
    pet_size: List[PetSize] = Field(default_factory=list)
    channel: List[BookingChannel] = Field(default_factory=list)
    appointment_status: List[TerminalStatus] = Field(default_factory=list)
    payment_method: List[str] = Field(default_factory=list)
