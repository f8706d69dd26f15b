"""Scheduling domain schemas - slots and manual closures"""

import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_hhmm

PeriodLiteral = Literal["MORNING", "AFTERNOON", "EVENING"]


class SlotResponse(BaseModel):
    date: datetime.date
    serviceCode: str
    period: PeriodLiteral
    start: str
    end: str
    available: bool
    unavailableReason: Optional[str] = None


class SlotsMetadataResponse(BaseModel):
    date: datetime.date
    serviceCode: str
    serviceName: str
    durationMinutes: int
    totalMinutes: int
    granularityMinutes: int
    dailyLimitMinutes: Optional[int] = None
    committedMinutes: int
    remainingMinutes: Optional[int] = None
    totalSlots: int
    availableSlots: int
    bookedSlots: int


class SlotsResponse(BaseModel):
    """Chronological slots plus the same slots grouped by period"""

    slots: list[SlotResponse]
    byPeriod: dict[str, list[SlotResponse]]
    metadata: SlotsMetadataResponse


class ClosureCreate(BaseModel):
    """Schema for closing a date, a period or a single slot"""

    closureDate: datetime.date
    period: Optional[PeriodLiteral] = None
    slotStart: Optional[str] = None
    serviceCode: Optional[str] = None
    reason: Optional[str] = Field(default=None, max_length=500)

    @field_validator("slotStart")
    @classmethod
    def validate_slot_start(cls, v):
        if v:
            return validate_hhmm(v)
        return v


class ClosureResponse(BaseModel):
    id: int
    closureDate: datetime.date
    period: Optional[str] = None
    slotStart: Optional[str] = None
    serviceCode: Optional[str] = None
    reason: Optional[str] = None
    createdBy: Optional[str] = None
    isActive: bool
    createdAt: Optional[datetime.datetime] = None


class ClosureConflict(BaseModel):
    reservationId: int
    serviceCode: str
    patientName: str
    slotStart: str
    period: str
    status: str


class ClosureConflictResponse(BaseModel):
    hasConflict: bool
    conflictCount: int
    conflicts: list[ClosureConflict]
    recommendation: str


class DayAvailabilityResponse(BaseModel):
    date: datetime.date
    status: Literal["available", "full", "closed"]
    totalSlots: int
    availableSlots: int
    bookedSlots: int
    availableStarts: list[str]


class MonthSummary(BaseModel):
    totalDays: int
    availableDays: int
    fullDays: int
    closedDays: int


class MonthAvailabilityResponse(BaseModel):
    """Calendar view of one month, keyed by ISO date"""

    serviceCode: str
    year: int
    month: int
    availability: dict[str, DayAvailabilityResponse]
    summary: MonthSummary


class OpeningWindow(BaseModel):
    period: PeriodLiteral
    startTime: str
    endTime: str

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_time(cls, v):
        return validate_hhmm(v)


class OpeningWindowResponse(BaseModel):
    period: PeriodLiteral
    startTime: str
    endTime: str


class WeekdayHoursUpdate(BaseModel):
    """Replace one weekday's opening windows, clinic-wide or for one service"""

    serviceCode: Optional[str] = None
    windows: list[OpeningWindow]


class WeekdayHoursResponse(BaseModel):
    weekday: str
    source: Literal["service", "clinic", "default"]
    closed: bool
    windows: list[OpeningWindowResponse]


class OpeningHoursResponse(BaseModel):
    serviceCode: Optional[str] = None
    weekdays: list[WeekdayHoursResponse]


class OpeningHoursClearResponse(BaseModel):
    weekday: str
    serviceCode: Optional[str] = None
    removedWindows: int
