"""Reservation domain schemas - Pydantic models for validation"""

import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email, validate_hhmm, validate_phone

StatusLiteral = Literal["PENDING", "CONFIRMED", "COMPLETED", "CANCELLED", "NO_SHOW"]


class PatientInfo(BaseModel):
    """Patient identity fields; opaque to the scheduling engine"""

    name: str = Field(min_length=1, max_length=100)
    phone: str
    email: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_phone(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if v:
            return validate_email(v)
        return v


class ReservationCreate(BaseModel):
    """Schema for a booking request"""

    serviceCode: str
    date: datetime.date
    slotStart: str
    patient: PatientInfo

    @field_validator("slotStart")
    @classmethod
    def validate_slot_start(cls, v):
        return validate_hhmm(v)


class ReservationUpdate(BaseModel):
    """Schema for a status transition and/or field edits"""

    status: Optional[StatusLiteral] = None
    cancelReason: Optional[str] = Field(default=None, max_length=500)
    patientName: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    adminNotes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_phone(v)
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if v:
            return validate_email(v)
        return v


class RescheduleRequest(BaseModel):
    """Schema for moving a live reservation to another slot"""

    date: datetime.date
    slotStart: str

    @field_validator("slotStart")
    @classmethod
    def validate_slot_start(cls, v):
        return validate_hhmm(v)


class ReservationResponse(BaseModel):
    """Schema for reservation response"""

    id: int
    publicId: str
    serviceCode: str
    serviceName: Optional[str] = None
    date: datetime.date
    slotStart: str
    slotEnd: str
    period: str
    durationMinutes: int
    bufferMinutes: int
    status: StatusLiteral
    patientName: str
    phone: str
    email: Optional[str] = None
    notes: Optional[str] = None
    adminNotes: Optional[str] = None
    cancelReason: Optional[str] = None
    createdAt: Optional[datetime.datetime] = None
    updatedAt: Optional[datetime.datetime] = None
    statusChangedAt: Optional[datetime.datetime] = None


class ReservationListResponse(BaseModel):
    reservations: list[ReservationResponse]
    total: int
    limit: int
    offset: int


class PatientReservationResponse(BaseModel):
    """What a patient sees of their own booking; staff-only fields are left out"""

    id: int
    publicId: str
    serviceCode: str
    serviceName: Optional[str] = None
    date: datetime.date
    slotStart: str
    slotEnd: str
    period: str
    status: StatusLiteral
    patientName: str
    phone: str
    notes: Optional[str] = None
    cancelReason: Optional[str] = None
    createdAt: Optional[datetime.datetime] = None


class PhoneLookupResponse(BaseModel):
    reservations: list[PatientReservationResponse]
    count: int
