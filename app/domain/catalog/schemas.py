"""Catalog domain schemas - Pydantic models for services, limits and cascade previews"""

import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_service_code


class ServiceCreate(BaseModel):
    """Schema for creating a service"""

    code: str
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=50)
    durationMinutes: int
    bufferMinutes: int = 10
    isActive: bool = True
    displayOrder: int = Field(default=0, ge=0)
    dailyLimitMinutes: Optional[int] = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        return validate_service_code(v)


class ServiceUpdate(BaseModel):
    """Schema for updating a service (all fields optional, code may not change)"""

    code: Optional[str] = None
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=50)
    durationMinutes: Optional[int] = None
    bufferMinutes: Optional[int] = None
    isActive: Optional[bool] = None
    displayOrder: Optional[int] = Field(default=None, ge=0)


class ServiceResponse(BaseModel):
    """Schema for service response"""

    id: int
    code: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    durationMinutes: int
    bufferMinutes: int
    totalMinutes: int
    isActive: bool
    displayOrder: int
    dailyLimitMinutes: Optional[int] = None
    createdAt: Optional[datetime.datetime] = None
    updatedAt: Optional[datetime.datetime] = None


class DailyLimitRequest(BaseModel):
    dailyLimitMinutes: int = Field(gt=0)
    isActive: bool = True


class DailyLimitToggle(BaseModel):
    isActive: bool


class DailyLimitResponse(BaseModel):
    serviceCode: str
    dailyLimitMinutes: int
    isActive: bool


class MaxBookingsChange(BaseModel):
    before: int
    after: int
    direction: Literal["decrease", "increase"]


class CascadePreviewRequest(BaseModel):
    """Proposed new duration; the current catalog duration is used as the old value"""

    newDurationMinutes: int
    oldDurationMinutes: Optional[int] = None


class CascadeEffectResponse(BaseModel):
    serviceCode: str
    oldDurationMinutes: int
    newDurationMinutes: int
    dailyLimitMinutes: Optional[int] = None
    maxBookingsChanged: Optional[MaxBookingsChange] = None
    affectedReservations: int = 0
    warnings: list[str] = []
    computed: bool = True


class ServiceUpdateResponse(BaseModel):
    service: ServiceResponse
    cascade: Optional[CascadeEffectResponse] = None


class DailyUsageDay(BaseModel):
    date: datetime.date
    committedMinutes: int
    remainingMinutes: Optional[int] = None
    utilizationPercent: Optional[float] = None


class DailyUsageResponse(BaseModel):
    serviceCode: str
    dailyLimitMinutes: Optional[int] = None
    days: list[DailyUsageDay]
