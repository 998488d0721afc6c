"""Activity lifecycle, signup and attendance schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class SignupResponse(BaseModel):
    accepted: bool = True
    audit_record_id: int


class CancelResponse(BaseModel):
    ok: bool = True


class CheckInResponse(BaseModel):
    check_in_time: datetime


class CheckOutResponse(BaseModel):
    check_out_time: datetime
    granted_hours: Decimal


class SupplementAttendanceRequest(BaseModel):
    """Organization backfill of a missing check-in/check-out pair."""

    volunteer_id: int = Field(gt=0)
    check_out_time: datetime
    check_in_time: datetime | None = None
    reason: str | None = None


class SupplementAttendanceResponse(BaseModel):
    check_in_time: datetime
    check_out_time: datetime
    granted_hours: Decimal


class CreateActivityRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    duration: Decimal = Field(ge=0)
    max_people: int = Field(default=0, ge=0)
    start_time: datetime
    end_time: datetime


class CreateActivityResponse(BaseModel):
    id: int


class ActivityStatusResponse(BaseModel):
    id: int
    status: str
