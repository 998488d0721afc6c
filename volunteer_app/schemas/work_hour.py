"""Work-hour ledger schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class VoidWorkHourRequest(BaseModel):
    reason: str
    idempotency_key: str


class VoidWorkHourResponse(BaseModel):
    log_id: int


class RecalculateWorkHourRequest(BaseModel):
    reason: str
    idempotency_key: str
    hours: Decimal | None = Field(default=None, ge=0)


class RecalculateWorkHourResponse(BaseModel):
    log_id: int | None
    granted_hours: Decimal


class WorkHourLogRead(BaseModel):
    """Serialized ledger entry."""

    id: int
    volunteer_id: int
    activity_id: int
    signup_id: int
    operation_type: str
    hours_delta: Decimal
    service_count_delta: int
    before_total_hours: Decimal
    after_total_hours: Decimal
    before_service_count: int
    after_service_count: int
    work_hour_version: int
    ref_log_id: int | None
    reason: str
    operator_id: int
    idempotency_key: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WorkHourLogPage(BaseModel):
    total: int
    items: list[WorkHourLogRead]


class ChainVerificationResponse(BaseModel):
    signup_id: int
    consistent: bool
