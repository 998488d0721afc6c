"""Audit workflow schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ApproveAuditRequest(BaseModel):
    reason: str | None = None


class RejectAuditRequest(BaseModel):
    reason: str


class AuditResolutionResponse(BaseModel):
    ok: bool = True
    target_id: int | None = None


class AuditRecordRead(BaseModel):
    """Serialized audit record."""

    id: int
    target_type: str
    target_id: int
    operation_type: str
    creator_id: int
    auditor_id: int | None
    old_content: str
    new_content: str
    status: str
    audit_result: str | None
    reject_reason: str | None
    audit_time: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PendingMembershipAuditItem(BaseModel):
    """Join request rendered from the record's membership snapshot."""

    record_id: int
    status: str
    volunteer_id: int
    volunteer_name: str
    org_id: int
    org_name: str
    created_at: datetime


class PendingMembershipAuditPage(BaseModel):
    total: int
    items: list[PendingMembershipAuditItem]


class AuditRequestResponse(BaseModel):
    """Acknowledgement of a request filed for review."""

    audit_record_id: int
    status: str
