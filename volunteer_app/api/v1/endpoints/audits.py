"""Audit review endpoints."""

from fastapi import APIRouter, Depends, Query, status

from volunteer_app.api.deps import get_audit_service
from volunteer_app.core.security import get_current_actor
from volunteer_app.schemas.audit import (
    ApproveAuditRequest,
    AuditRecordRead,
    AuditRequestResponse,
    AuditResolutionResponse,
    PendingMembershipAuditPage,
    RejectAuditRequest,
)
from volunteer_app.schemas.auth import Actor
from volunteer_app.services.audit_service import AuditService

router: APIRouter = APIRouter()


@router.get("/memberships/pending", response_model=PendingMembershipAuditPage)
def list_pending_membership_audits(
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    actor: Actor = Depends(get_current_actor),
    service: AuditService = Depends(get_audit_service),
) -> PendingMembershipAuditPage:
    return service.list_pending_membership_audits(actor, page=page, page_size=page_size)


@router.post("/verification", response_model=AuditRequestResponse, status_code=status.HTTP_202_ACCEPTED)
def submit_verification(
    actor: Actor = Depends(get_current_actor),
    service: AuditService = Depends(get_audit_service),
) -> AuditRequestResponse:
    return AuditRequestResponse(audit_record_id=service.submit_verification(actor), status="pending")


@router.get("/{record_id}", response_model=AuditRecordRead)
def get_audit_record(
    record_id: int,
    actor: Actor = Depends(get_current_actor),
    service: AuditService = Depends(get_audit_service),
) -> AuditRecordRead:
    return service.get_record(record_id)


@router.post("/{record_id}/approve", response_model=AuditResolutionResponse)
def approve_audit(
    record_id: int,
    payload: ApproveAuditRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    service: AuditService = Depends(get_audit_service),
) -> AuditResolutionResponse:
    reason = payload.reason if payload is not None else None
    return AuditResolutionResponse(target_id=service.approve(actor, record_id, reason))


@router.post("/{record_id}/reject", response_model=AuditResolutionResponse)
def reject_audit(
    record_id: int,
    payload: RejectAuditRequest,
    actor: Actor = Depends(get_current_actor),
    service: AuditService = Depends(get_audit_service),
) -> AuditResolutionResponse:
    service.reject(actor, record_id, payload.reason)
    return AuditResolutionResponse()
