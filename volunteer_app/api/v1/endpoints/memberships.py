"""Organization membership request endpoints."""

from fastapi import APIRouter, Depends, status

from volunteer_app.api.deps import get_membership_service
from volunteer_app.core.security import get_current_actor
from volunteer_app.models.membership import MEMBER_PENDING
from volunteer_app.schemas.audit import AuditRequestResponse
from volunteer_app.schemas.auth import Actor
from volunteer_app.services.membership_service import MembershipService

router: APIRouter = APIRouter()


@router.post("/organizations/{org_id}/join", response_model=AuditRequestResponse, status_code=status.HTTP_202_ACCEPTED)
def join_organization(
    org_id: int,
    actor: Actor = Depends(get_current_actor),
    service: MembershipService = Depends(get_membership_service),
) -> AuditRequestResponse:
    return AuditRequestResponse(audit_record_id=service.join_organization(actor, org_id), status=MEMBER_PENDING)


@router.post("/{membership_id}/leave", response_model=AuditRequestResponse, status_code=status.HTTP_202_ACCEPTED)
def leave_organization(
    membership_id: int,
    actor: Actor = Depends(get_current_actor),
    service: MembershipService = Depends(get_membership_service),
) -> AuditRequestResponse:
    return AuditRequestResponse(audit_record_id=service.leave_organization(actor, membership_id), status=MEMBER_PENDING)
