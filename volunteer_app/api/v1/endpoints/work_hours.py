"""Work-hour ledger endpoints."""

from fastapi import APIRouter, Depends, Query

from volunteer_app.api.deps import get_work_hour_service
from volunteer_app.core.security import get_current_actor
from volunteer_app.schemas.auth import Actor
from volunteer_app.schemas.work_hour import (
    ChainVerificationResponse,
    RecalculateWorkHourRequest,
    RecalculateWorkHourResponse,
    VoidWorkHourRequest,
    VoidWorkHourResponse,
    WorkHourLogPage,
)
from volunteer_app.services.security_guards import ensure_organization
from volunteer_app.services.work_hour_service import WorkHourService

router: APIRouter = APIRouter()


@router.post("/signups/{signup_id}/void", response_model=VoidWorkHourResponse)
def void_work_hour(
    signup_id: int,
    payload: VoidWorkHourRequest,
    actor: Actor = Depends(get_current_actor),
    service: WorkHourService = Depends(get_work_hour_service),
) -> VoidWorkHourResponse:
    result = service.void_work_hour(actor, signup_id, payload.reason, payload.idempotency_key)
    return VoidWorkHourResponse(log_id=result.log_id)


@router.post("/signups/{signup_id}/recalculate", response_model=RecalculateWorkHourResponse)
def recalculate_work_hour(
    signup_id: int,
    payload: RecalculateWorkHourRequest,
    actor: Actor = Depends(get_current_actor),
    service: WorkHourService = Depends(get_work_hour_service),
) -> RecalculateWorkHourResponse:
    result = service.recalculate_work_hour(
        actor,
        signup_id,
        payload.reason,
        payload.idempotency_key,
        hours=payload.hours,
    )
    return RecalculateWorkHourResponse(log_id=result.log_id, granted_hours=result.granted_hours)


@router.get("/signups/{signup_id}/verify", response_model=ChainVerificationResponse)
def verify_chain(
    signup_id: int,
    actor: Actor = Depends(get_current_actor),
    service: WorkHourService = Depends(get_work_hour_service),
) -> ChainVerificationResponse:
    ensure_organization(actor)
    return ChainVerificationResponse(signup_id=signup_id, consistent=service.verify_chain(signup_id))


@router.get("/logs", response_model=WorkHourLogPage)
def list_work_hour_logs(
    activity_id: int | None = Query(default=None, ge=1),
    signup_id: int | None = Query(default=None, ge=1),
    operation_type: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    actor: Actor = Depends(get_current_actor),
    service: WorkHourService = Depends(get_work_hour_service),
) -> WorkHourLogPage:
    return service.list_logs(
        actor,
        activity_id=activity_id,
        signup_id=signup_id,
        operation_type=operation_type,
        page=page,
        page_size=page_size,
    )
