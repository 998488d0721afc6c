"""Activity lifecycle, signup and attendance endpoints."""

from fastapi import APIRouter, Depends, status

from volunteer_app.api.deps import get_activity_service, get_signup_service
from volunteer_app.core.security import get_current_actor
from volunteer_app.models.activity import ACTIVITY_CANCELED, ACTIVITY_FINISHED
from volunteer_app.schemas.activity import (
    ActivityStatusResponse,
    CancelResponse,
    CheckInResponse,
    CheckOutResponse,
    CreateActivityRequest,
    CreateActivityResponse,
    SignupResponse,
    SupplementAttendanceRequest,
    SupplementAttendanceResponse,
)
from volunteer_app.schemas.auth import Actor
from volunteer_app.services.activity_service import ActivityService
from volunteer_app.services.signup_service import SignupService

router: APIRouter = APIRouter()


@router.post("", response_model=CreateActivityResponse, status_code=status.HTTP_201_CREATED)
def create_activity(
    payload: CreateActivityRequest,
    actor: Actor = Depends(get_current_actor),
    service: ActivityService = Depends(get_activity_service),
) -> CreateActivityResponse:
    activity_id = service.create_activity(
        actor,
        title=payload.title,
        duration=payload.duration,
        max_people=payload.max_people,
        start_time=payload.start_time,
        end_time=payload.end_time,
    )
    return CreateActivityResponse(id=activity_id)


@router.post("/{activity_id}/cancel", response_model=ActivityStatusResponse)
def cancel_activity(
    activity_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ActivityService = Depends(get_activity_service),
) -> ActivityStatusResponse:
    service.cancel_activity(actor, activity_id)
    return ActivityStatusResponse(id=activity_id, status=ACTIVITY_CANCELED)


@router.post("/{activity_id}/finish", response_model=ActivityStatusResponse)
def finish_activity(
    activity_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ActivityService = Depends(get_activity_service),
) -> ActivityStatusResponse:
    service.finish_activity(actor, activity_id)
    return ActivityStatusResponse(id=activity_id, status=ACTIVITY_FINISHED)


@router.post("/{activity_id}/signup", response_model=SignupResponse, status_code=status.HTTP_202_ACCEPTED)
def signup(
    activity_id: int,
    actor: Actor = Depends(get_current_actor),
    service: SignupService = Depends(get_signup_service),
) -> SignupResponse:
    return SignupResponse(audit_record_id=service.signup(actor, activity_id))


@router.post("/{activity_id}/signup/cancel", response_model=CancelResponse)
def cancel_signup(
    activity_id: int,
    actor: Actor = Depends(get_current_actor),
    service: SignupService = Depends(get_signup_service),
) -> CancelResponse:
    service.cancel(actor, activity_id)
    return CancelResponse()


@router.post("/{activity_id}/check-in", response_model=CheckInResponse)
def check_in(
    activity_id: int,
    actor: Actor = Depends(get_current_actor),
    service: SignupService = Depends(get_signup_service),
) -> CheckInResponse:
    return CheckInResponse(check_in_time=service.check_in(actor, activity_id))


@router.post("/{activity_id}/check-out", response_model=CheckOutResponse)
def check_out(
    activity_id: int,
    actor: Actor = Depends(get_current_actor),
    service: SignupService = Depends(get_signup_service),
) -> CheckOutResponse:
    result = service.check_out(actor, activity_id)
    return CheckOutResponse(check_out_time=result.check_out_time, granted_hours=result.granted_hours)


@router.post("/{activity_id}/attendance", response_model=SupplementAttendanceResponse)
def supplement_attendance(
    activity_id: int,
    payload: SupplementAttendanceRequest,
    actor: Actor = Depends(get_current_actor),
    service: SignupService = Depends(get_signup_service),
) -> SupplementAttendanceResponse:
    result = service.supplement_attendance(
        actor,
        activity_id,
        payload.volunteer_id,
        payload.check_out_time,
        check_in_time=payload.check_in_time,
        reason=payload.reason,
    )
    return SupplementAttendanceResponse(
        check_in_time=result.check_in_time,
        check_out_time=result.check_out_time,
        granted_hours=result.granted_hours,
    )
