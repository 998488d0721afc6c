"""API v1 router composition."""

from fastapi import APIRouter

from volunteer_app.api.v1.endpoints import activities, audits, memberships, work_hours

api_router: APIRouter = APIRouter()
api_router.include_router(activities.router, prefix="/activities", tags=["activities"])
api_router.include_router(audits.router, prefix="/audits", tags=["audits"])
api_router.include_router(work_hours.router, prefix="/work-hours", tags=["work-hours"])
api_router.include_router(memberships.router, prefix="/memberships", tags=["memberships"])
