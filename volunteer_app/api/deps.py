"""Service wiring for API endpoints."""

from fastapi import Depends

from volunteer_app.db import session as db_session
from volunteer_app.db.transaction import TransactionRunner
from volunteer_app.services.activity_service import ActivityService
from volunteer_app.services.audit_service import AuditService
from volunteer_app.services.membership_service import MembershipService
from volunteer_app.services.signup_service import SignupService
from volunteer_app.services.work_hour_service import WorkHourService


def get_runner() -> TransactionRunner:
    return TransactionRunner(db_session.SessionLocal)


def get_work_hour_service(runner: TransactionRunner = Depends(get_runner)) -> WorkHourService:
    return WorkHourService(runner)


def get_signup_service(
    runner: TransactionRunner = Depends(get_runner),
    ledger: WorkHourService = Depends(get_work_hour_service),
) -> SignupService:
    return SignupService(runner, ledger)


def get_audit_service(runner: TransactionRunner = Depends(get_runner)) -> AuditService:
    return AuditService(runner)


def get_activity_service(runner: TransactionRunner = Depends(get_runner)) -> ActivityService:
    return ActivityService(runner)


def get_membership_service(runner: TransactionRunner = Depends(get_runner)) -> MembershipService:
    return MembershipService(runner)
