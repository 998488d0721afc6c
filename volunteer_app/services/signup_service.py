"""Activity signup state machine: signup, cancel and attendance."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from volunteer_app.core.errors import (
    ChainBrokenError,
    DuplicateSignupError,
    InvalidInputError,
    NotFoundError,
    StateConflictError,
)
from volunteer_app.db.transaction import TransactionRunner, is_duplicate_key_error
from volunteer_app.models import ActivitySignup
from volunteer_app.models.activity import (
    ACTIVE_SIGNUP_STATUSES,
    ACTIVITY_CANCELED,
    ACTIVITY_RECRUITING,
    CHECK_DONE,
    SIGNUP_CANCELED,
    SIGNUP_PENDING,
    SIGNUP_SUCCESS,
)
from volunteer_app.models.audit_record import OPERATION_CREATE, TARGET_ACTIVITY_SIGNUP, signup_subject_key
from volunteer_app.schemas.auth import Actor
from volunteer_app.schemas.snapshots import SignupSnapshot, dump_snapshot, parse_snapshot
from volunteer_app.services.activity_capacity import decrement_activity_people
from volunteer_app.services.audit_service import create_pending_record, find_pending_records
from volunteer_app.services.security_guards import ensure_activity_owned_by, get_activity, get_volunteer_for_actor
from volunteer_app.services.work_hour_service import (
    WorkHourService,
    checkout_idempotency_key,
    supplement_idempotency_key,
)
from volunteer_app.utils.hours import calc_granted_hours
from volunteer_app.utils.time import Clock, as_utc, utc_now

logger = logging.getLogger(__name__)

CHECKOUT_REASON = "automatic settlement on check-out"
SUPPLEMENT_REASON = "organization supplemented attendance"


@dataclass(frozen=True)
class AttendanceResult:
    check_in_time: datetime
    check_out_time: datetime
    granted_hours: Decimal


def _lock_signup_for(db: Session, activity_id: int, volunteer_id: int) -> ActivitySignup | None:
    return db.scalar(
        select(ActivitySignup)
        .where(ActivitySignup.activity_id == activity_id, ActivitySignup.volunteer_id == volunteer_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def _settled_result(signup: ActivitySignup) -> AttendanceResult:
    return AttendanceResult(
        check_in_time=as_utc(signup.check_in_time),
        check_out_time=as_utc(signup.check_out_time),
        granted_hours=signup.granted_hours,
    )


class SignupService:
    """Volunteer-facing signup lifecycle plus organization attendance backfill."""

    def __init__(self, runner: TransactionRunner, ledger: WorkHourService, *, clock: Clock = utc_now) -> None:
        self.runner = runner
        self.ledger = ledger
        self.clock = clock

    def signup(self, actor: Actor, activity_id: int) -> int:
        """Submit a signup request for review and return its audit record id."""
        if activity_id <= 0:
            raise InvalidInputError("activity id is required")

        def _signup(db: Session) -> int:
            volunteer = get_volunteer_for_actor(db, actor)
            activity = get_activity(db, activity_id)
            if activity.status != ACTIVITY_RECRUITING:
                raise StateConflictError("activity is not recruiting")
            if activity.max_people > 0 and activity.current_people >= activity.max_people:
                raise StateConflictError("activity is full")

            existing = db.scalar(
                select(ActivitySignup).where(
                    ActivitySignup.activity_id == activity_id,
                    ActivitySignup.volunteer_id == volunteer.id,
                )
            )
            if existing is not None and existing.status in ACTIVE_SIGNUP_STATUSES:
                raise DuplicateSignupError("duplicate signup")

            subject_key = signup_subject_key(activity_id, volunteer.id)
            for record in find_pending_records(db, target_type=TARGET_ACTIVITY_SIGNUP, subject_key=subject_key):
                if record.target_id > 0:
                    continue
                pending = parse_snapshot(SignupSnapshot, record.new_content, record_id=record.id)
                if pending.activity_id == activity_id and pending.volunteer_id == volunteer.id:
                    raise DuplicateSignupError("duplicate signup")

            snapshot = SignupSnapshot(activity_id=activity_id, volunteer_id=volunteer.id, status=SIGNUP_PENDING)
            record = create_pending_record(
                db,
                target_type=TARGET_ACTIVITY_SIGNUP,
                operation_type=OPERATION_CREATE,
                creator_id=actor.account_id,
                subject_key=subject_key,
                new_content=dump_snapshot(snapshot),
            )
            return record.id

        record_id = self.runner.run(_signup)
        logger.info("Signup submitted: activity_id=%d account_id=%d record_id=%d", activity_id, actor.account_id, record_id)
        return record_id

    def cancel(self, actor: Actor, activity_id: int) -> None:
        if activity_id <= 0:
            raise InvalidInputError("activity id is required")

        def _cancel(db: Session) -> int:
            volunteer = get_volunteer_for_actor(db, actor)
            signup = _lock_signup_for(db, activity_id, volunteer.id)
            if signup is None:
                raise NotFoundError("signup not found")
            if signup.status not in ACTIVE_SIGNUP_STATUSES:
                raise StateConflictError("current signup status does not allow cancel")
            signup.status = SIGNUP_CANCELED
            decrement_activity_people(db, activity_id)
            return signup.id

        signup_id = self.runner.run(_cancel)
        logger.info("Signup canceled: activity_id=%d account_id=%d signup_id=%d", activity_id, actor.account_id, signup_id)

    def check_in(self, actor: Actor, activity_id: int) -> datetime:
        """Record check-in; repeated calls return the stored time."""
        if activity_id <= 0:
            raise InvalidInputError("activity id is required")

        def _check_in(db: Session) -> datetime:
            volunteer = get_volunteer_for_actor(db, actor)
            activity = get_activity(db, activity_id)
            if activity.status == ACTIVITY_CANCELED:
                raise StateConflictError("canceled activity does not allow check-in")

            signup = _lock_signup_for(db, activity_id, volunteer.id)
            if signup is None:
                raise NotFoundError("signup not found")
            if signup.status != SIGNUP_SUCCESS:
                raise StateConflictError("current signup status does not allow check-in")
            if signup.check_out_status == CHECK_DONE:
                raise StateConflictError("already checked out")
            if signup.check_in_status == CHECK_DONE and signup.check_in_time is not None:
                return as_utc(signup.check_in_time)

            now = self.clock()
            signup.check_in_status = CHECK_DONE
            signup.check_in_time = now
            return now

        check_in_time = self.runner.run(_check_in)
        logger.info("Checked in: activity_id=%d account_id=%d", activity_id, actor.account_id)
        return check_in_time

    def check_out(self, actor: Actor, activity_id: int) -> AttendanceResult:
        """Record check-out and grant the elapsed hours through the ledger."""
        if activity_id <= 0:
            raise InvalidInputError("activity id is required")

        def _check_out(db: Session) -> AttendanceResult:
            volunteer = get_volunteer_for_actor(db, actor)
            activity = get_activity(db, activity_id)
            if activity.status == ACTIVITY_CANCELED:
                raise StateConflictError("canceled activity does not allow check-out")

            signup = _lock_signup_for(db, activity_id, volunteer.id)
            if signup is None:
                raise NotFoundError("signup not found")
            if signup.status != SIGNUP_SUCCESS:
                raise StateConflictError("current signup status does not allow check-out")
            if signup.check_in_status != CHECK_DONE or signup.check_in_time is None:
                raise StateConflictError("not checked in")
            if signup.check_out_status == CHECK_DONE:
                return _settled_result(signup)

            check_in_time = as_utc(signup.check_in_time)
            now = max(self.clock(), check_in_time)
            hours = calc_granted_hours(activity.duration, check_in_time, now)

            signup.check_out_status = CHECK_DONE
            signup.check_out_time = now
            self.ledger.grant(
                db,
                signup,
                activity,
                hours=hours,
                operator_id=actor.account_id,
                idempotency_key=checkout_idempotency_key(signup.id, signup.work_hour_version + 1),
                reason=CHECKOUT_REASON,
                granted_at=now,
            )
            return AttendanceResult(check_in_time=check_in_time, check_out_time=now, granted_hours=hours)

        try:
            result = self.runner.run(_check_out)
        except IntegrityError as exc:
            if not is_duplicate_key_error(exc):
                raise
            result = self._settled_after_race(actor, activity_id, exc)

        logger.info(
            "Checked out: activity_id=%d account_id=%d granted_hours=%s",
            activity_id,
            actor.account_id,
            result.granted_hours,
        )
        return result

    def _settled_after_race(self, actor: Actor, activity_id: int, exc: IntegrityError) -> AttendanceResult:
        """Return the check-out committed by the concurrent request that won."""

        def _reload(db: Session) -> AttendanceResult:
            volunteer = get_volunteer_for_actor(db, actor)
            signup = db.scalar(
                select(ActivitySignup).where(
                    ActivitySignup.activity_id == activity_id,
                    ActivitySignup.volunteer_id == volunteer.id,
                )
            )
            if signup is None or signup.check_out_status != CHECK_DONE or signup.check_out_time is None:
                raise ChainBrokenError("work hour version was advanced by a concurrent operation") from exc
            return _settled_result(signup)

        return self.runner.read(_reload)

    def supplement_attendance(
        self,
        actor: Actor,
        activity_id: int,
        volunteer_id: int,
        check_out_time: datetime,
        check_in_time: datetime | None = None,
        reason: str | None = None,
    ) -> AttendanceResult:
        """Backfill attendance for a volunteer of one of the actor's activities."""
        if activity_id <= 0 or volunteer_id <= 0:
            raise InvalidInputError("activity id and volunteer id are required")
        if check_out_time is None:
            raise InvalidInputError("check-out time is required")
        check_out_at = as_utc(check_out_time)
        check_in_at = as_utc(check_in_time) if check_in_time is not None else None
        reason = (reason or "").strip() or SUPPLEMENT_REASON
        if len(reason) > self.ledger.reason_max_length:
            raise InvalidInputError(f"reason must not exceed {self.ledger.reason_max_length} characters")

        def _supplement(db: Session) -> AttendanceResult:
            activity = ensure_activity_owned_by(db, activity_id, actor)
            if activity.status == ACTIVITY_CANCELED:
                raise StateConflictError("canceled activity does not allow attendance supplement")

            signup = _lock_signup_for(db, activity_id, volunteer_id)
            if signup is None:
                raise NotFoundError("signup not found")
            if signup.status != SIGNUP_SUCCESS:
                raise StateConflictError("current signup status does not allow attendance supplement")
            if signup.check_out_status == CHECK_DONE:
                return _settled_result(signup)

            if signup.check_in_status == CHECK_DONE:
                if signup.check_in_time is None:
                    raise ChainBrokenError(f"signup {signup.id} is checked in without a check-in time")
                final_check_in = as_utc(signup.check_in_time)
                if check_in_at is not None and check_in_at != final_check_in:
                    raise StateConflictError("already checked in, check-in time cannot be changed")
            else:
                if check_in_at is None:
                    raise InvalidInputError("check-in time is required when not checked in")
                final_check_in = check_in_at

            if check_out_at < final_check_in:
                raise InvalidInputError("check-out time must not precede check-in time")
            hours = calc_granted_hours(activity.duration, final_check_in, check_out_at)

            signup.check_in_status = CHECK_DONE
            signup.check_in_time = final_check_in
            signup.check_out_status = CHECK_DONE
            signup.check_out_time = check_out_at
            self.ledger.grant(
                db,
                signup,
                activity,
                hours=hours,
                operator_id=actor.account_id,
                idempotency_key=supplement_idempotency_key(signup.id, signup.work_hour_version + 1, check_out_at),
                reason=reason,
                granted_at=check_out_at,
            )
            return AttendanceResult(check_in_time=final_check_in, check_out_time=check_out_at, granted_hours=hours)

        result = self.runner.run(_supplement)
        logger.info(
            "Attendance supplemented: activity_id=%d volunteer_id=%d operator_id=%d granted_hours=%s",
            activity_id,
            volunteer_id,
            actor.account_id,
            result.granted_hours,
        )
        return result
