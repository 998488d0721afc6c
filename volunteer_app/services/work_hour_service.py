"""Work-hour ledger: grant, void and recalculate service hours.

Every hour mutation appends one immutable ``WorkHourLog`` entry, updates the
volunteer aggregate and settles the signup in the same transaction. The signup
carries a version counter and a pointer to its last log entry; both are
re-verified against the ledger before any correction is written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from volunteer_app.core.config import settings
from volunteer_app.core.errors import (
    ChainBrokenError,
    IdempotencyConflictError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
)
from volunteer_app.db.transaction import TransactionRunner, is_duplicate_key_error
from volunteer_app.models import Activity, ActivitySignup, Volunteer, WorkHourLog
from volunteer_app.models.activity import (
    ACTIVITY_CANCELED,
    CHECK_DONE,
    WORK_HOUR_GRANTED,
    WORK_HOUR_PENDING,
    WORK_HOUR_VOIDED,
)
from volunteer_app.models.work_hour import (
    OPERATION_GRANT,
    OPERATION_REGRANT,
    OPERATION_VOID,
    WORK_HOUR_OPERATIONS,
)
from volunteer_app.schemas.auth import Actor
from volunteer_app.schemas.work_hour import WorkHourLogPage, WorkHourLogRead
from volunteer_app.services.security_guards import (
    ensure_activity_owned_by,
    ensure_organization,
    get_organization_for_actor,
    get_volunteer_for_actor,
    normalize_pagination,
)
from volunteer_app.utils.hours import ZERO_HOURS, calc_granted_hours, round_hours
from volunteer_app.utils.time import Clock, as_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerResult:
    """Outcome of a ledger operation or of its idempotent replay."""

    log_id: int | None
    granted_hours: Decimal
    replayed: bool = False


def checkout_idempotency_key(signup_id: int, version: int) -> str:
    return f"checkout:{signup_id}:{version}"


def supplement_idempotency_key(signup_id: int, version: int, check_out_time: datetime) -> str:
    return f"supplement:{signup_id}:{version}:{int(as_utc(check_out_time).timestamp())}"


class WorkHourService:
    """Owns every write to the volunteer hour aggregate."""

    def __init__(
        self,
        runner: TransactionRunner,
        *,
        clock: Clock = utc_now,
        reason_max_length: int | None = None,
        idempotency_key_max_length: int | None = None,
    ) -> None:
        self.runner = runner
        self.clock = clock
        self.reason_max_length = reason_max_length or settings.work_hour_reason_max_length
        self.idempotency_key_max_length = idempotency_key_max_length or settings.idempotency_key_max_length

    # -- write primitives, always called with a live transaction -----------------

    @staticmethod
    def lock_signup(db: Session, signup_id: int) -> ActivitySignup:
        signup = db.scalar(
            select(ActivitySignup)
            .where(ActivitySignup.id == signup_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if signup is None:
            raise NotFoundError("signup not found")
        return signup

    @staticmethod
    def lock_volunteer(db: Session, volunteer_id: int) -> Volunteer:
        volunteer = db.scalar(
            select(Volunteer)
            .where(Volunteer.id == volunteer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if volunteer is None:
            raise NotFoundError("volunteer not found")
        return volunteer

    @staticmethod
    def _append_log(
        db: Session,
        signup: ActivitySignup,
        volunteer: Volunteer,
        *,
        operation_type: str,
        hours_delta: Decimal,
        service_count_delta: int,
        idempotency_key: str,
        ref_log_id: int | None,
        reason: str,
        operator_id: int,
    ) -> WorkHourLog:
        before_hours: Decimal = volunteer.total_hours
        before_count: int = volunteer.service_count
        after_hours = before_hours + hours_delta
        after_count = before_count + service_count_delta
        if after_hours < 0 or after_count < 0:
            raise ChainBrokenError(f"volunteer {volunteer.id} aggregate would become negative")

        log_item = WorkHourLog(
            volunteer_id=signup.volunteer_id,
            activity_id=signup.activity_id,
            signup_id=signup.id,
            operation_type=operation_type,
            hours_delta=hours_delta,
            service_count_delta=service_count_delta,
            before_total_hours=before_hours,
            after_total_hours=after_hours,
            before_service_count=before_count,
            after_service_count=after_count,
            work_hour_version=signup.work_hour_version + 1,
            idempotency_key=idempotency_key,
            ref_log_id=ref_log_id,
            reason=reason,
            operator_id=operator_id,
        )
        db.add(log_item)
        db.flush()

        volunteer.total_hours = after_hours
        volunteer.service_count = after_count
        return log_item

    @staticmethod
    def _settle(
        signup: ActivitySignup,
        log_item: WorkHourLog,
        *,
        status: str,
        granted_hours: Decimal,
        granted_at: datetime | None,
    ) -> None:
        signup.work_hour_status = status
        signup.work_hour_version = log_item.work_hour_version
        signup.last_work_hour_log_id = log_item.id
        signup.granted_hours = granted_hours
        signup.granted_at = granted_at

    @staticmethod
    def _verify_last_log(db: Session, signup: ActivitySignup) -> WorkHourLog:
        """Re-read the entry the signup points at and check it still heads the chain."""
        last_log = db.get(WorkHourLog, signup.last_work_hour_log_id)
        if last_log is None:
            raise ChainBrokenError(f"signup {signup.id} points at a missing work hour log")
        if (
            last_log.signup_id != signup.id
            or last_log.volunteer_id != signup.volunteer_id
            or last_log.activity_id != signup.activity_id
        ):
            raise ChainBrokenError(f"work hour log {last_log.id} does not belong to signup {signup.id}")
        if last_log.work_hour_version != signup.work_hour_version:
            raise ChainBrokenError(f"work hour version mismatch on signup {signup.id}")
        return last_log

    def grant(
        self,
        db: Session,
        signup: ActivitySignup,
        activity: Activity,
        *,
        hours: Decimal,
        operator_id: int,
        idempotency_key: str,
        reason: str,
        granted_at: datetime,
    ) -> WorkHourLog:
        """Grant hours for a completed attendance inside the caller's transaction.

        ``signup`` must already be locked by the caller.
        """
        if signup.work_hour_status == WORK_HOUR_GRANTED:
            raise StateConflictError("work hours already granted for this signup")
        if signup.last_work_hour_log_id is not None:
            self._verify_last_log(db, signup)

        volunteer = self.lock_volunteer(db, signup.volunteer_id)
        log_item = self._append_log(
            db,
            signup,
            volunteer,
            operation_type=OPERATION_GRANT,
            hours_delta=hours,
            service_count_delta=1,
            idempotency_key=idempotency_key,
            ref_log_id=signup.last_work_hour_log_id,
            reason=reason,
            operator_id=operator_id,
        )
        self._settle(signup, log_item, status=WORK_HOUR_GRANTED, granted_hours=hours, granted_at=granted_at)
        logger.info(
            "Work hours granted: signup_id=%d activity_id=%d volunteer_id=%d hours=%s log_id=%d",
            signup.id,
            activity.id,
            signup.volunteer_id,
            hours,
            log_item.id,
        )
        return log_item

    # -- administrative corrections -----------------------------------------------

    def _validate_text(self, reason: str, idempotency_key: str, *, action: str) -> tuple[str, str]:
        reason = (reason or "").strip()
        idempotency_key = (idempotency_key or "").strip()
        if not reason:
            raise InvalidInputError(f"{action} reason is required")
        if len(reason) > self.reason_max_length:
            raise InvalidInputError(f"{action} reason must not exceed {self.reason_max_length} characters")
        if not idempotency_key:
            raise InvalidInputError("idempotency key is required")
        if len(idempotency_key) > self.idempotency_key_max_length:
            raise InvalidInputError(
                f"idempotency key must not exceed {self.idempotency_key_max_length} characters"
            )
        return reason, idempotency_key

    @staticmethod
    def _ensure_same_operation(log_item: WorkHourLog, *, signup_id: int, operation_type: str, operator_id: int) -> None:
        if (
            log_item.signup_id != signup_id
            or log_item.operation_type != operation_type
            or log_item.operator_id != operator_id
        ):
            raise IdempotencyConflictError("idempotency key already used by another request")

    def _find_replay(self, idempotency_key: str, *, signup_id: int, operation_type: str, operator_id: int) -> int | None:
        """Return the log id recorded under ``idempotency_key`` for this same request."""

        def _lookup(db: Session) -> int | None:
            existing = db.scalar(select(WorkHourLog).where(WorkHourLog.idempotency_key == idempotency_key).limit(1))
            if existing is None:
                return None
            self._ensure_same_operation(
                existing, signup_id=signup_id, operation_type=operation_type, operator_id=operator_id
            )
            return existing.id

        return self.runner.read(_lookup)

    def _current_granted_hours(self, signup_id: int) -> Decimal:
        def _lookup(db: Session) -> Decimal:
            signup = db.get(ActivitySignup, signup_id)
            return signup.granted_hours if signup is not None else ZERO_HOURS

        return self.runner.read(_lookup)

    def _resolve_insert_conflict(
        self,
        exc: IntegrityError,
        idempotency_key: str,
        *,
        signup_id: int,
        operation_type: str,
        operator_id: int,
    ) -> int:
        """Map a unique violation on the log insert to a replay or a chain error.

        The failed transaction has already rolled back, so nothing it wrote is
        visible; only the concurrently committed entry is.
        """
        if not is_duplicate_key_error(exc):
            raise exc
        log_id = self._find_replay(
            idempotency_key, signup_id=signup_id, operation_type=operation_type, operator_id=operator_id
        )
        if log_id is None:
            raise ChainBrokenError(
                f"work hour version of signup {signup_id} was advanced by a concurrent operation"
            ) from exc
        logger.info("Idempotent replay after insert race: signup_id=%d key=%s log_id=%d", signup_id, idempotency_key, log_id)
        return log_id

    def void_work_hour(self, actor: Actor, signup_id: int, reason: str, idempotency_key: str) -> LedgerResult:
        """Reverse the hours currently granted for a signup."""
        if signup_id <= 0:
            raise InvalidInputError("signup id is required")
        reason, idempotency_key = self._validate_text(reason, idempotency_key, action="void")
        ensure_organization(actor)

        replay_id = self._find_replay(
            idempotency_key, signup_id=signup_id, operation_type=OPERATION_VOID, operator_id=actor.account_id
        )
        if replay_id is not None:
            return LedgerResult(log_id=replay_id, granted_hours=ZERO_HOURS, replayed=True)

        def _void(db: Session) -> LedgerResult:
            signup = self.lock_signup(db, signup_id)
            activity = ensure_activity_owned_by(db, signup.activity_id, actor)
            if activity.status == ACTIVITY_CANCELED:
                raise StateConflictError("work hours of a canceled activity cannot be voided")
            if signup.work_hour_status != WORK_HOUR_GRANTED or signup.last_work_hour_log_id is None:
                raise StateConflictError("current work hour status does not allow void")

            last_log = self._verify_last_log(db, signup)
            if last_log.operation_type == OPERATION_VOID:
                raise ChainBrokenError(f"signup {signup.id} is granted but its last log is a void")

            volunteer = self.lock_volunteer(db, signup.volunteer_id)
            log_item = self._append_log(
                db,
                signup,
                volunteer,
                operation_type=OPERATION_VOID,
                hours_delta=-signup.granted_hours,
                service_count_delta=-1,
                idempotency_key=idempotency_key,
                ref_log_id=last_log.id,
                reason=reason,
                operator_id=actor.account_id,
            )
            self._settle(signup, log_item, status=WORK_HOUR_VOIDED, granted_hours=ZERO_HOURS, granted_at=None)
            return LedgerResult(log_id=log_item.id, granted_hours=ZERO_HOURS)

        try:
            result = self.runner.run(_void)
        except IntegrityError as exc:
            log_id = self._resolve_insert_conflict(
                exc, idempotency_key, signup_id=signup_id, operation_type=OPERATION_VOID, operator_id=actor.account_id
            )
            return LedgerResult(log_id=log_id, granted_hours=ZERO_HOURS, replayed=True)

        logger.info("Work hours voided: signup_id=%d operator_id=%d log_id=%d", signup_id, actor.account_id, result.log_id)
        return result

    def recalculate_work_hour(
        self,
        actor: Actor,
        signup_id: int,
        reason: str,
        idempotency_key: str,
        hours: Decimal | None = None,
    ) -> LedgerResult:
        """Regrant hours from attendance times, or to an explicit ``hours`` value."""
        if signup_id <= 0:
            raise InvalidInputError("signup id is required")
        reason, idempotency_key = self._validate_text(reason, idempotency_key, action="recalculation")
        if hours is not None and hours < 0:
            raise InvalidInputError("recalculated hours must not be negative")
        ensure_organization(actor)

        replay_id = self._find_replay(
            idempotency_key, signup_id=signup_id, operation_type=OPERATION_REGRANT, operator_id=actor.account_id
        )
        if replay_id is not None:
            return LedgerResult(log_id=replay_id, granted_hours=self._current_granted_hours(signup_id), replayed=True)

        def _recalculate(db: Session) -> LedgerResult:
            signup = self.lock_signup(db, signup_id)
            activity = ensure_activity_owned_by(db, signup.activity_id, actor)
            if (
                signup.check_in_status != CHECK_DONE
                or signup.check_out_status != CHECK_DONE
                or signup.check_in_time is None
                or signup.check_out_time is None
            ):
                raise StateConflictError("work hours cannot be recalculated before check-in and check-out")
            if activity.status == ACTIVITY_CANCELED:
                raise StateConflictError("work hours of a canceled activity cannot be recalculated")

            last_log: WorkHourLog | None = None
            if signup.last_work_hour_log_id is None:
                if not (signup.work_hour_status == WORK_HOUR_PENDING and signup.work_hour_version == 0):
                    raise ChainBrokenError(f"signup {signup.id} has ledger state but no last log")
            else:
                last_log = self._verify_last_log(db, signup)
                if signup.work_hour_status == WORK_HOUR_GRANTED and last_log.operation_type == OPERATION_VOID:
                    raise ChainBrokenError(f"signup {signup.id} is granted but its last log is a void")
                if signup.work_hour_status == WORK_HOUR_VOIDED and last_log.operation_type != OPERATION_VOID:
                    raise ChainBrokenError(f"signup {signup.id} is voided but its last log is not a void")
                if signup.work_hour_status == WORK_HOUR_PENDING:
                    raise ChainBrokenError(f"signup {signup.id} is pending but already has a last log")

            if hours is not None:
                target_hours = round_hours(hours)
            else:
                target_hours = calc_granted_hours(
                    activity.duration, as_utc(signup.check_in_time), as_utc(signup.check_out_time)
                )

            hours_delta = target_hours - signup.granted_hours
            service_count_delta = 0 if signup.work_hour_status == WORK_HOUR_GRANTED else 1
            if hours_delta == 0 and service_count_delta == 0:
                return LedgerResult(log_id=signup.last_work_hour_log_id, granted_hours=signup.granted_hours)

            volunteer = self.lock_volunteer(db, signup.volunteer_id)
            log_item = self._append_log(
                db,
                signup,
                volunteer,
                operation_type=OPERATION_REGRANT,
                hours_delta=hours_delta,
                service_count_delta=service_count_delta,
                idempotency_key=idempotency_key,
                ref_log_id=last_log.id if last_log is not None else None,
                reason=reason,
                operator_id=actor.account_id,
            )
            self._settle(signup, log_item, status=WORK_HOUR_GRANTED, granted_hours=target_hours, granted_at=self.clock())
            return LedgerResult(log_id=log_item.id, granted_hours=target_hours)

        try:
            result = self.runner.run(_recalculate)
        except IntegrityError as exc:
            log_id = self._resolve_insert_conflict(
                exc,
                idempotency_key,
                signup_id=signup_id,
                operation_type=OPERATION_REGRANT,
                operator_id=actor.account_id,
            )
            return LedgerResult(log_id=log_id, granted_hours=self._current_granted_hours(signup_id), replayed=True)

        logger.info(
            "Work hours recalculated: signup_id=%d operator_id=%d log_id=%s hours=%s",
            signup_id,
            actor.account_id,
            result.log_id,
            result.granted_hours,
        )
        return result

    # -- reads ----------------------------------------------------------------------

    def list_logs(
        self,
        actor: Actor,
        *,
        activity_id: int | None = None,
        signup_id: int | None = None,
        operation_type: str | None = None,
        page: int | None = None,
        page_size: int | None = None,
    ) -> WorkHourLogPage:
        """Volunteers see their own entries; organizations see entries for their activities."""
        if operation_type and operation_type not in WORK_HOUR_OPERATIONS:
            raise InvalidInputError("invalid work hour operation type")
        limit, offset = normalize_pagination(page, page_size)

        def _list(db: Session) -> WorkHourLogPage:
            query = select(WorkHourLog)
            if actor.is_organization:
                organization = get_organization_for_actor(db, actor)
                if activity_id:
                    activity = db.get(Activity, activity_id)
                    if activity is None:
                        raise NotFoundError("activity not found")
                    if activity.org_id != organization.id:
                        raise PermissionDeniedError("no permission to view logs of this activity")
                query = query.where(
                    WorkHourLog.activity_id.in_(select(Activity.id).where(Activity.org_id == organization.id))
                )
            else:
                volunteer = get_volunteer_for_actor(db, actor)
                query = query.where(WorkHourLog.volunteer_id == volunteer.id)

            if activity_id:
                query = query.where(WorkHourLog.activity_id == activity_id)
            if signup_id:
                query = query.where(WorkHourLog.signup_id == signup_id)
            if operation_type:
                query = query.where(WorkHourLog.operation_type == operation_type)

            total = db.scalar(select(func.count()).select_from(query.subquery())) or 0
            if total == 0:
                return WorkHourLogPage(total=0, items=[])
            rows = db.scalars(
                query.order_by(WorkHourLog.created_at.desc(), WorkHourLog.id.desc()).offset(offset).limit(limit)
            ).all()
            return WorkHourLogPage(total=total, items=[WorkHourLogRead.model_validate(row) for row in rows])

        return self.runner.read(_list)

    def verify_chain(self, signup_id: int) -> bool:
        """Walk a signup's ledger entries and check versions, links and arithmetic."""

        def _verify(db: Session) -> bool:
            signup = db.get(ActivitySignup, signup_id)
            if signup is None:
                raise NotFoundError("signup not found")
            entries = db.scalars(
                select(WorkHourLog).where(WorkHourLog.signup_id == signup_id).order_by(WorkHourLog.work_hour_version)
            ).all()

            previous: WorkHourLog | None = None
            for expected_version, entry in enumerate(entries, start=1):
                if entry.work_hour_version != expected_version:
                    logger.warning("Ledger gap: signup_id=%d expected_version=%d", signup_id, expected_version)
                    return False
                if entry.ref_log_id != (previous.id if previous is not None else None):
                    logger.warning("Ledger link mismatch: signup_id=%d log_id=%d", signup_id, entry.id)
                    return False
                if (
                    entry.after_total_hours != entry.before_total_hours + entry.hours_delta
                    or entry.after_service_count != entry.before_service_count + entry.service_count_delta
                ):
                    logger.warning("Ledger arithmetic mismatch: signup_id=%d log_id=%d", signup_id, entry.id)
                    return False
                previous = entry

            if previous is None:
                return signup.work_hour_version == 0 and signup.last_work_hour_log_id is None
            if signup.work_hour_version != previous.work_hour_version or signup.last_work_hour_log_id != previous.id:
                logger.warning("Signup pointer does not match ledger tail: signup_id=%d", signup_id)
                return False
            if (signup.work_hour_status == WORK_HOUR_VOIDED) != (previous.operation_type == OPERATION_VOID):
                logger.warning("Signup status does not match ledger tail: signup_id=%d", signup_id)
                return False
            return True

        return self.runner.read(_verify)
