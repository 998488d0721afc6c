"""Organization-side activity lifecycle: publish, cancel and finish."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from volunteer_app.core.errors import InvalidInputError, NotFoundError, PermissionDeniedError, StateConflictError
from volunteer_app.db.transaction import TransactionRunner
from volunteer_app.models import Activity
from volunteer_app.models.activity import ACTIVITY_CANCELED, ACTIVITY_FINISHED, ACTIVITY_ONGOING, ACTIVITY_RECRUITING
from volunteer_app.schemas.auth import Actor
from volunteer_app.services.security_guards import get_organization_for_actor
from volunteer_app.utils.hours import round_hours
from volunteer_app.utils.time import Clock, as_utc, utc_now

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 255

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    ACTIVITY_RECRUITING: {ACTIVITY_ONGOING, ACTIVITY_FINISHED, ACTIVITY_CANCELED},
    ACTIVITY_ONGOING: {ACTIVITY_FINISHED, ACTIVITY_CANCELED},
    ACTIVITY_FINISHED: set(),
    ACTIVITY_CANCELED: set(),
}


def can_transition(current: str, new: str) -> bool:
    """Return whether an activity can move from current to new status."""
    return new in ALLOWED_TRANSITIONS.get(current, set())


class ActivityService:
    """Publishes activities and moves them to their terminal states."""

    def __init__(self, runner: TransactionRunner, *, clock: Clock = utc_now) -> None:
        self.runner = runner
        self.clock = clock

    @staticmethod
    def _lock_owned_activity(db: Session, activity_id: int, actor: Actor) -> Activity:
        organization = get_organization_for_actor(db, actor)
        activity = db.scalar(
            select(Activity)
            .where(Activity.id == activity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if activity is None:
            raise NotFoundError("activity not found")
        if activity.org_id != organization.id:
            raise PermissionDeniedError("no permission to operate this activity")
        return activity

    def create_activity(
        self,
        actor: Actor,
        *,
        title: str,
        duration: Decimal,
        start_time: datetime,
        end_time: datetime,
        max_people: int = 0,
    ) -> int:
        """Publish a recruiting activity for the acting organization."""
        title = (title or "").strip()
        if not title:
            raise InvalidInputError("activity title is required")
        if len(title) > TITLE_MAX_LENGTH:
            raise InvalidInputError(f"activity title must not exceed {TITLE_MAX_LENGTH} characters")
        if duration < 0:
            raise InvalidInputError("duration must not be negative")
        if max_people < 0:
            raise InvalidInputError("max people must not be negative")
        start_time = as_utc(start_time)
        end_time = as_utc(end_time)
        if end_time < start_time:
            raise InvalidInputError("end time must not be earlier than start time")
        if start_time < self.clock():
            raise InvalidInputError("start time must not be earlier than now")

        def _create(db: Session) -> tuple[int, int]:
            organization = get_organization_for_actor(db, actor)
            activity = Activity(
                org_id=organization.id,
                title=title,
                status=ACTIVITY_RECRUITING,
                duration=round_hours(duration),
                max_people=max_people,
                current_people=0,
                start_time=start_time,
                end_time=end_time,
                created_at=self.clock(),
            )
            db.add(activity)
            db.flush()
            return activity.id, organization.id

        activity_id, org_id = self.runner.run(_create)
        logger.info("Activity created: activity_id=%d org_id=%d account_id=%d", activity_id, org_id, actor.account_id)
        return activity_id

    def cancel_activity(self, actor: Actor, activity_id: int) -> None:
        if activity_id <= 0:
            raise InvalidInputError("activity id is required")

        def _cancel(db: Session) -> None:
            activity = self._lock_owned_activity(db, activity_id, actor)
            if not can_transition(activity.status, ACTIVITY_CANCELED):
                raise StateConflictError("finished or canceled activities cannot be canceled")
            activity.status = ACTIVITY_CANCELED

        self.runner.run(_cancel)
        logger.info("Activity canceled: activity_id=%d account_id=%d", activity_id, actor.account_id)

    def finish_activity(self, actor: Actor, activity_id: int) -> None:
        if activity_id <= 0:
            raise InvalidInputError("activity id is required")

        def _finish(db: Session) -> None:
            activity = self._lock_owned_activity(db, activity_id, actor)
            if activity.status == ACTIVITY_FINISHED:
                raise StateConflictError("activity already finished")
            if not can_transition(activity.status, ACTIVITY_FINISHED):
                raise StateConflictError("canceled activities cannot be finished")
            activity.status = ACTIVITY_FINISHED

        self.runner.run(_finish)
        logger.info("Activity finished: activity_id=%d account_id=%d", activity_id, actor.account_id)
