"""Guarded updates of an activity's participant counter."""

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from volunteer_app.core.errors import NotFoundError, StateConflictError
from volunteer_app.models import Activity


def increment_activity_people(db: Session, activity_id: int) -> None:
    """Take one seat; ``max_people == 0`` means unlimited."""
    result = db.execute(
        update(Activity)
        .where(
            Activity.id == activity_id,
            or_(Activity.max_people == 0, Activity.current_people < Activity.max_people),
        )
        .values(current_people=Activity.current_people + 1)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        if db.get(Activity, activity_id) is None:
            raise NotFoundError("activity not found")
        raise StateConflictError("activity is full")


def decrement_activity_people(db: Session, activity_id: int) -> None:
    """Release one seat; the counter never drops below zero."""
    result = db.execute(
        update(Activity)
        .where(Activity.id == activity_id, Activity.current_people > 0)
        .values(current_people=Activity.current_people - 1)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        raise NotFoundError("activity not found or has no participants")
