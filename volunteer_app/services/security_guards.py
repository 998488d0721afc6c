"""Centralized identity, ownership and paging guards for ledger operations."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from volunteer_app.core.config import settings
from volunteer_app.core.errors import NotFoundError, PermissionDeniedError
from volunteer_app.models import Activity, Organization, Volunteer
from volunteer_app.schemas.auth import Actor


def ensure_organization(actor: Actor) -> None:
    """Only organization accounts may review or correct records."""
    if not actor.is_organization:
        raise PermissionDeniedError("permission denied")


def ensure_volunteer(actor: Actor) -> None:
    if not actor.is_volunteer:
        raise PermissionDeniedError("only volunteer accounts can perform this action")


def get_volunteer_for_actor(db: Session, actor: Actor) -> Volunteer:
    ensure_volunteer(actor)
    volunteer = db.scalar(select(Volunteer).where(Volunteer.account_id == actor.account_id).limit(1))
    if volunteer is None:
        raise NotFoundError("volunteer profile not found")
    return volunteer


def get_organization_for_actor(db: Session, actor: Actor) -> Organization:
    ensure_organization(actor)
    organization = db.scalar(select(Organization).where(Organization.account_id == actor.account_id).limit(1))
    if organization is None:
        raise NotFoundError("organization profile not found")
    return organization


def get_activity(db: Session, activity_id: int) -> Activity:
    activity = db.get(Activity, activity_id)
    if activity is None:
        raise NotFoundError("activity not found")
    return activity


def ensure_activity_owned_by(db: Session, activity_id: int, actor: Actor) -> Activity:
    """Return the activity when it belongs to the acting organization."""
    activity = get_activity(db, activity_id)
    organization = get_organization_for_actor(db, actor)
    if activity.org_id != organization.id:
        raise PermissionDeniedError("no permission to operate this activity")
    return activity


def normalize_pagination(page: int | None, page_size: int | None) -> tuple[int, int]:
    """Return ``(limit, offset)`` for the requested page."""
    normalized_page = page if page and page > 0 else 1
    limit = page_size if page_size and page_size > 0 else settings.default_page_size
    limit = min(limit, settings.max_page_size)
    return limit, (normalized_page - 1) * limit
