"""Activity and signup ORM models."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from volunteer_app.db.base import Base

ACTIVITY_RECRUITING = "recruiting"
ACTIVITY_ONGOING = "ongoing"
ACTIVITY_FINISHED = "finished"
ACTIVITY_CANCELED = "canceled"

SIGNUP_PENDING = "pending"
SIGNUP_SUCCESS = "success"
SIGNUP_REJECTED = "rejected"
SIGNUP_CANCELED = "canceled"
ACTIVE_SIGNUP_STATUSES = (SIGNUP_PENDING, SIGNUP_SUCCESS)

CHECK_NONE = "none"
CHECK_DONE = "done"

WORK_HOUR_PENDING = "pending"
WORK_HOUR_GRANTED = "granted"
WORK_HOUR_VOIDED = "voided"


class Activity(Base):
    """Volunteer activity published by an organization."""

    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(primary_key=True)
    org_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ACTIVITY_RECRUITING)
    duration: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0.00"))
    max_people: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_people: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))


class ActivitySignup(Base):
    """One volunteer's participation in one activity, including hour settlement."""

    __tablename__ = "activity_signups"

    id: Mapped[int] = mapped_column(primary_key=True)
    activity_id: Mapped[int] = mapped_column(ForeignKey("activities.id"), nullable=False)
    volunteer_id: Mapped[int] = mapped_column(ForeignKey("volunteers.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=SIGNUP_PENDING)
    signup_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    check_in_status: Mapped[str] = mapped_column(String(8), nullable=False, default=CHECK_NONE)
    check_in_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    check_out_status: Mapped[str] = mapped_column(String(8), nullable=False, default=CHECK_NONE)
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    work_hour_status: Mapped[str] = mapped_column(String(16), nullable=False, default=WORK_HOUR_PENDING)
    work_hour_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_work_hour_log_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    granted_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0.00"))
    granted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("activity_id", "volunteer_id", name="uq_activity_signups_activity_volunteer"),
    )
