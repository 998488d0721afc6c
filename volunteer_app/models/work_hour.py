"""Append-only work-hour ledger model."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from volunteer_app.db.base import Base

OPERATION_GRANT = "grant"
OPERATION_VOID = "void"
OPERATION_REGRANT = "regrant"
WORK_HOUR_OPERATIONS = (OPERATION_GRANT, OPERATION_VOID, OPERATION_REGRANT)


class WorkHourLog(Base):
    """Immutable ledger entry; corrections are new entries referencing the prior one."""

    __tablename__ = "work_hour_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    volunteer_id: Mapped[int] = mapped_column(ForeignKey("volunteers.id"), nullable=False, index=True)
    activity_id: Mapped[int] = mapped_column(ForeignKey("activities.id"), nullable=False, index=True)
    signup_id: Mapped[int] = mapped_column(ForeignKey("activity_signups.id"), nullable=False)
    operation_type: Mapped[str] = mapped_column(String(16), nullable=False)
    hours_delta: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    service_count_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    before_total_hours: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    after_total_hours: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    before_service_count: Mapped[int] = mapped_column(Integer, nullable=False)
    after_service_count: Mapped[int] = mapped_column(Integer, nullable=False)
    work_hour_version: Mapped[int] = mapped_column(Integer, nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(128), nullable=False)
    ref_log_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reason: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    operator_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("uq_work_hour_logs_idempotency_key", "idempotency_key", unique=True),
        Index("uq_work_hour_logs_signup_version", "signup_id", "work_hour_version", unique=True),
    )
