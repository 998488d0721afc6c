"""Account, volunteer and organization ORM models."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from volunteer_app.db.base import Base

IDENTITY_VOLUNTEER = "volunteer"
IDENTITY_ORGANIZATION = "organization"
IDENTITY_TYPES = (IDENTITY_VOLUNTEER, IDENTITY_ORGANIZATION)

PROFILE_AUDIT_PENDING = "pending"
PROFILE_AUDIT_APPROVED = "approved"
PROFILE_AUDIT_REJECTED = "rejected"


class Account(Base):
    """Login identity; either a volunteer or an organization."""

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    identity_type: Mapped[str] = mapped_column(Enum(*IDENTITY_TYPES, name="identity_type"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))


class Volunteer(Base):
    """Volunteer profile and service aggregate.

    ``total_hours`` and ``service_count`` are written only by the work-hour ledger.
    """

    __tablename__ = "volunteers"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False, unique=True)
    real_name: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    audit_status: Mapped[str] = mapped_column(String(16), nullable=False, default=PROFILE_AUDIT_PENDING)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    service_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Organization(Base):
    """Organization profile owning activities and memberships."""

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False, unique=True)
    org_name: Mapped[str] = mapped_column(String(128), nullable=False)
    audit_status: Mapped[str] = mapped_column(String(16), nullable=False, default=PROFILE_AUDIT_PENDING)
