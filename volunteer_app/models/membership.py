"""Organization membership ORM model."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from volunteer_app.db.base import Base

MEMBER_PENDING = "pending"
MEMBER_ACTIVE = "active"
MEMBER_REJECTED = "rejected"
MEMBER_LEFT = "left"
MEMBER_STATUSES = (MEMBER_PENDING, MEMBER_ACTIVE, MEMBER_REJECTED, MEMBER_LEFT)

ROLE_MEMBER = "member"
ROLE_MANAGER = "manager"
ROLE_LEADER = "leader"
MEMBER_ROLES = (ROLE_MEMBER, ROLE_MANAGER, ROLE_LEADER)


class OrgMember(Base):
    """A volunteer's membership in an organization."""

    __tablename__ = "org_members"

    id: Mapped[int] = mapped_column(primary_key=True)
    org_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    volunteer_id: Mapped[int] = mapped_column(ForeignKey("volunteers.id"), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_MEMBER)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=MEMBER_PENDING)
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_org_members_org_volunteer", "org_id", "volunteer_id"),)
