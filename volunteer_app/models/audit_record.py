"""Generic approval record for proposed entity changes."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from volunteer_app.db.base import Base

TARGET_VOLUNTEER_VERIFICATION = "volunteer_verification"
TARGET_ORGANIZATION_VERIFICATION = "organization_verification"
TARGET_MEMBERSHIP = "membership"
TARGET_ACTIVITY_SIGNUP = "activity_signup"

OPERATION_CREATE = "create"
OPERATION_UPDATE = "update"
OPERATION_DELETE = "delete"

AUDIT_PENDING = "pending"
AUDIT_APPROVED = "approved"
AUDIT_REJECTED = "rejected"

AUDIT_RESULT_PASS = "pass"
AUDIT_RESULT_REJECT = "reject"


def signup_subject_key(activity_id: int, volunteer_id: int) -> str:
    return f"{TARGET_ACTIVITY_SIGNUP}:{activity_id}:{volunteer_id}"


def membership_subject_key(org_id: int, volunteer_id: int) -> str:
    return f"{TARGET_MEMBERSHIP}:{org_id}:{volunteer_id}"


class AuditRecord(Base):
    """Pending or resolved proposal to create, update or delete another entity.

    ``target_id`` stays 0 for creations until approval materializes the target;
    until then the subject is identified by the JSON snapshot in ``new_content``
    and indexed by ``subject_key``.
    """

    __tablename__ = "audit_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    target_type: Mapped[str] = mapped_column(String(32), nullable=False)
    target_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    operation_type: Mapped[str] = mapped_column(String(16), nullable=False)
    subject_key: Mapped[str | None] = mapped_column(String(128), nullable=True)
    creator_id: Mapped[int] = mapped_column(Integer, nullable=False)
    auditor_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    old_content: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    new_content: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=AUDIT_PENDING)
    audit_result: Mapped[str | None] = mapped_column(String(16), nullable=True)
    reject_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    audit_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_audit_records_pending_subject", "target_type", "operation_type", "status", "subject_key"),
        Index("ix_audit_records_target", "target_type", "target_id"),
    )
