"""Approval handlers, one per audit target type.

A handler applies an approved record to its target inside the approving
transaction and returns the id of the target it created or changed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from volunteer_app.core.errors import ChainBrokenError, InvalidInputError, NotFoundError, StateConflictError
from volunteer_app.models import Activity, ActivitySignup, AuditRecord, Organization, OrgMember, Volunteer
from volunteer_app.models.account import PROFILE_AUDIT_APPROVED
from volunteer_app.models.activity import CHECK_NONE, SIGNUP_SUCCESS, WORK_HOUR_PENDING
from volunteer_app.models.audit_record import (
    OPERATION_CREATE,
    OPERATION_DELETE,
    OPERATION_UPDATE,
    TARGET_ACTIVITY_SIGNUP,
    TARGET_MEMBERSHIP,
    TARGET_ORGANIZATION_VERIFICATION,
    TARGET_VOLUNTEER_VERIFICATION,
)
from volunteer_app.models.membership import MEMBER_ACTIVE, MEMBER_LEFT, MEMBER_ROLES, MEMBER_STATUSES, ROLE_MEMBER
from volunteer_app.schemas.snapshots import MembershipSnapshot, SignupSnapshot, parse_snapshot
from volunteer_app.services.activity_capacity import increment_activity_people


class ApprovalHandler(ABC):
    """Applies an approved audit record to its target."""

    target_type: str

    @abstractmethod
    def apply(self, db: Session, record: AuditRecord, *, now: datetime) -> int:
        raise NotImplementedError

    def owning_org_id(self, db: Session, record: AuditRecord) -> int | None:
        """Organization allowed to resolve ``record``; ``None`` lets any organization review it."""
        return None

    @staticmethod
    def _require_target_id(record: AuditRecord) -> int:
        if record.target_id <= 0:
            raise InvalidInputError(f"audit record {record.id} has no target id")
        return record.target_id


class VolunteerVerificationHandler(ApprovalHandler):
    target_type = TARGET_VOLUNTEER_VERIFICATION

    def apply(self, db: Session, record: AuditRecord, *, now: datetime) -> int:
        volunteer = db.get(Volunteer, self._require_target_id(record), with_for_update=True)
        if volunteer is None:
            raise NotFoundError("target not found")
        volunteer.audit_status = PROFILE_AUDIT_APPROVED
        return volunteer.id


class OrganizationVerificationHandler(ApprovalHandler):
    target_type = TARGET_ORGANIZATION_VERIFICATION

    def apply(self, db: Session, record: AuditRecord, *, now: datetime) -> int:
        organization = db.get(Organization, self._require_target_id(record), with_for_update=True)
        if organization is None:
            raise NotFoundError("target not found")
        organization.audit_status = PROFILE_AUDIT_APPROVED
        return organization.id


class MembershipHandler(ApprovalHandler):
    """Create, update or end an organization membership from its snapshot."""

    target_type = TARGET_MEMBERSHIP

    def apply(self, db: Session, record: AuditRecord, *, now: datetime) -> int:
        if record.operation_type == OPERATION_CREATE:
            return self._create(db, record, now)
        if record.operation_type == OPERATION_UPDATE:
            return self._update(db, record, now)
        if record.operation_type == OPERATION_DELETE:
            return self._delete(db, record)
        raise InvalidInputError(f"unsupported operation type: {record.operation_type}")

    def owning_org_id(self, db: Session, record: AuditRecord) -> int | None:
        snapshot = parse_snapshot(MembershipSnapshot, record.new_content, record_id=record.id)
        if record.operation_type == OPERATION_CREATE:
            return snapshot.org_id or None
        member_id = snapshot.id or record.target_id
        member = db.get(OrgMember, member_id) if member_id else None
        return member.org_id if member is not None else None

    @staticmethod
    def _create(db: Session, record: AuditRecord, now: datetime) -> int:
        snapshot = parse_snapshot(MembershipSnapshot, record.new_content, record_id=record.id)
        if snapshot.org_id <= 0 or snapshot.volunteer_id <= 0:
            raise ChainBrokenError(f"audit record {record.id} snapshot lacks organization or volunteer")

        active = db.scalar(
            select(OrgMember.id)
            .where(
                OrgMember.org_id == snapshot.org_id,
                OrgMember.volunteer_id == snapshot.volunteer_id,
                OrgMember.status == MEMBER_ACTIVE,
            )
            .limit(1)
        )
        if active is not None:
            raise StateConflictError("volunteer is already an active member")

        member = OrgMember(
            org_id=snapshot.org_id,
            volunteer_id=snapshot.volunteer_id,
            role=snapshot.role or ROLE_MEMBER,
            status=MEMBER_ACTIVE,
            applied_at=snapshot.applied_at or now,
            joined_at=snapshot.joined_at or now,
        )
        db.add(member)
        db.flush()
        return member.id

    @staticmethod
    def _update(db: Session, record: AuditRecord, now: datetime) -> int:
        snapshot = parse_snapshot(MembershipSnapshot, record.new_content, record_id=record.id)
        member_id = snapshot.id or record.target_id
        member = db.get(OrgMember, member_id, with_for_update=True) if member_id else None
        if member is None:
            raise NotFoundError("target not found")

        if snapshot.org_id > 0:
            member.org_id = snapshot.org_id
        if snapshot.volunteer_id > 0:
            member.volunteer_id = snapshot.volunteer_id
        if snapshot.role and snapshot.role not in MEMBER_ROLES:
            raise InvalidInputError(f"unsupported member role: {snapshot.role}")
        if snapshot.status and snapshot.status not in MEMBER_STATUSES:
            raise InvalidInputError(f"unsupported member status: {snapshot.status}")
        if snapshot.role:
            member.role = snapshot.role
        if snapshot.status:
            member.status = snapshot.status
        if snapshot.applied_at is not None:
            member.applied_at = snapshot.applied_at
        if snapshot.joined_at is not None:
            member.joined_at = snapshot.joined_at
        elif member.status == MEMBER_ACTIVE and member.joined_at is None:
            member.joined_at = now
        return member.id

    def _delete(self, db: Session, record: AuditRecord) -> int:
        member = db.get(OrgMember, self._require_target_id(record), with_for_update=True)
        if member is None:
            raise NotFoundError("target not found")
        member.status = MEMBER_LEFT
        return member.id


class ActivitySignupHandler(ApprovalHandler):
    """Materialize an approved signup and take a seat for it."""

    target_type = TARGET_ACTIVITY_SIGNUP

    def apply(self, db: Session, record: AuditRecord, *, now: datetime) -> int:
        if record.operation_type == OPERATION_CREATE and record.target_id <= 0:
            return self._create(db, record, now)

        signup = db.get(ActivitySignup, self._require_target_id(record), with_for_update=True)
        if signup is None:
            raise NotFoundError("target not found")
        signup.status = SIGNUP_SUCCESS
        return signup.id

    def owning_org_id(self, db: Session, record: AuditRecord) -> int | None:
        if record.target_id > 0:
            signup = db.get(ActivitySignup, record.target_id)
            activity_id = signup.activity_id if signup is not None else 0
        else:
            activity_id = parse_snapshot(SignupSnapshot, record.new_content, record_id=record.id).activity_id
        activity = db.get(Activity, activity_id) if activity_id > 0 else None
        return activity.org_id if activity is not None else None

    @staticmethod
    def _reactivate(signup: ActivitySignup, now: datetime) -> None:
        """Turn a canceled row back into a fresh signup; attendance starts over."""
        if (
            signup.work_hour_version != 0
            or signup.last_work_hour_log_id is not None
            or signup.work_hour_status != WORK_HOUR_PENDING
        ):
            raise StateConflictError("signup already has settled work hours and cannot be reactivated")
        signup.status = SIGNUP_SUCCESS
        signup.signup_time = now
        signup.check_in_status = CHECK_NONE
        signup.check_in_time = None
        signup.check_out_status = CHECK_NONE
        signup.check_out_time = None
        signup.granted_at = None

    @classmethod
    def _create(cls, db: Session, record: AuditRecord, now: datetime) -> int:
        snapshot = parse_snapshot(SignupSnapshot, record.new_content, record_id=record.id)
        if snapshot.activity_id <= 0 or snapshot.volunteer_id <= 0:
            raise ChainBrokenError(f"audit record {record.id} snapshot lacks activity or volunteer")

        signup = db.scalar(
            select(ActivitySignup)
            .where(
                ActivitySignup.activity_id == snapshot.activity_id,
                ActivitySignup.volunteer_id == snapshot.volunteer_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if signup is not None and signup.status == SIGNUP_SUCCESS:
            return signup.id

        if signup is not None:
            cls._reactivate(signup, now)
        increment_activity_people(db, snapshot.activity_id)
        if signup is None:
            signup = ActivitySignup(
                activity_id=snapshot.activity_id,
                volunteer_id=snapshot.volunteer_id,
                status=SIGNUP_SUCCESS,
                signup_time=now,
            )
            db.add(signup)
            db.flush()
        return signup.id


APPROVAL_HANDLERS: dict[str, ApprovalHandler] = {
    handler.target_type: handler
    for handler in (
        VolunteerVerificationHandler(),
        OrganizationVerificationHandler(),
        MembershipHandler(),
        ActivitySignupHandler(),
    )
}
