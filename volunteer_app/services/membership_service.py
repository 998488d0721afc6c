"""Volunteer requests to join or leave an organization."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from volunteer_app.core.errors import InvalidInputError, NotFoundError, PermissionDeniedError, StateConflictError
from volunteer_app.db.transaction import TransactionRunner
from volunteer_app.models import AuditRecord, Organization, OrgMember
from volunteer_app.models.audit_record import (
    AUDIT_PENDING,
    OPERATION_CREATE,
    OPERATION_DELETE,
    TARGET_MEMBERSHIP,
    membership_subject_key,
)
from volunteer_app.models.membership import MEMBER_ACTIVE, MEMBER_LEFT, MEMBER_PENDING, ROLE_MEMBER
from volunteer_app.schemas.auth import Actor
from volunteer_app.schemas.snapshots import MembershipSnapshot, dump_snapshot, parse_snapshot
from volunteer_app.services.audit_service import create_pending_record, find_pending_records
from volunteer_app.services.security_guards import get_volunteer_for_actor
from volunteer_app.utils.time import Clock, utc_now

logger = logging.getLogger(__name__)


class MembershipService:
    def __init__(self, runner: TransactionRunner, *, clock: Clock = utc_now) -> None:
        self.runner = runner
        self.clock = clock

    def join_organization(self, actor: Actor, org_id: int) -> int:
        """File a join request and return its audit record id."""
        if org_id <= 0:
            raise InvalidInputError("organization id is required")

        def _join(db: Session) -> int:
            volunteer = get_volunteer_for_actor(db, actor)
            if db.get(Organization, org_id) is None:
                raise NotFoundError("organization not found")

            existing = db.scalar(
                select(OrgMember.id)
                .where(
                    OrgMember.org_id == org_id,
                    OrgMember.volunteer_id == volunteer.id,
                    OrgMember.status.in_((MEMBER_PENDING, MEMBER_ACTIVE)),
                )
                .limit(1)
            )
            if existing is not None:
                raise StateConflictError("membership already exists or is under review")

            subject_key = membership_subject_key(org_id, volunteer.id)
            for record in find_pending_records(db, target_type=TARGET_MEMBERSHIP, subject_key=subject_key):
                pending = parse_snapshot(MembershipSnapshot, record.new_content, record_id=record.id)
                if pending.org_id == org_id and pending.volunteer_id == volunteer.id:
                    raise StateConflictError("membership already exists or is under review")

            snapshot = MembershipSnapshot(
                org_id=org_id,
                volunteer_id=volunteer.id,
                role=ROLE_MEMBER,
                status=MEMBER_PENDING,
                applied_at=self.clock(),
            )
            record = create_pending_record(
                db,
                target_type=TARGET_MEMBERSHIP,
                operation_type=OPERATION_CREATE,
                creator_id=actor.account_id,
                subject_key=subject_key,
                new_content=dump_snapshot(snapshot),
            )
            return record.id

        record_id = self.runner.run(_join)
        logger.info("Join request submitted: org_id=%d account_id=%d record_id=%d", org_id, actor.account_id, record_id)
        return record_id

    def leave_organization(self, actor: Actor, membership_id: int) -> int:
        """File a leave request for one of the actor's memberships."""
        if membership_id <= 0:
            raise InvalidInputError("membership id is required")

        def _leave(db: Session) -> int:
            volunteer = get_volunteer_for_actor(db, actor)
            member = db.get(OrgMember, membership_id)
            if member is None:
                raise NotFoundError("membership not found")
            if member.volunteer_id != volunteer.id:
                raise PermissionDeniedError("no permission to operate this membership")
            if member.status == MEMBER_LEFT:
                raise StateConflictError("member already left the organization")

            pending = db.scalar(
                select(AuditRecord.id)
                .where(
                    AuditRecord.target_type == TARGET_MEMBERSHIP,
                    AuditRecord.target_id == member.id,
                    AuditRecord.status == AUDIT_PENDING,
                )
                .limit(1)
            )
            if pending is not None:
                raise StateConflictError("membership already has a pending request")

            current = MembershipSnapshot.model_validate(member)
            record = create_pending_record(
                db,
                target_type=TARGET_MEMBERSHIP,
                operation_type=OPERATION_DELETE,
                creator_id=actor.account_id,
                target_id=member.id,
                subject_key=membership_subject_key(member.org_id, member.volunteer_id),
                old_content=dump_snapshot(current),
                new_content=dump_snapshot(current.model_copy(update={"status": MEMBER_LEFT})),
            )
            return record.id

        record_id = self.runner.run(_leave)
        logger.info("Leave request submitted: membership_id=%d account_id=%d record_id=%d", membership_id, actor.account_id, record_id)
        return record_id
