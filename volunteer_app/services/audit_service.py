"""Audit workflow: pending records, approval dispatch and rejection."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from volunteer_app.core.errors import (
    ChainBrokenError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
)
from volunteer_app.db.transaction import TransactionRunner
from volunteer_app.models import AuditRecord, Organization, Volunteer
from volunteer_app.models.account import PROFILE_AUDIT_APPROVED
from volunteer_app.models.audit_record import (
    AUDIT_APPROVED,
    AUDIT_PENDING,
    AUDIT_REJECTED,
    AUDIT_RESULT_PASS,
    AUDIT_RESULT_REJECT,
    OPERATION_CREATE,
    OPERATION_UPDATE,
    TARGET_MEMBERSHIP,
    TARGET_ORGANIZATION_VERIFICATION,
    TARGET_VOLUNTEER_VERIFICATION,
)
from volunteer_app.schemas.audit import AuditRecordRead, PendingMembershipAuditItem, PendingMembershipAuditPage
from volunteer_app.schemas.auth import Actor
from volunteer_app.schemas.snapshots import MembershipSnapshot, ProfileSnapshot, dump_snapshot, parse_snapshot
from volunteer_app.services.audit_handlers import APPROVAL_HANDLERS, ApprovalHandler
from volunteer_app.services.security_guards import (
    ensure_organization,
    get_organization_for_actor,
    get_volunteer_for_actor,
    normalize_pagination,
)
from volunteer_app.utils.time import Clock, utc_now

logger = logging.getLogger(__name__)

REJECT_REASON_MAX_LENGTH = 500


def create_pending_record(
    db: Session,
    *,
    target_type: str,
    operation_type: str,
    creator_id: int,
    new_content: str,
    old_content: str = "{}",
    target_id: int = 0,
    subject_key: str | None = None,
) -> AuditRecord:
    record = AuditRecord(
        target_type=target_type,
        target_id=target_id,
        operation_type=operation_type,
        subject_key=subject_key,
        creator_id=creator_id,
        old_content=old_content,
        new_content=new_content,
        status=AUDIT_PENDING,
    )
    db.add(record)
    db.flush()
    return record


def find_pending_records(
    db: Session,
    *,
    target_type: str,
    subject_key: str,
    operation_type: str | None = OPERATION_CREATE,
) -> list[AuditRecord]:
    """Pending records of one target type proposed for ``subject_key``."""
    query = select(AuditRecord).where(
        AuditRecord.target_type == target_type,
        AuditRecord.status == AUDIT_PENDING,
        AuditRecord.subject_key == subject_key,
    )
    if operation_type is not None:
        query = query.where(AuditRecord.operation_type == operation_type)
    return list(db.scalars(query.order_by(AuditRecord.id)).all())


class AuditService:
    """Resolves pending audit records.

    Approval runs the handler registered for the record's target type in the
    same transaction that marks the record approved.
    """

    def __init__(
        self,
        runner: TransactionRunner,
        *,
        clock: Clock = utc_now,
        handlers: Mapping[str, ApprovalHandler] | None = None,
    ) -> None:
        self.runner = runner
        self.clock = clock
        self.handlers = handlers if handlers is not None else APPROVAL_HANDLERS

    @staticmethod
    def _lock_pending(db: Session, record_id: int) -> AuditRecord:
        record = db.scalar(
            select(AuditRecord)
            .where(AuditRecord.id == record_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if record is None:
            raise NotFoundError("audit record not found")
        if record.status != AUDIT_PENDING:
            raise StateConflictError("audit record already processed")
        return record

    @staticmethod
    def _ensure_reviewer(db: Session, actor: Actor, handler: ApprovalHandler, record: AuditRecord) -> None:
        organization = get_organization_for_actor(db, actor)
        owner = handler.owning_org_id(db, record)
        if owner is not None and owner != organization.id:
            raise PermissionDeniedError("audit record belongs to another organization")

    def approve(self, actor: Actor, record_id: int, reason: str | None = None) -> int:
        """Approve a pending record and return the id of the affected target."""
        if record_id <= 0:
            raise InvalidInputError("audit record id is required")
        ensure_organization(actor)

        def _approve(db: Session) -> int:
            record = self._lock_pending(db, record_id)
            handler = self.handlers.get(record.target_type)
            if handler is None:
                raise InvalidInputError(f"unsupported audit target type: {record.target_type}")
            self._ensure_reviewer(db, actor, handler, record)

            now = self.clock()
            target_id = handler.apply(db, record, now=now)
            record.target_id = target_id
            record.status = AUDIT_APPROVED
            record.audit_result = AUDIT_RESULT_PASS
            record.auditor_id = actor.account_id
            record.reject_reason = None
            record.audit_time = now
            return target_id

        target_id = self.runner.run(_approve)
        logger.info(
            "Audit approved: record_id=%d auditor_id=%d target_id=%d reason=%s",
            record_id,
            actor.account_id,
            target_id,
            reason or "",
        )
        return target_id

    def reject(self, actor: Actor, record_id: int, reason: str) -> None:
        if record_id <= 0:
            raise InvalidInputError("audit record id is required")
        reason = (reason or "").strip()
        if not reason:
            raise InvalidInputError("reject reason is required")
        if len(reason) > REJECT_REASON_MAX_LENGTH:
            raise InvalidInputError(f"reject reason must not exceed {REJECT_REASON_MAX_LENGTH} characters")
        ensure_organization(actor)

        def _reject(db: Session) -> None:
            record = self._lock_pending(db, record_id)
            handler = self.handlers.get(record.target_type)
            if handler is None:
                raise InvalidInputError(f"unsupported audit target type: {record.target_type}")
            self._ensure_reviewer(db, actor, handler, record)
            record.status = AUDIT_REJECTED
            record.audit_result = AUDIT_RESULT_REJECT
            record.auditor_id = actor.account_id
            record.reject_reason = reason
            record.audit_time = self.clock()

        self.runner.run(_reject)
        logger.info("Audit rejected: record_id=%d auditor_id=%d", record_id, actor.account_id)

    def get_record(self, record_id: int) -> AuditRecordRead:
        def _get(db: Session) -> AuditRecordRead:
            record = db.get(AuditRecord, record_id)
            if record is None:
                raise NotFoundError("audit record not found")
            return AuditRecordRead.model_validate(record)

        return self.runner.read(_get)

    def list_pending_membership_audits(
        self,
        actor: Actor,
        *,
        page: int | None = None,
        page_size: int | None = None,
    ) -> PendingMembershipAuditPage:
        """Pending join/leave requests for the acting organization.

        Every row is rendered from its snapshot; a snapshot that cannot be
        parsed or that names a missing volunteer or organization fails the
        whole listing.
        """
        limit, offset = normalize_pagination(page, page_size)

        def _list(db: Session) -> PendingMembershipAuditPage:
            organization = get_organization_for_actor(db, actor)
            query = select(AuditRecord).where(
                AuditRecord.target_type == TARGET_MEMBERSHIP,
                AuditRecord.status == AUDIT_PENDING,
                AuditRecord.subject_key.like(f"{TARGET_MEMBERSHIP}:{organization.id}:%"),
            )
            total = db.scalar(select(func.count()).select_from(query.subquery())) or 0
            if total == 0:
                return PendingMembershipAuditPage(total=0, items=[])

            records = db.scalars(
                query.order_by(AuditRecord.created_at.desc(), AuditRecord.id.desc()).offset(offset).limit(limit)
            ).all()
            items = []
            for record in records:
                snapshot = parse_snapshot(MembershipSnapshot, record.new_content, record_id=record.id)
                volunteer = db.get(Volunteer, snapshot.volunteer_id) if snapshot.volunteer_id > 0 else None
                if volunteer is None:
                    raise ChainBrokenError(f"audit record {record.id} references a missing volunteer")
                snapshot_org = db.get(Organization, snapshot.org_id) if snapshot.org_id > 0 else None
                if snapshot_org is None:
                    raise ChainBrokenError(f"audit record {record.id} references a missing organization")
                items.append(
                    PendingMembershipAuditItem(
                        record_id=record.id,
                        status=snapshot.status,
                        volunteer_id=volunteer.id,
                        volunteer_name=volunteer.real_name,
                        org_id=snapshot_org.id,
                        org_name=snapshot_org.org_name,
                        created_at=record.created_at,
                    )
                )
            return PendingMembershipAuditPage(total=total, items=items)

        return self.runner.read(_list)

    def submit_verification(self, actor: Actor) -> int:
        """File an identity verification request for the actor's own profile."""

        def _submit(db: Session) -> int:
            if actor.is_organization:
                profile = get_organization_for_actor(db, actor)
                target_type = TARGET_ORGANIZATION_VERIFICATION
            else:
                profile = get_volunteer_for_actor(db, actor)
                target_type = TARGET_VOLUNTEER_VERIFICATION
            if profile.audit_status == PROFILE_AUDIT_APPROVED:
                raise StateConflictError("profile already verified")

            subject_key = f"{target_type}:{profile.id}"
            if find_pending_records(db, target_type=target_type, subject_key=subject_key, operation_type=None):
                raise StateConflictError("a verification request is already pending")

            current = ProfileSnapshot.model_validate(profile)
            record = create_pending_record(
                db,
                target_type=target_type,
                operation_type=OPERATION_UPDATE,
                creator_id=actor.account_id,
                target_id=profile.id,
                subject_key=subject_key,
                old_content=dump_snapshot(current),
                new_content=dump_snapshot(current.model_copy(update={"audit_status": PROFILE_AUDIT_APPROVED})),
            )
            return record.id

        record_id = self.runner.run(_submit)
        logger.info("Verification requested: account_id=%d record_id=%d", actor.account_id, record_id)
        return record_id
