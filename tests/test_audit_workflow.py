"""Audit workflow tests: approval dispatch, rejection, memberships and verification."""

import pytest

from volunteer_app.core.errors import (
    ChainBrokenError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
)
from volunteer_app.models import Activity, ActivitySignup, AuditRecord, Organization, OrgMember, Volunteer
from volunteer_app.models.account import PROFILE_AUDIT_APPROVED
from volunteer_app.models.activity import CHECK_NONE, SIGNUP_CANCELED, SIGNUP_SUCCESS
from volunteer_app.models.audit_record import (
    AUDIT_APPROVED,
    AUDIT_PENDING,
    AUDIT_REJECTED,
    AUDIT_RESULT_PASS,
    AUDIT_RESULT_REJECT,
    OPERATION_CREATE,
    OPERATION_DELETE,
    OPERATION_UPDATE,
    TARGET_ACTIVITY_SIGNUP,
    TARGET_MEMBERSHIP,
    TARGET_VOLUNTEER_VERIFICATION,
    membership_subject_key,
    signup_subject_key,
)
from volunteer_app.models.membership import MEMBER_ACTIVE, MEMBER_LEFT, MEMBER_PENDING, ROLE_MANAGER
from volunteer_app.schemas.snapshots import MembershipSnapshot, dump_snapshot
from volunteer_app.services.audit_service import create_pending_record

from conftest import START


def _file_record(runner, **values) -> int:
    return runner.run(lambda db: create_pending_record(db, **values).id)


def test_approving_signup_materializes_it_and_takes_a_seat(signups, audits, seed, clock) -> None:
    org_actor, org_id = seed.organization()
    volunteer_actor, volunteer_id = seed.volunteer()
    activity_id = seed.activity(org_id, max_people=3)
    record_id = signups.signup(volunteer_actor, activity_id)

    signup_id = audits.approve(org_actor, record_id, reason="welcome")

    signup = seed.get(ActivitySignup, signup_id)
    assert signup.activity_id == activity_id
    assert signup.volunteer_id == volunteer_id
    assert signup.status == SIGNUP_SUCCESS
    assert seed.get(Activity, activity_id).current_people == 1

    record = seed.get(AuditRecord, record_id)
    assert record.status == AUDIT_APPROVED
    assert record.audit_result == AUDIT_RESULT_PASS
    assert record.target_id == signup_id
    assert record.auditor_id == org_actor.account_id
    assert record.reject_reason is None
    assert record.audit_time is not None

    with pytest.raises(StateConflictError):
        audits.approve(org_actor, record_id)
    with pytest.raises(StateConflictError):
        audits.reject(org_actor, record_id, "too late")


def test_only_organizations_resolve_audits(signups, audits, seed) -> None:
    _org_actor, org_id = seed.organization()
    volunteer_actor, _volunteer_id = seed.volunteer()
    activity_id = seed.activity(org_id)
    record_id = signups.signup(volunteer_actor, activity_id)

    with pytest.raises(PermissionDeniedError):
        audits.approve(volunteer_actor, record_id)
    with pytest.raises(PermissionDeniedError):
        audits.reject(volunteer_actor, record_id, "no")
    assert seed.get(AuditRecord, record_id).status == AUDIT_PENDING


def test_approval_fails_when_activity_filled_meanwhile(signups, audits, seed) -> None:
    org_actor, org_id = seed.organization()
    first_actor, _first_id = seed.volunteer("Ada Lovelace")
    second_actor, second_id = seed.volunteer("Grace Hopper")
    activity_id = seed.activity(org_id, max_people=1)
    first_record = signups.signup(first_actor, activity_id)
    second_record = signups.signup(second_actor, activity_id)

    audits.approve(org_actor, first_record)
    with pytest.raises(StateConflictError):
        audits.approve(org_actor, second_record)

    assert seed.get(AuditRecord, second_record).status == AUDIT_PENDING
    assert seed.signup_for(activity_id, second_id) is None
    assert seed.get(Activity, activity_id).current_people == 1


def test_approval_reactivates_canceled_signup(signups, audits, seed, clock) -> None:
    org_actor, org_id = seed.organization()
    volunteer_actor, volunteer_id = seed.volunteer()
    activity_id = seed.activity(org_id, max_people=2)
    signup_id = seed.approved_signup(activity_id, volunteer_id)
    signups.cancel(volunteer_actor, activity_id)
    assert seed.get(ActivitySignup, signup_id).status == SIGNUP_CANCELED
    record_id = signups.signup(volunteer_actor, activity_id)
    clock.advance(days=1)

    assert audits.approve(org_actor, record_id) == signup_id

    signup = seed.get(ActivitySignup, signup_id)
    assert signup.status == SIGNUP_SUCCESS
    assert signup.signup_time is not None
    assert seed.get(Activity, activity_id).current_people == 1

def test_reactivated_signup_starts_attendance_over(signups, audits, seed, clock) -> None:
    org_actor, org_id = seed.organization()
    volunteer_actor, _volunteer_id = seed.volunteer()
    activity_id = seed.activity(org_id, duration="8.00", max_people=2)
    signup_id = audits.approve(org_actor, signups.signup(volunteer_actor, activity_id))
    signups.check_in(volunteer_actor, activity_id)
    clock.advance(hours=1)
    signups.cancel(volunteer_actor, activity_id)
    clock.advance(days=3)

    record_id = signups.signup(volunteer_actor, activity_id)
    assert audits.approve(org_actor, record_id) == signup_id

    signup = seed.get(ActivitySignup, signup_id)
    assert signup.status == SIGNUP_SUCCESS
    assert signup.check_in_status == CHECK_NONE
    assert signup.check_in_time is None
    assert signup.check_out_status == CHECK_NONE
    assert signup.check_out_time is None
    with pytest.raises(StateConflictError):
        signups.check_out(volunteer_actor, activity_id)
    assert seed.logs_for(signup_id) == []


def test_signup_with_settled_hours_is_not_reactivated(signups, audits, seed, clock) -> None:
    org_actor, org_id = seed.organization()
    volunteer_actor, volunteer_id = seed.volunteer()
    activity_id = seed.activity(org_id, max_people=2)
    signup_id = seed.approved_signup(activity_id, volunteer_id)
    signups.check_in(volunteer_actor, activity_id)
    clock.advance(hours=1)
    signups.check_out(volunteer_actor, activity_id)
    signups.cancel(volunteer_actor, activity_id)
    record_id = signups.signup(volunteer_actor, activity_id)

    with pytest.raises(StateConflictError):
        audits.approve(org_actor, record_id)

    assert seed.get(AuditRecord, record_id).status == AUDIT_PENDING
    assert seed.get(ActivitySignup, signup_id).status == SIGNUP_CANCELED
    assert seed.get(Activity, activity_id).current_people == 0
    assert len(seed.logs_for(signup_id)) == 1



def test_approval_of_already_materialized_signup_is_a_no_op(signups, audits, seed) -> None:
    org_actor, org_id = seed.organization()
    volunteer_actor, volunteer_id = seed.volunteer()
    activity_id = seed.activity(org_id, max_people=2)
    record_id = signups.signup(volunteer_actor, activity_id)
    signup_id = seed.approved_signup(activity_id, volunteer_id)

    assert audits.approve(org_actor, record_id) == signup_id
    assert seed.get(Activity, activity_id).current_people == 1
    assert seed.get(AuditRecord, record_id).status == AUDIT_APPROVED


def test_reject_requires_reason_and_creates_nothing(signups, audits, seed) -> None:
    org_actor, org_id = seed.organization()
    volunteer_actor, volunteer_id = seed.volunteer()
    activity_id = seed.activity(org_id)
    record_id = signups.signup(volunteer_actor, activity_id)

    with pytest.raises(InvalidInputError):
        audits.reject(org_actor, record_id, "  ")
    with pytest.raises(InvalidInputError):
        audits.reject(org_actor, record_id, "x" * 501)

    audits.reject(org_actor, record_id, "activity is for members only")

    record = seed.get(AuditRecord, record_id)
    assert record.status == AUDIT_REJECTED
    assert record.audit_result == AUDIT_RESULT_REJECT
    assert record.reject_reason == "activity is for members only"
    assert record.auditor_id == org_actor.account_id
    assert seed.signup_for(activity_id, volunteer_id) is None

    assert signups.signup(volunteer_actor, activity_id) != record_id


def test_malformed_snapshot_is_reported_as_broken(runner, audits, seed) -> None:
    org_actor, _org_id = seed.organization()
    record_id = _file_record(
        runner,
        target_type=TARGET_ACTIVITY_SIGNUP,
        operation_type=OPERATION_CREATE,
        creator_id=org_actor.account_id,
        new_content="not json",
    )

    with pytest.raises(ChainBrokenError):
        audits.approve(org_actor, record_id)
    assert seed.get(AuditRecord, record_id).status == AUDIT_PENDING


def test_unknown_target_type_is_rejected(runner, audits, seed) -> None:
    org_actor, _org_id = seed.organization()
    record_id = _file_record(
        runner,
        target_type="badge",
        operation_type=OPERATION_CREATE,
        creator_id=org_actor.account_id,
        new_content="{}",
    )

    with pytest.raises(InvalidInputError):
        audits.approve(org_actor, record_id)
    with pytest.raises(InvalidInputError):
        audits.reject(org_actor, record_id, "unsupported")
    with pytest.raises(NotFoundError):
        audits.approve(org_actor, 9999)
    with pytest.raises(InvalidInputError):
        audits.approve(org_actor, 0)


def test_membership_join_and_leave_round_trip(memberships, audits, seed, clock) -> None:
    org_actor, org_id = seed.organization()
    volunteer_actor, volunteer_id = seed.volunteer()

    join_record = memberships.join_organization(volunteer_actor, org_id)
    record = seed.get(AuditRecord, join_record)
    assert record.target_type == TARGET_MEMBERSHIP
    assert record.operation_type == OPERATION_CREATE
    assert record.subject_key == membership_subject_key(org_id, volunteer_id)

    with pytest.raises(StateConflictError):
        memberships.join_organization(volunteer_actor, org_id)

    clock.advance(hours=1)
    member_id = audits.approve(org_actor, join_record)
    member = seed.get(OrgMember, member_id)
    assert member.status == MEMBER_ACTIVE
    assert member.org_id == org_id
    assert member.volunteer_id == volunteer_id
    assert member.joined_at is not None

    with pytest.raises(StateConflictError):
        memberships.join_organization(volunteer_actor, org_id)

    leave_record = memberships.leave_organization(volunteer_actor, member_id)
    leave = seed.get(AuditRecord, leave_record)
    assert leave.operation_type == OPERATION_DELETE
    assert leave.target_id == member_id
    with pytest.raises(StateConflictError):
        memberships.leave_organization(volunteer_actor, member_id)

    assert audits.approve(org_actor, leave_record) == member_id
    assert seed.get(OrgMember, member_id).status == MEMBER_LEFT
    with pytest.raises(StateConflictError):
        memberships.leave_organization(volunteer_actor, member_id)

    assert memberships.join_organization(volunteer_actor, org_id) > leave_record


def test_membership_requests_are_guarded(memberships, audits, seed) -> None:
    org_actor, org_id = seed.organization()
    volunteer_actor, _volunteer_id = seed.volunteer("Ada Lovelace")
    other_actor, _other_id = seed.volunteer("Grace Hopper")
    member_id = audits.approve(org_actor, memberships.join_organization(volunteer_actor, org_id))

    with pytest.raises(PermissionDeniedError):
        memberships.leave_organization(other_actor, member_id)
    with pytest.raises(NotFoundError):
        memberships.leave_organization(volunteer_actor, 9999)
    with pytest.raises(NotFoundError):
        memberships.join_organization(volunteer_actor, 9999)
    with pytest.raises(PermissionDeniedError):
        memberships.join_organization(org_actor, org_id)


def test_approving_duplicate_membership_create_conflicts(runner, memberships, audits, seed) -> None:
    org_actor, org_id = seed.organization()
    volunteer_actor, volunteer_id = seed.volunteer()
    audits.approve(org_actor, memberships.join_organization(volunteer_actor, org_id))
    stray_record = _file_record(
        runner,
        target_type=TARGET_MEMBERSHIP,
        operation_type=OPERATION_CREATE,
        creator_id=volunteer_actor.account_id,
        new_content=dump_snapshot(MembershipSnapshot(org_id=org_id, volunteer_id=volunteer_id)),
    )

    with pytest.raises(StateConflictError):
        audits.approve(org_actor, stray_record)
    assert seed.count(OrgMember) == 1


def test_membership_update_merges_snapshot(runner, memberships, audits, seed) -> None:
    org_actor, org_id = seed.organization()
    volunteer_actor, _volunteer_id = seed.volunteer()
    member_id = audits.approve(org_actor, memberships.join_organization(volunteer_actor, org_id))
    record_id = _file_record(
        runner,
        target_type=TARGET_MEMBERSHIP,
        operation_type=OPERATION_UPDATE,
        creator_id=org_actor.account_id,
        target_id=member_id,
        new_content=dump_snapshot(MembershipSnapshot(role=ROLE_MANAGER)),
    )

    assert audits.approve(org_actor, record_id) == member_id

    member = seed.get(OrgMember, member_id)
    assert member.role == ROLE_MANAGER
    assert member.status == MEMBER_ACTIVE

def test_foreign_organization_cannot_resolve_signup_records(signups, audits, seed) -> None:
    _org_actor, org_id = seed.organization("Green Hands")
    other_actor, _other_id = seed.organization("Blue Sky")
    volunteer_actor, volunteer_id = seed.volunteer()
    activity_id = seed.activity(org_id)
    record_id = signups.signup(volunteer_actor, activity_id)

    with pytest.raises(PermissionDeniedError):
        audits.approve(other_actor, record_id)
    with pytest.raises(PermissionDeniedError):
        audits.reject(other_actor, record_id, "not ours to decide")

    assert seed.get(AuditRecord, record_id).status == AUDIT_PENDING
    assert seed.signup_for(activity_id, volunteer_id) is None
    assert seed.get(Activity, activity_id).current_people == 0


def test_foreign_organization_cannot_resolve_membership_records(runner, memberships, audits, seed) -> None:
    org_actor, org_id = seed.organization("Green Hands")
    other_actor, _other_id = seed.organization("Blue Sky")
    volunteer_actor, _volunteer_id = seed.volunteer()
    join_record = memberships.join_organization(volunteer_actor, org_id)

    with pytest.raises(PermissionDeniedError):
        audits.approve(other_actor, join_record)
    assert seed.count(OrgMember) == 0

    member_id = audits.approve(org_actor, join_record)
    update_record = _file_record(
        runner,
        target_type=TARGET_MEMBERSHIP,
        operation_type=OPERATION_UPDATE,
        creator_id=other_actor.account_id,
        target_id=member_id,
        new_content=dump_snapshot(MembershipSnapshot(role=ROLE_MANAGER)),
    )
    with pytest.raises(PermissionDeniedError):
        audits.approve(other_actor, update_record)
    with pytest.raises(PermissionDeniedError):
        audits.reject(other_actor, update_record, "not ours to decide")
    assert seed.get(AuditRecord, update_record).status == AUDIT_PENDING
    assert seed.get(OrgMember, member_id).role != ROLE_MANAGER


def test_approving_membership_record_twice_conflicts(memberships, audits, seed) -> None:
    org_actor, org_id = seed.organization()
    volunteer_actor, _volunteer_id = seed.volunteer()
    record_id = memberships.join_organization(volunteer_actor, org_id)
    member_id = audits.approve(org_actor, record_id)

    with pytest.raises(StateConflictError, match="already processed"):
        audits.approve(org_actor, record_id)

    assert seed.count(OrgMember) == 1
    assert seed.get(AuditRecord, record_id).target_id == member_id


def test_membership_update_refuses_unknown_role_or_status(runner, memberships, audits, seed) -> None:
    org_actor, org_id = seed.organization()
    volunteer_actor, _volunteer_id = seed.volunteer()
    member_id = audits.approve(org_actor, memberships.join_organization(volunteer_actor, org_id))

    for snapshot in (MembershipSnapshot(role="owner"), MembershipSnapshot(status="archived")):
        record_id = _file_record(
            runner,
            target_type=TARGET_MEMBERSHIP,
            operation_type=OPERATION_UPDATE,
            creator_id=org_actor.account_id,
            target_id=member_id,
            new_content=dump_snapshot(snapshot),
        )
        with pytest.raises(InvalidInputError):
            audits.approve(org_actor, record_id)
        assert seed.get(AuditRecord, record_id).status == AUDIT_PENDING

    member = seed.get(OrgMember, member_id)
    assert member.status == MEMBER_ACTIVE
    assert member.role != "owner"



def test_pending_membership_listing_renders_snapshots(memberships, audits, seed) -> None:
    org_actor, org_id = seed.organization("Green Hands")
    other_org_actor, _other_org_id = seed.organization("Blue Sky")
    volunteer_actor, volunteer_id = seed.volunteer("Ada Lovelace")
    record_id = memberships.join_organization(volunteer_actor, org_id)

    page = audits.list_pending_membership_audits(org_actor)

    assert page.total == 1
    (item,) = page.items
    assert item.record_id == record_id
    assert item.status == MEMBER_PENDING
    assert item.volunteer_id == volunteer_id
    assert item.volunteer_name == "Ada Lovelace"
    assert item.org_id == org_id
    assert item.org_name == "Green Hands"

    assert audits.list_pending_membership_audits(other_org_actor).total == 0
    with pytest.raises(PermissionDeniedError):
        audits.list_pending_membership_audits(volunteer_actor)


def test_pending_membership_listing_reports_broken_snapshots(runner, audits, seed) -> None:
    org_actor, org_id = seed.organization()
    _file_record(
        runner,
        target_type=TARGET_MEMBERSHIP,
        operation_type=OPERATION_CREATE,
        creator_id=org_actor.account_id,
        subject_key=membership_subject_key(org_id, 9999),
        new_content=dump_snapshot(MembershipSnapshot(org_id=org_id, volunteer_id=9999, applied_at=START)),
    )

    with pytest.raises(ChainBrokenError):
        audits.list_pending_membership_audits(org_actor)


def test_pending_membership_listing_reports_unreadable_snapshot(runner, audits, seed) -> None:
    org_actor, org_id = seed.organization()
    _volunteer_actor, volunteer_id = seed.volunteer()
    _file_record(
        runner,
        target_type=TARGET_MEMBERSHIP,
        operation_type=OPERATION_CREATE,
        creator_id=org_actor.account_id,
        subject_key=membership_subject_key(org_id, volunteer_id),
        new_content="{broken",
    )

    with pytest.raises(ChainBrokenError):
        audits.list_pending_membership_audits(org_actor)


def test_verification_request_then_approval(audits, seed) -> None:
    org_actor, _org_id = seed.organization()
    volunteer_actor, volunteer_id = seed.volunteer()

    record_id = audits.submit_verification(volunteer_actor)

    record = audits.get_record(record_id)
    assert record.target_type == TARGET_VOLUNTEER_VERIFICATION
    assert record.operation_type == OPERATION_UPDATE
    assert record.target_id == volunteer_id
    assert record.status == AUDIT_PENDING
    with pytest.raises(StateConflictError):
        audits.submit_verification(volunteer_actor)

    assert audits.approve(org_actor, record_id) == volunteer_id
    assert seed.get(Volunteer, volunteer_id).audit_status == PROFILE_AUDIT_APPROVED
    with pytest.raises(StateConflictError):
        audits.submit_verification(volunteer_actor)


def test_organization_verification(audits, seed) -> None:
    org_actor, org_id = seed.organization()
    reviewer_actor, _reviewer_org_id = seed.organization("Review Board")

    record_id = audits.submit_verification(org_actor)
    audits.approve(reviewer_actor, record_id)

    assert seed.get(Organization, org_id).audit_status == PROFILE_AUDIT_APPROVED


def test_get_record_missing(audits) -> None:
    with pytest.raises(NotFoundError):
        audits.get_record(9999)


def test_signup_record_subject_key_matches_snapshot(signups, audits, seed) -> None:
    _org_actor, org_id = seed.organization()
    volunteer_actor, volunteer_id = seed.volunteer()
    activity_id = seed.activity(org_id)

    record = audits.get_record(signups.signup(volunteer_actor, activity_id))

    assert record.new_content
    assert seed.get(AuditRecord, record.id).subject_key == signup_subject_key(activity_id, volunteer_id)
    assert seed.signup_for(activity_id, volunteer_id) is None
