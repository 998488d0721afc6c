"""Shared fixtures: a SQLite database per test and services bound to it."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from volunteer_app.db.base import Base
from volunteer_app.db.transaction import TransactionRunner
from volunteer_app.models import Account, Activity, ActivitySignup, Organization, Volunteer, WorkHourLog
from volunteer_app.models.account import IDENTITY_ORGANIZATION, IDENTITY_VOLUNTEER
from volunteer_app.models.activity import ACTIVITY_RECRUITING, SIGNUP_SUCCESS
from volunteer_app.schemas.auth import Actor
from volunteer_app.services.activity_service import ActivityService
from volunteer_app.services.audit_service import AuditService
from volunteer_app.services.membership_service import MembershipService
from volunteer_app.services.signup_service import SignupService
from volunteer_app.services.work_hour_service import WorkHourService

START = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class Seeder:
    """Direct inserts for rows that are outside the services under test."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory
        self._counter = 0

    def _next(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    def organization(self, name: str = "Green Hands") -> tuple[Actor, int]:
        with self.session_factory() as session:
            account = Account(username=self._next("org"), identity_type=IDENTITY_ORGANIZATION)
            session.add(account)
            session.flush()
            organization = Organization(account_id=account.id, org_name=name)
            session.add(organization)
            session.commit()
            return Actor(account_id=account.id, identity_type=IDENTITY_ORGANIZATION), organization.id

    def volunteer(self, real_name: str = "Ada Lovelace") -> tuple[Actor, int]:
        with self.session_factory() as session:
            account = Account(username=self._next("vol"), identity_type=IDENTITY_VOLUNTEER)
            session.add(account)
            session.flush()
            volunteer = Volunteer(account_id=account.id, real_name=real_name)
            session.add(volunteer)
            session.commit()
            return Actor(account_id=account.id, identity_type=IDENTITY_VOLUNTEER), volunteer.id

    def activity(
        self,
        org_id: int,
        *,
        duration: str = "2.00",
        max_people: int = 0,
        current_people: int = 0,
        status: str = ACTIVITY_RECRUITING,
    ) -> int:
        with self.session_factory() as session:
            activity = Activity(
                org_id=org_id,
                title=self._next("activity"),
                status=status,
                duration=Decimal(duration),
                max_people=max_people,
                current_people=current_people,
            )
            session.add(activity)
            session.commit()
            return activity.id

    def approved_signup(self, activity_id: int, volunteer_id: int) -> int:
        with self.session_factory() as session:
            signup = ActivitySignup(activity_id=activity_id, volunteer_id=volunteer_id, status=SIGNUP_SUCCESS)
            session.add(signup)
            activity = session.get(Activity, activity_id)
            activity.current_people += 1
            session.commit()
            return signup.id

    def get(self, model, row_id: int):
        with self.session_factory() as session:
            return session.get(model, row_id)

    def update(self, model, row_id: int, **values) -> None:
        with self.session_factory() as session:
            row = session.get(model, row_id)
            for key, value in values.items():
                setattr(row, key, value)
            session.commit()

    def signup_for(self, activity_id: int, volunteer_id: int) -> ActivitySignup | None:
        with self.session_factory() as session:
            return session.scalar(
                select(ActivitySignup).where(
                    ActivitySignup.activity_id == activity_id,
                    ActivitySignup.volunteer_id == volunteer_id,
                )
            )

    def logs_for(self, signup_id: int) -> list[WorkHourLog]:
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(WorkHourLog)
                    .where(WorkHourLog.signup_id == signup_id)
                    .order_by(WorkHourLog.work_hour_version)
                ).all()
            )

    def count(self, model) -> int:
        with self.session_factory() as session:
            return len(session.scalars(select(model)).all())


def _build_test_engine(db_file: Path) -> Engine:
    return create_engine(
        f"sqlite:///{db_file}",
        connect_args={"check_same_thread": False},
    )


@pytest.fixture
def engine(tmp_path: Path) -> Engine:
    test_engine = _build_test_engine(tmp_path / "ledger.db")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def runner(session_factory: sessionmaker[Session]) -> TransactionRunner:
    return TransactionRunner(session_factory, sleep=lambda _seconds: None)


@pytest.fixture
def ledger(runner: TransactionRunner, clock: FrozenClock) -> WorkHourService:
    return WorkHourService(runner, clock=clock)


@pytest.fixture
def signups(runner: TransactionRunner, ledger: WorkHourService, clock: FrozenClock) -> SignupService:
    return SignupService(runner, ledger, clock=clock)


@pytest.fixture
def audits(runner: TransactionRunner, clock: FrozenClock) -> AuditService:
    return AuditService(runner, clock=clock)


@pytest.fixture
def activities(runner: TransactionRunner, clock: FrozenClock) -> ActivityService:
    return ActivityService(runner, clock=clock)


@pytest.fixture
def memberships(runner: TransactionRunner, clock: FrozenClock) -> MembershipService:
    return MembershipService(runner, clock=clock)


@pytest.fixture
def seed(session_factory: sessionmaker[Session]) -> Seeder:
    return Seeder(session_factory)
