"""Shared SQLAlchemy base declarative class and model imports."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for ORM models."""


# Import model modules so metadata is populated before create_all.
from volunteer_app.models import account as _account  # noqa: E402,F401
from volunteer_app.models import activity as _activity  # noqa: E402,F401
from volunteer_app.models import audit_record as _audit_record  # noqa: E402,F401
from volunteer_app.models import membership as _membership  # noqa: E402,F401
from volunteer_app.models import work_hour as _work_hour  # noqa: E402,F401
