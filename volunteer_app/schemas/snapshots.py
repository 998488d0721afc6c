"""Typed snapshot payloads embedded in audit records.

Each target type has one payload model. Snapshots are parsed only by the
handler for their target type; a snapshot that fails to parse or lacks its
identifying fields is reported as a broken link.
"""

from __future__ import annotations

from datetime import datetime
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from volunteer_app.core.errors import ChainBrokenError


class SnapshotModel(BaseModel):
    """Base for snapshot payloads; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", from_attributes=True)


class SignupSnapshot(SnapshotModel):
    """Proposed activity signup."""

    id: int | None = None
    activity_id: int = 0
    volunteer_id: int = 0
    status: str = ""


class MembershipSnapshot(SnapshotModel):
    """Proposed or prior organization membership."""

    id: int | None = None
    org_id: int = 0
    volunteer_id: int = 0
    role: str = ""
    status: str = ""
    applied_at: datetime | None = None
    joined_at: datetime | None = None


class ProfileSnapshot(SnapshotModel):
    """Identity verification payload for a volunteer or organization profile."""

    id: int | None = None
    audit_status: str = ""
    real_name: str = ""
    org_name: str = ""


SnapshotT = TypeVar("SnapshotT", bound=SnapshotModel)


def parse_snapshot(model: type[SnapshotT], raw: str | None, *, record_id: int | None = None) -> SnapshotT:
    """Parse a JSON snapshot, raising ChainBrokenError when it is unreadable."""
    if not raw:
        raise ChainBrokenError(f"audit record {record_id} has an empty snapshot")
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        raise ChainBrokenError(f"audit record {record_id} has a malformed snapshot") from exc


def dump_snapshot(snapshot: SnapshotModel) -> str:
    return snapshot.model_dump_json()
