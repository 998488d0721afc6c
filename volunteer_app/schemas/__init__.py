"""Schema exports."""

from volunteer_app.schemas.activity import (
    CancelResponse,
    CheckInResponse,
    CheckOutResponse,
    SignupResponse,
    SupplementAttendanceRequest,
    SupplementAttendanceResponse,
)
from volunteer_app.schemas.audit import (
    ApproveAuditRequest,
    AuditRecordRead,
    AuditRequestResponse,
    AuditResolutionResponse,
    PendingMembershipAuditItem,
    PendingMembershipAuditPage,
    RejectAuditRequest,
)
from volunteer_app.schemas.auth import Actor
from volunteer_app.schemas.work_hour import (
    ChainVerificationResponse,
    RecalculateWorkHourRequest,
    RecalculateWorkHourResponse,
    VoidWorkHourRequest,
    VoidWorkHourResponse,
    WorkHourLogPage,
    WorkHourLogRead,
)

__all__ = [
    "Actor",
    "ApproveAuditRequest",
    "AuditRecordRead",
    "AuditRequestResponse",
    "AuditResolutionResponse",
    "CancelResponse",
    "ChainVerificationResponse",
    "CheckInResponse",
    "CheckOutResponse",
    "PendingMembershipAuditItem",
    "PendingMembershipAuditPage",
    "RecalculateWorkHourRequest",
    "RecalculateWorkHourResponse",
    "RejectAuditRequest",
    "SignupResponse",
    "SupplementAttendanceRequest",
    "SupplementAttendanceResponse",
    "VoidWorkHourRequest",
    "VoidWorkHourResponse",
    "WorkHourLogPage",
    "WorkHourLogRead",
]
