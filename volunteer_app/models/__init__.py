"""Application models package."""

from volunteer_app.models.account import Account, Organization, Volunteer
from volunteer_app.models.activity import Activity, ActivitySignup
from volunteer_app.models.audit_record import AuditRecord
from volunteer_app.models.membership import OrgMember
from volunteer_app.models.work_hour import WorkHourLog

__all__ = [
    "Account", "Volunteer", "Organization", "Activity", "ActivitySignup", "AuditRecord", "OrgMember", "WorkHourLog",
]
