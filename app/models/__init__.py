from app.models.audit_log import AuditLog
from app.models.bordereau import Bordereau, BordereauVersion
from app.models.deliverable import Deliverable
from app.models.esign_agreement import ESignAgreement
from app.models.file_object import FileObject
from app.models.period_lock import PeriodLock
from app.models.project import Client, Contact, Project
from app.models.snapshot import ProjectSituationSnapshot
from app.models.time_entry import TimeEntry

__all__ = [
    "AuditLog",
    "Bordereau",
    "BordereauVersion",
    "Client",
    "Contact",
    "Deliverable",
    "ESignAgreement",
    "FileObject",
    "PeriodLock",
    "Project",
    "ProjectSituationSnapshot",
    "TimeEntry",
]
