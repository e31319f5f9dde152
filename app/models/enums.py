from enum import Enum


class ProjectType(str, Enum):
    AT = "AT"
    FORFAIT = "FORFAIT"


class ProjectStatus(str, Enum):
    PREVU = "PREVU"
    EN_COURS = "EN_COURS"
    CLOS = "CLOS"
    ARCHIVE = "ARCHIVE"


class TimeEntryType(str, Enum):
    BO = "BO"
    SITE = "SITE"


class DeliverableStatus(str, Enum):
    NON_REMIS = "NON_REMIS"
    REMIS = "REMIS"
    VALIDE = "VALIDE"


class SnapshotType(str, Enum):
    MONTH_END = "MONTH_END"
    BORDEREAU_GENERATED = "BORDEREAU_GENERATED"
    BORDEREAU_SIGNED = "BORDEREAU_SIGNED"
    RECTIFICATIF = "RECTIFICATIF"
    MANUAL = "MANUAL"


class BordereauType(str, Enum):
    BA = "BA"  # avancement
    BL = "BL"  # livraison
    RECTIFICATIF = "RECTIFICATIF"


class BordereauStatus(str, Enum):
    GENERATED = "GENERATED"
    SIGNED = "SIGNED"


class AgreementStatus(str, Enum):
    SENT = "SENT"
    SIGNED = "SIGNED"
    CANCELLED = "CANCELLED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"


def sql_values(enum_cls) -> str:
    return ", ".join(f"'{member.value}'" for member in enum_cls)
