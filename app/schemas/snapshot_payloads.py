"""
Typed payloads stored in ProjectSituationSnapshot.data.

Each payload carries a ``kind`` discriminant so stored JSON decodes back into
exactly one model. Decimal figures serialize as strings in JSON mode, which
keeps hour and amount values exact.
"""
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from app.models.enums import SnapshotType


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True)


class SoldTerms(_Payload):
    bo_days: Decimal
    site_days: Decimal
    bo_rate: Decimal
    site_rate: Decimal


class CategoryTotals(_Payload):
    bo_hours: Decimal
    site_hours: Decimal
    bo_days: Decimal
    site_days: Decimal
    amount: Decimal


class RemainingTotals(_Payload):
    bo_days: Decimal
    site_days: Decimal
    amount: Decimal


class SnapshotAlerts(_Payload):
    exceeded_sold: bool


class SnapshotSource(_Payload):
    project_id: str
    year: int
    month: int
    time_entry_ids: list[str]


class AtSnapshotPayload(_Payload):
    kind: Literal["AT_PERIOD"] = "AT_PERIOD"
    project_id: str
    year: int
    month: int
    sold: SoldTerms
    month_totals: CategoryTotals
    cumulative: CategoryTotals
    remaining: RemainingTotals
    alerts: SnapshotAlerts
    source: SnapshotSource


class ForfaitProgressPayload(_Payload):
    kind: Literal["FORFAIT_PROGRESS"] = "FORFAIT_PROGRESS"
    project_id: str
    order_amount: Decimal
    delivered_percentage: Decimal
    validated_percentage: Decimal
    delivered_amount: Decimal
    remaining_amount: Decimal
    deliverable_ids: list[str]


Situation = Annotated[
    Union[AtSnapshotPayload, ForfaitProgressPayload],
    Field(discriminator="kind"),
]


class StoredFileRef(_Payload):
    storage_key: str
    file_name: str
    content_type: str
    size: int
    checksum: Optional[str] = None


class BordereauGeneratedPayload(_Payload):
    kind: Literal["BORDEREAU_GENERATED"] = "BORDEREAU_GENERATED"
    project_id: str
    bordereau_type: str
    period_year: Optional[int] = None
    period_month: Optional[int] = None
    file: StoredFileRef
    situation: Optional[Situation] = None


class SignedPayload(_Payload):
    kind: Literal["BORDEREAU_SIGNED"] = "BORDEREAU_SIGNED"
    bordereau_id: str
    status: Literal["SIGNED"] = "SIGNED"
    source_ref: Optional[str] = None
    signed_file_id: Optional[str] = None
    audit_trail_file_id: Optional[str] = None


class RectificatifPayload(_Payload):
    kind: Literal["RECTIFICATIF"] = "RECTIFICATIF"
    reason: Literal["RECTIFICATIF_BORDEREAU", "UNLOCK_AFTER_SIGNATURE"]
    project_id: str
    period_year: Optional[int] = None
    period_month: Optional[int] = None
    signed_snapshot_id: Optional[str] = None
    bordereau_type: Optional[str] = None
    file: Optional[StoredFileRef] = None
    situation: Optional[Situation] = None


SnapshotPayload = Annotated[
    Union[AtSnapshotPayload, BordereauGeneratedPayload, SignedPayload, RectificatifPayload],
    Field(discriminator="kind"),
]

_payload_adapter = TypeAdapter(SnapshotPayload)

PAYLOAD_KINDS_BY_SNAPSHOT_TYPE = {
    SnapshotType.MONTH_END: {"AT_PERIOD"},
    SnapshotType.MANUAL: {"AT_PERIOD"},
    SnapshotType.BORDEREAU_GENERATED: {"BORDEREAU_GENERATED"},
    SnapshotType.BORDEREAU_SIGNED: {"BORDEREAU_SIGNED"},
    SnapshotType.RECTIFICATIF: {"RECTIFICATIF"},
}


def encode_payload(payload: _Payload) -> dict[str, Any]:
    return payload.model_dump(mode="json")


def decode_payload(data: Any) -> SnapshotPayload:
    return _payload_adapter.validate_python(data)
