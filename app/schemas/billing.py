from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import BordereauType, TimeEntryType


class TimeEntryUpsert(BaseModel):
    project_id: str
    year: int
    month: int = Field(ge=1, le=12)
    day: int = Field(ge=1, le=31)
    type: TimeEntryType
    hours: Decimal
    hour_slot: int = Field(default=0, ge=0)
    comment: Optional[str] = None


class TimeEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    year: int
    month: int
    day: int
    type: str
    hour_slot: int
    hours: Decimal
    comment: Optional[str]
    updated_at: datetime


class PeriodRequest(BaseModel):
    project_id: str
    year: int
    month: int = Field(ge=1, le=12)


class UnlockRequest(PeriodRequest):
    reason: str = Field(min_length=1)


class PeriodLockResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: str
    year: int
    month: int
    locked: bool
    locked_by: Optional[str] = None
    locked_at: Optional[datetime] = None
    reason: Optional[str] = None


class SnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    type: str
    year: Optional[int]
    month: Optional[int]
    computed_at: datetime
    computed_by: str
    source_ref: Optional[str]
    supersedes_snapshot_id: Optional[str]
    data: dict[str, Any]


class MonthCloseResponse(BaseModel):
    snapshot: SnapshotResponse
    lock: PeriodLockResponse


class UnlockResponse(BaseModel):
    lock: PeriodLockResponse
    rectificatif_snapshot: Optional[SnapshotResponse] = None


class GenerateRequest(BaseModel):
    project_id: str
    type: BordereauType
    period_year: Optional[int] = None
    period_month: Optional[int] = Field(default=None, ge=1, le=12)


class MarkSignedRequest(BaseModel):
    source_ref: Optional[str] = None


class SendForSignatureRequest(BaseModel):
    signer_email: str = Field(min_length=3)


class BordereauVersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    version_number: int
    file_id: str
    snapshot_id: str
    generated_by: str
    generated_at: datetime


class BordereauResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    type: str
    base_type: str
    status: str
    period_year: Optional[int]
    period_month: Optional[int]
    snapshot_id: str
    is_live: bool
    created_by: str
    created_at: datetime
    signed_at: Optional[datetime]
    signed_file_id: Optional[str]
    audit_trail_file_id: Optional[str]
    versions: list[BordereauVersionResponse] = []


class GenerationResponse(BaseModel):
    bordereau: BordereauResponse
    version: BordereauVersionResponse
    snapshot_id: str
    file_id: str
    rectificatif: bool


class SigningResponse(BaseModel):
    bordereau: BordereauResponse
    snapshot_id: Optional[str]
    already_signed: bool


class AgreementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    bordereau_id: str
    provider_id: str
    status: str
    signer_email: Optional[str]
    created_at: datetime
