from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import DeliverableStatus, ProjectStatus, ProjectType


class ClientCreate(BaseModel):
    name: str
    address: Optional[str] = None
    siren: Optional[str] = None
    siret: Optional[str] = None
    tva_intra: Optional[str] = None


class ClientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    address: Optional[str]
    siren: Optional[str]
    siret: Optional[str]
    tva_intra: Optional[str]


class ContactCreate(BaseModel):
    client_id: str
    name: str
    email: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None


class ContactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    name: str
    email: Optional[str]
    role: Optional[str]
    phone: Optional[str]
    active: bool


class ProjectCreate(BaseModel):
    project_number: str
    designation: str
    type: ProjectType
    status: ProjectStatus = ProjectStatus.PREVU
    client_id: Optional[str] = None
    contact_id: Optional[str] = None
    project_manager: Optional[str] = None
    project_manager_email: Optional[str] = None
    order_number: Optional[str] = None
    order_date: Optional[date] = None
    order_amount: Optional[Decimal] = Field(default=None, ge=0)
    quote_number: Optional[str] = None
    quote_date: Optional[date] = None
    at_days_sold_bo: Optional[Decimal] = Field(default=None, ge=0)
    at_days_sold_site: Optional[Decimal] = Field(default=None, ge=0)
    at_daily_rate_bo: Optional[Decimal] = Field(default=None, ge=0)
    at_daily_rate_site: Optional[Decimal] = Field(default=None, ge=0)


class ProjectStatusUpdate(BaseModel):
    status: ProjectStatus


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_number: str
    designation: str
    type: str
    status: str
    client_id: Optional[str]
    contact_id: Optional[str]
    project_manager: Optional[str]
    project_manager_email: Optional[str]
    order_number: Optional[str]
    order_amount: Optional[Decimal]
    at_days_sold_bo: Optional[Decimal]
    at_days_sold_site: Optional[Decimal]
    at_daily_rate_bo: Optional[Decimal]
    at_daily_rate_site: Optional[Decimal]
    created_at: datetime


class DeliverableCreate(BaseModel):
    label: str
    percentage: Decimal = Field(ge=0, le=100)
    amount: Optional[Decimal] = Field(default=None, ge=0)
    target_date: Optional[date] = None


class DeliverableStatusUpdate(BaseModel):
    status: DeliverableStatus
    submission_date: Optional[date] = None


class DeliverableResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    label: str
    percentage: Decimal
    amount: Optional[Decimal]
    target_date: Optional[date]
    submission_date: Optional[date]
    status: str
