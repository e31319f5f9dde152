import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
)

from app.database import Base, utcnow
from app.models.enums import ProjectStatus, ProjectType, sql_values


class Client(Base):
    __tablename__ = "clients"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    address = Column(Text, nullable=True)
    siren = Column(String(9), nullable=True)
    siret = Column(String(14), nullable=True)
    tva_intra = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = Column(String, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    role = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Project(Base):
    __tablename__ = "projects"

    __table_args__ = (
        CheckConstraint(f"type IN ({sql_values(ProjectType)})", name="ck_projects_type"),
        CheckConstraint(f"status IN ({sql_values(ProjectStatus)})", name="ck_projects_status"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_number = Column(String, nullable=False, unique=True)
    designation = Column(String, nullable=False)

    type = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default=ProjectStatus.PREVU.value)

    client_id = Column(String, ForeignKey("clients.id"), nullable=True, index=True)
    contact_id = Column(String, ForeignKey("contacts.id"), nullable=True)

    project_manager = Column(String, nullable=True)
    project_manager_email = Column(String, nullable=True, index=True)

    order_number = Column(String, nullable=True)
    order_date = Column(Date, nullable=True)
    order_amount = Column(Numeric(14, 2), nullable=True)  # FORFAIT
    quote_number = Column(String, nullable=True)
    quote_date = Column(Date, nullable=True)

    # AT: sold days and daily rates per labor category
    at_days_sold_bo = Column(Numeric(10, 3), nullable=True)
    at_days_sold_site = Column(Numeric(10, 3), nullable=True)
    at_daily_rate_bo = Column(Numeric(12, 2), nullable=True)
    at_daily_rate_site = Column(Numeric(12, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
