import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from app.database import Base, utcnow
from app.models.enums import BordereauStatus, BordereauType, sql_values


class Bordereau(Base):
    __tablename__ = "bordereaux"

    __table_args__ = (
        CheckConstraint(f"type IN ({sql_values(BordereauType)})", name="ck_bordereaux_type"),
        CheckConstraint("base_type IN ('BA', 'BL')", name="ck_bordereaux_base_type"),
        CheckConstraint(f"status IN ({sql_values(BordereauStatus)})", name="ck_bordereaux_status"),
        CheckConstraint(
            "(period_year IS NULL AND period_month IS NULL) "
            "OR (period_year IS NOT NULL AND period_month BETWEEN 1 AND 12)",
            name="ck_bordereaux_period",
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String, nullable=False)
    # BA/BL lineage; a RECTIFICATIF keeps the type it corrects here
    base_type = Column(String, nullable=False)
    status = Column(String, nullable=False, default=BordereauStatus.GENERATED.value)

    period_year = Column(Integer, nullable=True)
    period_month = Column(Integer, nullable=True)

    snapshot_id = Column(String, ForeignKey("project_situation_snapshots.id"), nullable=False)
    is_live = Column(Boolean, nullable=False, default=True)

    created_by = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    signed_at = Column(DateTime(timezone=True), nullable=True)
    signed_file_id = Column(String, ForeignKey("file_objects.id"), nullable=True)
    audit_trail_file_id = Column(String, ForeignKey("file_objects.id"), nullable=True)

    versions = relationship(
        "BordereauVersion",
        back_populates="bordereau",
        order_by="BordereauVersion.version_number",
    )


# At most one live bordereau per (project, lineage, period)
Index(
    "uq_bordereaux_live_period",
    Bordereau.project_id,
    Bordereau.base_type,
    func.coalesce(Bordereau.period_year, 0),
    func.coalesce(Bordereau.period_month, 0),
    unique=True,
    postgresql_where=Bordereau.is_live.is_(True),
    sqlite_where=Bordereau.is_live.is_(True),
)


class BordereauVersion(Base):
    __tablename__ = "bordereau_versions"

    __table_args__ = (
        UniqueConstraint("bordereau_id", "version_number", name="uq_bordereau_versions_number"),
        CheckConstraint("version_number >= 1", name="ck_bordereau_versions_number_positive"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    bordereau_id = Column(String, ForeignKey("bordereaux.id", ondelete="CASCADE"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)

    file_id = Column(String, ForeignKey("file_objects.id"), nullable=False)
    snapshot_id = Column(String, ForeignKey("project_situation_snapshots.id"), nullable=False)

    generated_by = Column(String, nullable=False)
    generated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    bordereau = relationship("Bordereau", back_populates="versions")
