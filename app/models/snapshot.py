import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String

from app.database import Base, JSONType, utcnow
from app.models.enums import SnapshotType, sql_values


class ProjectSituationSnapshot(Base):
    """
    Immutable computed fact about a project.

    Rows are only ever inserted; UPDATE/DELETE are rejected by database
    triggers (see app.services.append_only_guards). Corrections are new
    RECTIFICATIF rows pointing at the superseded one.
    """

    __tablename__ = "project_situation_snapshots"

    __table_args__ = (
        CheckConstraint(f"type IN ({sql_values(SnapshotType)})", name="ck_snapshots_type"),
        Index("ix_snapshots_project_type_period", "project_id", "type", "year", "month"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String, nullable=False)
    year = Column(Integer, nullable=True)
    month = Column(Integer, nullable=True)

    computed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    computed_by = Column(String, nullable=False)
    source_ref = Column(String, nullable=True)

    data = Column(JSONType, nullable=False)

    supersedes_snapshot_id = Column(
        String,
        ForeignKey("project_situation_snapshots.id"),
        nullable=True,
        index=True,
    )
