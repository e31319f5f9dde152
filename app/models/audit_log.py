import uuid

from sqlalchemy import Column, DateTime, Index, String

from app.database import Base, JSONType, utcnow


class AuditLog(Base):
    """Append-only; entity_id may reference rows that no longer exist."""

    __tablename__ = "audit_logs"

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        Index("ix_audit_logs_created_at", "created_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False)
    action = Column(String, nullable=False, index=True)
    diff = Column(JSONType, nullable=False)

    actor_id = Column(String, nullable=True)
    actor_name = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
