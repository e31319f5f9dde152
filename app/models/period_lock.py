import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from app.database import Base, utcnow


class PeriodLock(Base):
    __tablename__ = "period_locks"

    __table_args__ = (
        UniqueConstraint("project_id", "year", "month", name="uq_period_locks_period"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_period_locks_month_range"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)

    locked = Column(Boolean, nullable=False, default=False)
    # last actor/time/reason, whether the last action was a lock or an unlock
    locked_by = Column(String, nullable=True)
    locked_at = Column(DateTime(timezone=True), nullable=True, default=utcnow)
    reason = Column(Text, nullable=True)
