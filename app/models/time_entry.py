import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)

from app.database import Base, utcnow
from app.models.enums import TimeEntryType, sql_values


class TimeEntry(Base):
    __tablename__ = "time_entries"

    __table_args__ = (
        UniqueConstraint(
            "project_id",
            "year",
            "month",
            "day",
            "type",
            "hour_slot",
            name="uq_time_entries_slot",
        ),
        CheckConstraint("hours >= 0 AND hours <= 8", name="ck_time_entries_hours_range"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_time_entries_month_range"),
        CheckConstraint("day >= 1 AND day <= 31", name="ck_time_entries_day_range"),
        CheckConstraint("hour_slot >= 0", name="ck_time_entries_hour_slot_nonnegative"),
        CheckConstraint(f"type IN ({sql_values(TimeEntryType)})", name="ck_time_entries_type"),
        Index("ix_time_entries_project_period", "project_id", "year", "month"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    day = Column(Integer, nullable=False)
    type = Column(String, nullable=False)
    hour_slot = Column(Integer, nullable=False, default=0)

    # hundredths of an hour; zero means "cleared" and is kept for history
    hours = Column(Numeric(4, 2), nullable=False)
    comment = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
