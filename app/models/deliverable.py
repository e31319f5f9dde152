import uuid

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Numeric, String

from app.database import Base, utcnow
from app.models.enums import DeliverableStatus, sql_values


class Deliverable(Base):
    __tablename__ = "deliverables"

    __table_args__ = (
        CheckConstraint("percentage >= 0 AND percentage <= 100", name="ck_deliverables_percentage_range"),
        CheckConstraint(f"status IN ({sql_values(DeliverableStatus)})", name="ck_deliverables_status"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    label = Column(String, nullable=False)
    percentage = Column(Numeric(5, 2), nullable=False)
    amount = Column(Numeric(14, 2), nullable=True)  # overrides order_amount * percentage

    target_date = Column(Date, nullable=True)
    submission_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default=DeliverableStatus.NON_REMIS.value)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
