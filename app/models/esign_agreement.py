import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String

from app.database import Base, utcnow
from app.models.enums import AgreementStatus, sql_values


class ESignAgreement(Base):
    __tablename__ = "esign_agreements"

    __table_args__ = (
        CheckConstraint(f"status IN ({sql_values(AgreementStatus)})", name="ck_esign_agreements_status"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    bordereau_id = Column(String, ForeignKey("bordereaux.id", ondelete="CASCADE"), nullable=False, index=True)

    provider_id = Column(String, nullable=False, unique=True)
    status = Column(String, nullable=False, default=AgreementStatus.SENT.value)
    signer_email = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
