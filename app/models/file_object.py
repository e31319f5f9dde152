import uuid

from sqlalchemy import Column, DateTime, Integer, String

from app.database import Base, utcnow


class FileObject(Base):
    __tablename__ = "file_objects"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    storage_key = Column(String, nullable=False, unique=True)
    file_name = Column(String, nullable=False)
    content_type = Column(String, nullable=False)
    size = Column(Integer, nullable=False)
    checksum = Column(String(64), nullable=True)  # sha256 hex
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
