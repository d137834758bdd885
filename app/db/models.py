"""Database models."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, LargeBinary, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class StoredObject(Base):
    """Named binary object (call recording or call log)."""

    __tablename__ = "stored_objects"
    __table_args__ = (
        UniqueConstraint("container", "name", name="uq_stored_objects_container_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    container = Column(String, nullable=False, index=True)  # call-audio, call-logs
    name = Column(String, nullable=False)
    content_type = Column(String, default="application/octet-stream", nullable=False)
    data = Column(LargeBinary, nullable=False)
    size = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
