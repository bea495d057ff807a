import uuid
from sqlalchemy import Column, DateTime, Integer, String, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(320), unique=True, nullable=False, index=True)
    # NULL for users provisioned from an externally verified identity
    password_hash = Column(String, nullable=True)
    display_name = Column(String(100), nullable=True)
    credits = Column(Integer, nullable=False, default=10)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    summaries = relationship(
        "Summary",
        back_populates="user",
        cascade="all, delete-orphan",
    )
