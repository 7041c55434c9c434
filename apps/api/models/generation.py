"""Generation record model."""

import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class Generation(Base):
    """Durable record of a completed thumbnail generation."""

    __tablename__ = "generations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String, ForeignKey("accounts.id"), nullable=False, index=True)
    generation_type = Column(String, nullable=False, index=True)
    output_image_url = Column(String, nullable=False)
    credit_cost = Column(Integer, nullable=False)
    prompt = Column(Text, nullable=True)
    input_image_url = Column(String, nullable=True)
    # "metadata" is reserved on declarative classes
    generation_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    account = relationship("Account", back_populates="generations")
