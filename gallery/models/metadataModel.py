from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_COMPLETED, STATUS_FAILED)


class ImageMetadata(Base):
    __tablename__ = "image_metadata"

    id = Column(Integer, primary_key=True, index=True)
    image_id = Column(Integer, ForeignKey("images.id", ondelete="CASCADE"), nullable=False, unique=True)
    user_id = Column(String(64), nullable=False, index=True)
    description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    colors = Column(JSON, nullable=False, default=list)
    ai_processing_status = Column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    provider = Column(String(16), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    image = relationship("Image", back_populates="metadata_row")

    def to_dict(self):
        return {
            "id": self.id,
            "image_id": self.image_id,
            "user_id": self.user_id,
            "description": self.description,
            "tags": list(self.tags or []),
            "colors": list(self.colors or []),
            "ai_processing_status": self.ai_processing_status,
            "provider": self.provider,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
