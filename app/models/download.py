from sqlalchemy import Column, Integer, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
import uuid
import time
from app.db.session import Base


class Download(Base):
    """One fetch of a purchased asset; the license is the purchase itself"""
    __tablename__ = "downloads"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    purchase_id = Column(UUID(as_uuid=True), ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)
    downloaded_at = Column(Integer, default=lambda: int(time.time()), nullable=False)  # Epoch seconds
