from sqlalchemy import Column, String, Boolean, Integer, Text
from sqlalchemy.dialects.postgresql import UUID
import uuid
from app.db.session import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String, nullable=False, index=True)
    format = Column(String, nullable=False)  # SOP, Checklist, Script Pack, ...
    image_url = Column(String, nullable=True)
    price = Column(Integer, nullable=False)  # Catalog price in cents
    is_featured = Column(Boolean, default=False, nullable=False)
