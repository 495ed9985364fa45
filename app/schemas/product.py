from pydantic import BaseModel
from typing import Optional
from uuid import UUID


class Product(BaseModel):
    id: UUID
    title: str
    description: str
    category: str
    format: str
    image_url: Optional[str] = None
    price: int  # Cents
    is_featured: bool = False

    class Config:
        from_attributes = True
