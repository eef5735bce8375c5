"""ORM model for inventory items."""

from sqlalchemy import Column, Float, Integer, String, Text

from app.models.base import Base
from app.models.mixins import TimestampMixin


class Item(TimestampMixin, Base):
    """Inventory record; image holds a stored reference such as 'uploads/items/item-<stamp>.webp'."""

    __tablename__ = "items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False, default=0.0)
    quantity = Column(Integer, nullable=False, default=0)
    image = Column(String(512), nullable=True)
