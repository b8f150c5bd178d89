from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text, func
from .base import Base


class MenuItem(Base):
    __tablename__ = "menu_item"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(64), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
