"""Discount codes, managed from the back-office and read-only at checkout."""
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, Numeric, String, Text, func
from sqlalchemy.orm import validates
from .base import Base


TYPE_PERCENTAGE = "percentage"
TYPE_FIXED = "fixed"
DISCOUNT_TYPES = (TYPE_PERCENTAGE, TYPE_FIXED)


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


class Coupon(Base):
    __tablename__ = "coupon"

    id = Column(String(36), primary_key=True)
    code = Column(String(50), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    min_order_amount = Column(Numeric(10, 2), nullable=True)
    max_discount = Column(Numeric(10, 2), nullable=True)
    valid_from = Column(DateTime, nullable=True)
    valid_until = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    @validates("code")
    def _normalize_code(self, key, value):
        # codes match case-insensitively; the unique index sees the upper-case form
        normalized = normalize_code(value)
        if not normalized:
            raise ValueError("coupon code must not be empty")
        return normalized
