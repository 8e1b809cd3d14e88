"""Discount model"""
import enum

from sqlalchemy import Column, Integer, BigInteger, String, Numeric, Boolean, DateTime, Enum, ForeignKey, Index
from sqlalchemy.sql import func

from pricecompare.core.database import Base


class DiscountType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class Discount(Base):
    __tablename__ = "discounts"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    # NULL = applies to every product in the store
    product_id = Column(Integer, ForeignKey("products.id"), index=True)

    description = Column(String(255))
    discount_type = Column(Enum(DiscountType, native_enum=False, length=20), nullable=False, default=DiscountType.PERCENTAGE)
    value = Column(Numeric(10, 2), nullable=False)  # percent (0-100) or currency amount

    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_discount_store_window", "store_id", "valid_from", "valid_until"),
    )

    def is_current(self, now) -> bool:
        return bool(self.is_active) and self.valid_from <= now <= self.valid_until
