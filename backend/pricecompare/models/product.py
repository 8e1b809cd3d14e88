"""Product model"""
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from pricecompare.core.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    barcode = Column(String(64), nullable=False, index=True)
    barcode_type = Column(String(20), nullable=False)  # EAN13, EAN8, UPC_A, CODE128
    name = Column(String(255))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("barcode", "barcode_type", name="uq_product_barcode"),
    )
