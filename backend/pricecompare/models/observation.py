"""Price Observation model (soft-deleted, never removed)"""
import enum

from sqlalchemy import Column, Integer, BigInteger, String, Numeric, Boolean, DateTime, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from pricecompare.core.database import Base


class ObservationSource(str, enum.Enum):
    SHOPPER = "SHOPPER"
    STORE_USER = "STORE_USER"


class PriceObservation(Base):
    __tablename__ = "price_observations"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    # NULL = anonymous shopper report at the shopper's own location
    store_id = Column(Integer, ForeignKey("stores.id"), index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")

    # Where the price was recorded, not necessarily the store's registered location
    latitude = Column(Numeric(10, 7), nullable=False)
    longitude = Column(Numeric(10, 7), nullable=False)

    source = Column(Enum(ObservationSource, native_enum=False, length=20), nullable=False, default=ObservationSource.SHOPPER)
    confidence = Column(Numeric(3, 2), nullable=False)

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    observed_at = Column(DateTime, nullable=False, server_default=func.now())
    created_at = Column(DateTime, server_default=func.now())

    product = relationship("Product", lazy="joined")
    store = relationship("Store", lazy="joined")

    __table_args__ = (
        Index("ix_observation_product_active", "product_id", "is_active"),
        Index("ix_observation_location", "latitude", "longitude"),
    )
