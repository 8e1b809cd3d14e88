"""Store model"""
import enum

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum
from sqlalchemy.sql import func

from pricecompare.core.database import Base


class StoreStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    LOCKED = "LOCKED"
    REJECTED = "REJECTED"
    DELETED = "DELETED"

    def can_transition(self, target: "StoreStatus") -> bool:
        return target in _TRANSITIONS[self]


# REJECTED and DELETED are terminal; LOCKED can be reopened.
_TRANSITIONS = {
    StoreStatus.PENDING: {StoreStatus.ACTIVE, StoreStatus.REJECTED},
    StoreStatus.ACTIVE: {StoreStatus.LOCKED, StoreStatus.REJECTED, StoreStatus.DELETED},
    StoreStatus.LOCKED: {StoreStatus.ACTIVE, StoreStatus.DELETED},
    StoreStatus.REJECTED: set(),
    StoreStatus.DELETED: set(),
}


class Store(Base):
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String)
    email = Column(String(255), unique=True)
    phone = Column(String(50))
    website = Column(String(255))
    latitude = Column(Numeric(10, 7), nullable=False)
    longitude = Column(Numeric(10, 7), nullable=False)
    status = Column(Enum(StoreStatus, native_enum=False, length=20), nullable=False, default=StoreStatus.PENDING, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
