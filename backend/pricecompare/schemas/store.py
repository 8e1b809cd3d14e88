"""Store schemas"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from decimal import Decimal

from pricecompare.schemas.prices import DiscountResponse


class StoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    latitude: Decimal
    longitude: Decimal
    status: str
    distance_km: Optional[float] = None


class StoreListResponse(BaseModel):
    stores: List[StoreResponse]
    count: int


class StoreDiscountsResponse(BaseModel):
    store_id: int
    discounts: List[DiscountResponse]
    count: int
