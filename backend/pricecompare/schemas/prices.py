"""Price observation, discount and nearby comparison schemas"""
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class DiscountCreate(BaseModel):
    """Store discount, product scoped unless store_wide is set"""
    model_config = ConfigDict(populate_by_name=True)

    description: Optional[str] = Field(None, max_length=255)
    discount_type: Literal['PERCENTAGE', 'FIXED_AMOUNT'] = Field(
        'PERCENTAGE', validation_alias=AliasChoices('discount_type', 'discountType', 'type')
    )
    value: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    valid_from: datetime = Field(..., validation_alias=AliasChoices('valid_from', 'validFrom', 'startDate'))
    valid_until: datetime = Field(..., validation_alias=AliasChoices('valid_until', 'validUntil', 'endDate'))
    store_wide: bool = Field(False, validation_alias=AliasChoices('store_wide', 'storeWide'))

    # Only used by the store discount endpoint; observations imply their product
    barcode: Optional[str] = Field(None, min_length=1, max_length=64)
    barcode_type: Optional[str] = Field(
        None, min_length=1, max_length=20, validation_alias=AliasChoices('barcode_type', 'barcodeType')
    )

    @model_validator(mode='after')
    def check_window_and_value(self):
        if self.valid_from > self.valid_until:
            raise ValueError('valid_from must not be after valid_until')
        if self.discount_type == 'PERCENTAGE' and self.value > 100:
            raise ValueError('percentage discount must be between 0 and 100')
        return self


class ObservationCreate(BaseModel):
    """Single price submission from a shopper or a store"""
    model_config = ConfigDict(populate_by_name=True)

    barcode: str = Field(..., min_length=1, max_length=64, validation_alias=AliasChoices('barcode', 'gtin'))
    barcode_type: str = Field(
        ..., min_length=1, max_length=20, validation_alias=AliasChoices('barcode_type', 'barcodeType')
    )
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, validation_alias=AliasChoices('amount', 'price'))
    latitude: Optional[float] = Field(None, ge=-90, le=90, validation_alias=AliasChoices('latitude', 'lat'))
    longitude: Optional[float] = Field(None, ge=-180, le=180, validation_alias=AliasChoices('longitude', 'lng', 'lon'))
    timestamp: Optional[datetime] = Field(None, validation_alias=AliasChoices('timestamp', 'observed_at', 'observedAt'))
    store_id: Optional[int] = Field(None, gt=0, validation_alias=AliasChoices('store_id', 'storeId'))
    product_name: Optional[str] = Field(None, max_length=255, validation_alias=AliasChoices('product_name', 'productName'))
    discount: Optional[DiscountCreate] = None


class BatchObservationRequest(BaseModel):
    """Items stay untyped so one bad entry cannot reject its siblings"""
    observations: Any = Field(..., validation_alias=AliasChoices('observations', 'prices'))


class Location(BaseModel):
    latitude: float
    longitude: float


class ProductSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    barcode: str
    barcode_type: str
    name: Optional[str] = None


class StoreSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    address: Optional[str] = None


class DiscountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    store_id: int
    product_id: Optional[int] = None
    description: Optional[str] = None
    discount_type: str
    value: float
    valid_from: datetime
    valid_until: datetime
    is_active: bool

    @classmethod
    def from_model(cls, discount) -> "DiscountResponse":
        return cls(
            id=discount.id,
            store_id=discount.store_id,
            product_id=discount.product_id,
            description=discount.description,
            discount_type=getattr(discount.discount_type, 'value', discount.discount_type),
            value=float(discount.value),
            valid_from=discount.valid_from,
            valid_until=discount.valid_until,
            is_active=bool(discount.is_active),
        )


class ObservationResponse(BaseModel):
    """Created or listed price observation with product/store summaries"""
    id: int
    product: ProductSummary
    store: Optional[StoreSummary] = None
    amount: float
    currency: str
    location: Location
    source: Literal['SHOPPER', 'STORE_USER']
    confidence: float
    is_active: bool
    observed_at: datetime

    # Set when the optional discount was requested
    discount: Optional[DiscountResponse] = None
    discount_error: Optional[str] = None

    @classmethod
    def from_model(cls, observation, discount=None, discount_error=None) -> "ObservationResponse":
        return cls(
            id=observation.id,
            product=ProductSummary.model_validate(observation.product),
            store=StoreSummary.model_validate(observation.store) if observation.store is not None else None,
            amount=float(observation.amount),
            currency=observation.currency,
            location=Location(latitude=float(observation.latitude), longitude=float(observation.longitude)),
            source=getattr(observation.source, 'value', observation.source),
            confidence=float(observation.confidence),
            is_active=bool(observation.is_active),
            observed_at=observation.observed_at,
            discount=DiscountResponse.from_model(discount) if discount is not None else None,
            discount_error=discount_error,
        )


class BatchItemError(BaseModel):
    index: int
    input: Any = None
    message: str


class BatchResponse(BaseModel):
    processed: int
    failed: int
    errors: List[BatchItemError] = Field(default_factory=list)
    observations: List[ObservationResponse] = Field(default_factory=list)


class NearbyResult(BaseModel):
    """One row of the nearby comparison"""
    observation_id: int
    store_id: Optional[int] = None
    store_name: Optional[str] = None
    location: Location
    distance_km: float
    price: float
    discounted_price: float
    currency: str
    label: str
    source: str
    observed_at: datetime
    discounts: List[DiscountResponse] = Field(default_factory=list)


class NearbySummary(BaseModel):
    count: int
    min_price: Optional[float] = None
    max_price: Optional[float] = None


class SearchArea(BaseModel):
    center: Location
    radius_km: float


class NearbyResponse(BaseModel):
    barcode: str
    barcode_type: str
    results: List[NearbyResult]
    summary: NearbySummary
    search_area: SearchArea
    message: Optional[str] = None

    @classmethod
    def from_result(cls, comparison) -> "NearbyResponse":
        results = [
            NearbyResult(
                observation_id=entry.observation.id,
                store_id=entry.store_id,
                store_name=entry.store_name,
                location=Location(
                    latitude=float(entry.observation.latitude),
                    longitude=float(entry.observation.longitude),
                ),
                distance_km=round(entry.distance_km, 3),
                price=float(entry.price),
                discounted_price=float(entry.discounted_price),
                currency=entry.observation.currency,
                label=entry.label.value,
                source=getattr(entry.observation.source, 'value', entry.observation.source),
                observed_at=entry.observed_at,
                discounts=[DiscountResponse.from_model(d) for d in entry.discounts],
            )
            for entry in comparison.results
        ]
        summary = comparison.summary
        return cls(
            barcode=comparison.barcode,
            barcode_type=comparison.barcode_type,
            results=results,
            summary=NearbySummary(
                count=summary.count,
                min_price=float(summary.min_price) if summary.min_price is not None else None,
                max_price=float(summary.max_price) if summary.max_price is not None else None,
            ),
            search_area=SearchArea(
                center=Location(latitude=comparison.latitude, longitude=comparison.longitude),
                radius_km=comparison.radius_km,
            ),
            message=comparison.message,
        )


class PriceHistoryPoint(BaseModel):
    observation_id: int
    store_id: Optional[int] = None
    amount: float
    source: str
    observed_at: datetime


class PriceHistoryResponse(BaseModel):
    barcode: str
    barcode_type: str
    store_id: Optional[int] = None
    days: int
    points: List[PriceHistoryPoint]
    count: int
