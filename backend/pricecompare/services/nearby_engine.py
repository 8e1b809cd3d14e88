"""Nearby Price Engine - distance filtering, discounts, labels and ranking"""
import logging
import math
from numbers import Real
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pricecompare.core.config import settings
from pricecompare.core.database import to_naive_utc
from pricecompare.core.errors import ValidationError
from pricecompare.models.discount import Discount
from pricecompare.models.observation import PriceObservation
from pricecompare.services import geo
from pricecompare.services.discount_resolver import DiscountResolver, applicable, best_price
from pricecompare.services.labeling import PriceLabel, label, normalize_barcode_type

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "No prices found nearby"


@dataclass
class NearbyPrice:
    """One ranked observation with its distance, discounts and label"""
    observation: PriceObservation
    distance_km: float
    price: Decimal
    discounted_price: Decimal
    label: PriceLabel = PriceLabel.UNKNOWN
    discounts: List[Discount] = field(default_factory=list)

    @property
    def store_id(self) -> Optional[int]:
        return self.observation.store_id

    @property
    def store_name(self) -> Optional[str]:
        store = self.observation.store
        return store.name if store is not None else None

    @property
    def observed_at(self) -> datetime:
        return self.observation.observed_at


def rank(entries: List[NearbyPrice]) -> None:
    """Sort in place: price asc, distance asc, newest first, then id asc.

    Stable passes from the least significant key; observed_at stays naive UTC.
    """
    entries.sort(key=lambda e: e.observation.id or 0)
    entries.sort(key=lambda e: e.observed_at, reverse=True)
    entries.sort(key=lambda e: (e.price, e.distance_km))


@dataclass
class PriceSummary:
    count: int = 0
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None


@dataclass
class ComparisonResult:
    """Full nearby comparison with summary and the search area actually used"""
    barcode: str
    barcode_type: str
    latitude: float
    longitude: float
    radius_km: float
    results: List[NearbyPrice] = field(default_factory=list)
    summary: PriceSummary = field(default_factory=PriceSummary)
    message: Optional[str] = None


class NearbyPriceEngine:
    """
    Compares prices for one product around a point.

    1. Fetch active observations (ACTIVE stores or anonymous)
    2. Distance from the query point to each observation's own location
    3. Drop anything beyond the radius (boundary inclusive)
    4. Attach currently valid discounts per store
    5. Label every price against the whole in-radius set
    6. Rank by price, then distance, then recency
    """

    def __init__(self, store, discount_resolver: Optional[DiscountResolver] = None, max_radius_km: Optional[float] = None):
        self.store = store
        self.discount_resolver = discount_resolver or DiscountResolver(store)
        self.max_radius_km = max_radius_km if max_radius_km is not None else settings.MAX_RADIUS_KM

    async def nearby(
        self,
        barcode: str,
        barcode_type: str,
        latitude: float,
        longitude: float,
        radius_km: float,
        now: datetime,
    ) -> ComparisonResult:
        barcode, barcode_type = self._validate(barcode, barcode_type, latitude, longitude, radius_km)
        now = to_naive_utc(now)
        radius_km = min(float(radius_km), self.max_radius_km)

        result = ComparisonResult(
            barcode=barcode,
            barcode_type=barcode_type,
            latitude=latitude,
            longitude=longitude,
            radius_km=radius_km,
        )

        candidates = await self.store.find_active_observations(
            barcode,
            barcode_type,
            within=geo.bounding_box(latitude, longitude, radius_km),
        )

        in_radius: List[NearbyPrice] = []
        for observation in candidates:
            distance = geo.distance_km(
                latitude, longitude, float(observation.latitude), float(observation.longitude)
            )
            if distance > radius_km:
                continue
            amount = Decimal(observation.amount)
            in_radius.append(
                NearbyPrice(observation=observation, distance_km=distance, price=amount, discounted_price=amount)
            )

        if not in_radius:
            logger.debug("Nearby %s/%s at (%s, %s) r=%skm: no prices", barcode_type, barcode, latitude, longitude, radius_km)
            result.message = NO_RESULTS_MESSAGE
            return result

        store_ids = {entry.store_id for entry in in_radius if entry.store_id is not None}
        discounts_by_store = await self.discount_resolver.active_discounts_for_stores(store_ids, now)

        all_prices = [entry.price for entry in in_radius]
        for entry in in_radius:
            store_discounts = discounts_by_store.get(entry.store_id, []) if entry.store_id is not None else []
            entry.discounts = applicable(store_discounts, entry.observation.product_id)
            entry.discounted_price = best_price(entry.price, entry.discounts)
            entry.label = label(entry.price, all_prices)

        rank(in_radius)

        result.results = in_radius
        result.summary = PriceSummary(
            count=len(in_radius),
            min_price=min(all_prices),
            max_price=max(all_prices),
        )
        logger.debug(
            "Nearby %s/%s at (%s, %s) r=%skm: %d of %d candidates in range",
            barcode_type, barcode, latitude, longitude, radius_km, len(in_radius), len(candidates),
        )
        return result

    @staticmethod
    def _validate(barcode, barcode_type, latitude, longitude, radius_km):
        details = []
        if not isinstance(barcode, str) or not barcode.strip():
            details.append({"field": "barcode", "message": "Barcode is required"})
        if not isinstance(barcode_type, str) or not barcode_type.strip():
            details.append({"field": "barcode_type", "message": "Barcode type is required"})
        if not geo.validate_coordinates(latitude, longitude):
            details.append({"field": "coordinates", "message": "Invalid latitude/longitude"})
        if not isinstance(radius_km, Real) or isinstance(radius_km, bool) or not math.isfinite(radius_km) or radius_km <= 0:
            details.append({"field": "radius_km", "message": "Radius must be a positive number"})

        if details:
            raise ValidationError("Invalid nearby price query", details=details)
        return barcode.strip(), normalize_barcode_type(barcode_type)
