"""Store endpoints"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from pricecompare.core.database import get_db, utcnow
from pricecompare.core.errors import NotFoundError, ValidationError
from pricecompare.core.identity import Submitter, get_submitter
from pricecompare.models.store import Store
from pricecompare.schemas.prices import DiscountCreate, DiscountResponse
from pricecompare.schemas.store import StoreDiscountsResponse, StoreListResponse, StoreResponse
from pricecompare.services import geo
from pricecompare.services.discount_resolver import DiscountResolver
from pricecompare.services.observation_ingest import ObservationIngest
from pricecompare.services.observation_store import ObservationStore

router = APIRouter()


def _store_response(store: Store, distance_km: Optional[float] = None) -> StoreResponse:
    return StoreResponse(
        id=store.id,
        name=store.name,
        address=store.address,
        phone=store.phone,
        website=store.website,
        latitude=store.latitude,
        longitude=store.longitude,
        status=getattr(store.status, "value", store.status),
        distance_km=round(distance_km, 3) if distance_km is not None else None,
    )


@router.get("/", response_model=StoreListResponse)
async def list_stores(
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: float = Query(50, gt=0, le=100, description="Search radius when a point is given"),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List active stores, nearest first when a point is given."""
    if (latitude is None) != (longitude is None):
        raise ValidationError.for_field("coordinates", "latitude and longitude must be given together")

    store_repo = ObservationStore(db)

    if latitude is None:
        stores = await store_repo.list_active_stores(limit=limit)
        responses = [_store_response(s) for s in stores]
    else:
        # Whole box uncapped; the limit applies after the distance sort
        stores = await store_repo.list_active_stores(
            within=geo.bounding_box(latitude, longitude, radius_km), limit=None,
        )
        with_distance = [
            (s, geo.distance_km(latitude, longitude, float(s.latitude), float(s.longitude)))
            for s in stores
        ]
        with_distance = [(s, d) for s, d in with_distance if d <= radius_km]
        with_distance.sort(key=lambda pair: (pair[1], pair[0].id))
        responses = [_store_response(s, d) for s, d in with_distance[:limit]]

    return StoreListResponse(stores=responses, count=len(responses))


@router.get("/{store_id}", response_model=StoreResponse)
async def get_store(
    store_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a specific store by ID."""
    store = await ObservationStore(db).get_store(store_id)
    if not store:
        raise NotFoundError("Store not found")
    return _store_response(store)


@router.get("/{store_id}/discounts", response_model=StoreDiscountsResponse)
async def list_store_discounts(
    store_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Discounts of one store that are valid right now, best first."""
    store_repo = ObservationStore(db)
    if not await store_repo.get_store(store_id):
        raise NotFoundError("Store not found")

    by_store = await DiscountResolver(store_repo).active_discounts_for_stores({store_id}, utcnow())
    discounts = [DiscountResponse.from_model(d) for d in by_store.get(store_id, [])]
    return StoreDiscountsResponse(store_id=store_id, discounts=discounts, count=len(discounts))


@router.post("/{store_id}/discounts", response_model=DiscountResponse, status_code=status.HTTP_201_CREATED)
async def create_store_discount(
    store_id: int,
    data: DiscountCreate,
    submitter: Submitter = Depends(get_submitter),
    db: AsyncSession = Depends(get_db),
):
    """Create a discount for a store (the store itself or an admin)."""
    discount = await ObservationIngest(ObservationStore(db)).create_discount(store_id, data, submitter)
    return DiscountResponse.from_model(discount)
