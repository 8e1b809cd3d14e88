"""Price endpoints - nearby comparison and observation submission"""
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from pricecompare.core.config import settings
from pricecompare.core.database import get_db, utcnow
from pricecompare.core.identity import Submitter, get_submitter
from pricecompare.core.limiter import SUBMISSION_LIMIT, limiter
from pricecompare.schemas.prices import (
    BatchItemError,
    BatchObservationRequest,
    BatchResponse,
    NearbyResponse,
    ObservationCreate,
    ObservationResponse,
    PriceHistoryPoint,
    PriceHistoryResponse,
)
from pricecompare.services.labeling import normalize_barcode_type
from pricecompare.services.nearby_engine import NearbyPriceEngine
from pricecompare.services.observation_ingest import ObservationIngest
from pricecompare.services.observation_store import ObservationStore

router = APIRouter()


@router.get("/nearby", response_model=NearbyResponse)
async def nearby_prices(
    barcode: str = Query(..., min_length=1, description="Product barcode (GTIN)"),
    barcode_type: str = Query("EAN13", min_length=1, description="Barcode scheme, e.g. EAN13, UPC_A"),
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0, description="Search radius, clamped to the configured maximum"),
    db: AsyncSession = Depends(get_db),
):
    """
    Compare prices for one product around a point.

    Results are sorted cheapest first and each carries a rank-based label.
    An unknown product or an empty area is a normal, empty response.
    """
    engine = NearbyPriceEngine(ObservationStore(db))
    comparison = await engine.nearby(
        barcode=barcode,
        barcode_type=barcode_type,
        latitude=latitude,
        longitude=longitude,
        radius_km=radius_km if radius_km is not None else settings.DEFAULT_RADIUS_KM,
        now=utcnow(),
    )
    return NearbyResponse.from_result(comparison)


@router.post("/observations", response_model=ObservationResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(SUBMISSION_LIMIT)
async def submit_observation(
    request: Request,
    data: ObservationCreate,
    submitter: Submitter = Depends(get_submitter),
    db: AsyncSession = Depends(get_db),
):
    """
    Record a single price observation.

    Store submitters report for their own store; everyone else reports as
    an anonymous shopper at their own location.
    """
    ingest = ObservationIngest(ObservationStore(db))
    result = await ingest.submit(data, submitter)
    return result.to_response()


@router.post("/observations/batch", response_model=BatchResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(SUBMISSION_LIMIT)
async def submit_observation_batch(
    request: Request,
    data: BatchObservationRequest,
    submitter: Submitter = Depends(get_submitter),
    db: AsyncSession = Depends(get_db),
):
    """
    Record many observations at once.

    Invalid items are reported in ``errors`` without blocking the rest; only
    a malformed batch (not a list, empty, too long) fails the whole call.
    """
    ingest = ObservationIngest(ObservationStore(db))
    result = await ingest.submit_batch(data.observations, submitter, settings.MAX_BATCH_SIZE)
    return BatchResponse(
        processed=result.processed,
        failed=result.failed,
        errors=[BatchItemError(**error) for error in result.errors],
        observations=result.observations,
    )


@router.delete("/observations/{observation_id}", response_model=ObservationResponse)
async def delete_observation(
    observation_id: int,
    submitter: Submitter = Depends(get_submitter),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete an observation; it stays stored but leaves every comparison."""
    ingest = ObservationIngest(ObservationStore(db))
    observation = await ingest.deactivate_observation(observation_id, submitter)
    return ObservationResponse.from_model(observation)


@router.get("/history", response_model=PriceHistoryResponse)
async def price_history(
    barcode: str = Query(..., min_length=1),
    barcode_type: str = Query("EAN13", min_length=1),
    store_id: Optional[int] = Query(None, gt=0),
    days: int = Query(settings.PRICE_HISTORY_DAYS, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    """Active observations for a product over the last ``days`` days, oldest first."""
    barcode_type = normalize_barcode_type(barcode_type)
    observations = await ObservationStore(db).price_history(
        barcode.strip(), barcode_type, since=utcnow() - timedelta(days=days), store_id=store_id,
    )
    points = [
        PriceHistoryPoint(
            observation_id=o.id,
            store_id=o.store_id,
            amount=float(o.amount),
            source=getattr(o.source, "value", o.source),
            observed_at=o.observed_at,
        )
        for o in observations
    ]
    return PriceHistoryResponse(
        barcode=barcode.strip(),
        barcode_type=barcode_type,
        store_id=store_id,
        days=days,
        points=points,
        count=len(points),
    )
