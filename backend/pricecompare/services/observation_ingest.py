"""Observation Ingest - validated price submissions from shoppers and stores"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from pricecompare.core.config import settings
from pricecompare.core.database import to_naive_utc, utcnow
from pricecompare.core.errors import (
    ForbiddenError,
    NotFoundError,
    PriceServiceError,
    ValidationError,
    pydantic_error_details,
)
from pricecompare.core.identity import AdminSubmitter, Anonymous, StoreSubmitter, Submitter
from pricecompare.models.discount import Discount, DiscountType
from pricecompare.models.observation import ObservationSource, PriceObservation
from pricecompare.models.store import Store
from pricecompare.schemas.prices import DiscountCreate, DiscountResponse, ObservationCreate, ObservationResponse
from pricecompare.services import geo
from pricecompare.services.labeling import normalize_barcode_type, validate_barcode

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    """Stored observation plus the outcome of its optional discount"""
    observation: PriceObservation
    # Snapshot taken right after commit, before any discount write can roll back
    response: ObservationResponse
    discount: Optional[Discount] = None
    discount_error: Optional[str] = None

    def to_response(self) -> ObservationResponse:
        return self.response.model_copy(update={
            "discount": DiscountResponse.from_model(self.discount) if self.discount is not None else None,
            "discount_error": self.discount_error,
        })


@dataclass
class BatchResult:
    processed: int = 0
    failed: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    observations: List[ObservationResponse] = field(default_factory=list)


class ObservationIngest:
    """
    Records price observations.

    - Source and confidence follow from who submits (shopper vs store)
    - Products are created on first sight, keyed by barcode + barcode type
    - Observations are committed before any discount is written, so a
      discount never exists for an observation that failed to persist
    """

    def __init__(self, store):
        self.store = store

    async def submit(self, payload, submitter: Submitter) -> SubmissionResult:
        """Validate and persist one observation."""
        data = self._parse(payload)
        barcode, barcode_type = self._validate_product_key(data.barcode, data.barcode_type)
        self._validate_amount(data.amount)

        store_id, source = self._attribute(data.store_id, submitter)

        store: Optional[Store] = None
        if store_id is not None:
            store = await self.store.get_store(store_id)
            if store is None:
                raise NotFoundError(f"Store {store_id} not found")

        latitude, longitude = self._resolve_location(data, store)

        product = await self.store.upsert_product(barcode, barcode_type, data.product_name)

        confidence = settings.SOURCE_WEIGHT_STORE if source == ObservationSource.STORE_USER else settings.SOURCE_WEIGHT_SHOPPER
        observation = PriceObservation(
            product_id=product.id,
            store_id=store_id,
            amount=data.amount,
            currency=settings.DEFAULT_CURRENCY,
            latitude=latitude,
            longitude=longitude,
            source=source,
            confidence=Decimal(str(confidence)),
            is_active=True,
            observed_at=to_naive_utc(data.timestamp) if data.timestamp else utcnow(),
        )
        observation = await self.store.create_observation(observation)
        logger.info(
            "Recorded observation %s: %s/%s at %s (store=%s, source=%s)",
            observation.id, barcode_type, barcode, data.amount, store_id, source.value,
        )

        result = SubmissionResult(observation=observation, response=ObservationResponse.from_model(observation))
        if data.discount is not None:
            await self._attach_discount(result, data.discount, store_id, product.id)
        return result

    async def submit_batch(self, raw, submitter: Submitter, max_batch_size: Optional[int] = None) -> BatchResult:
        """
        Submit many observations; one item's failure never aborts the rest.

        Raises ValidationError only when the batch itself is malformed:
        not a list, empty, or longer than max_batch_size.
        """
        limit = max_batch_size or settings.MAX_BATCH_SIZE
        if not isinstance(raw, list):
            raise ValidationError.for_field("observations", "observations must be an array")
        if not raw:
            raise ValidationError.for_field("observations", "At least one observation is required")
        if len(raw) > limit:
            raise ValidationError.for_field("observations", f"Too many observations in batch (max {limit})")

        result = BatchResult()
        for index, item in enumerate(raw):
            try:
                submitted = await self.submit(item, submitter)
            except PriceServiceError as exc:
                result.failed += 1
                result.errors.append({"index": index, "input": item, "message": exc.message})
                logger.info("Batch item %d rejected: %s", index, exc.message)
                continue
            result.processed += 1
            # Serialize now; a later item's rollback would expire these instances
            result.observations.append(submitted.to_response())

        logger.info("Batch of %d: %d processed, %d failed", len(raw), result.processed, result.failed)
        return result

    async def create_discount(self, store_id: int, payload, submitter: Submitter) -> Discount:
        """Create a discount for a store. Stores may only discount themselves."""
        if isinstance(submitter, Anonymous):
            raise ForbiddenError("Only stores and admins can create discounts")
        if isinstance(submitter, StoreSubmitter) and submitter.store_id != store_id:
            raise ForbiddenError("Stores can only create discounts for themselves")

        data = payload if isinstance(payload, DiscountCreate) else self._parse_model(DiscountCreate, payload)

        store = await self.store.get_store(store_id)
        if store is None:
            raise NotFoundError(f"Store {store_id} not found")

        product_id = None
        if not data.store_wide:
            if not data.barcode or not data.barcode_type:
                raise ValidationError.for_field("barcode", "barcode and barcode_type are required unless store_wide is set")
            barcode, barcode_type = self._validate_product_key(data.barcode, data.barcode_type)
            product = await self.store.upsert_product(barcode, barcode_type)
            product_id = product.id

        discount = await self.store.create_discount(self._build_discount(data, store_id, product_id))
        logger.info("Created discount %s for store %s (product=%s)", discount.id, store_id, product_id)
        return discount

    async def deactivate_observation(self, observation_id: int, submitter: Submitter) -> PriceObservation:
        """Soft delete an observation. Admins may remove any, stores only their own."""
        if isinstance(submitter, Anonymous):
            raise ForbiddenError("Anonymous submitters cannot remove observations")

        observation = await self.store.get_observation(observation_id)
        if observation is None:
            raise NotFoundError(f"Observation {observation_id} not found")

        if isinstance(submitter, StoreSubmitter) and observation.store_id != submitter.store_id:
            raise ForbiddenError("Stores can only remove their own observations")

        await self.store.deactivate_observation(observation_id)
        observation.is_active = False
        logger.info("Deactivated observation %s", observation_id)
        return observation

    async def _attach_discount(self, result: SubmissionResult, data: DiscountCreate, store_id, product_id) -> None:
        # The observation is already committed; a failure here is reported, not raised
        if store_id is None:
            result.discount_error = "Discounts require a store"
            logger.warning("Discount skipped for observation %s: no store", result.observation.id)
            return

        try:
            discount = self._build_discount(data, store_id, None if data.store_wide else product_id)
            result.discount = await self.store.create_discount(discount)
        except PriceServiceError as exc:
            result.discount_error = exc.message
            logger.warning("Discount creation failed after observation %s: %s", result.observation.id, exc.message)

    @staticmethod
    def _build_discount(data: DiscountCreate, store_id: int, product_id: Optional[int]) -> Discount:
        return Discount(
            store_id=store_id,
            product_id=product_id,
            description=data.description,
            discount_type=DiscountType(data.discount_type),
            value=data.value,
            valid_from=to_naive_utc(data.valid_from),
            valid_until=to_naive_utc(data.valid_until),
            is_active=True,
        )

    @staticmethod
    def _attribute(requested_store_id: Optional[int], submitter: Submitter) -> Tuple[Optional[int], ObservationSource]:
        if isinstance(submitter, StoreSubmitter):
            if requested_store_id is not None and requested_store_id != submitter.store_id:
                raise ForbiddenError("Stores can only report prices for themselves")
            return submitter.store_id, ObservationSource.STORE_USER

        if isinstance(submitter, AdminSubmitter) and requested_store_id is not None:
            return requested_store_id, ObservationSource.STORE_USER

        # Shopper reports are never attributed to a store
        return None, ObservationSource.SHOPPER

    @staticmethod
    def _resolve_location(data: ObservationCreate, store: Optional[Store]) -> Tuple[float, float]:
        if data.latitude is None and data.longitude is None and store is not None:
            return float(store.latitude), float(store.longitude)

        if data.latitude is None or data.longitude is None:
            raise ValidationError.for_field("coordinates", "latitude and longitude are required")
        if not geo.validate_coordinates(data.latitude, data.longitude):
            raise ValidationError.for_field("coordinates", "Invalid latitude/longitude")
        return geo.normalize_coordinates(data.latitude, data.longitude)

    @staticmethod
    def _validate_amount(amount) -> None:
        if amount is None or not amount.is_finite() or amount <= 0:
            raise ValidationError.for_field("amount", "Price must be positive")

    @staticmethod
    def _validate_product_key(barcode: str, barcode_type: str) -> Tuple[str, str]:
        barcode = (barcode or "").strip()
        barcode_type = normalize_barcode_type(barcode_type or "")
        if not barcode:
            raise ValidationError.for_field("barcode", "Barcode is required")
        if not barcode_type:
            raise ValidationError.for_field("barcode_type", "Barcode type is required")
        if settings.STRICT_BARCODE_VALIDATION and not validate_barcode(barcode, barcode_type):
            raise ValidationError.for_field("barcode", f"Invalid {barcode_type} barcode")
        return barcode, barcode_type

    def _parse(self, payload) -> ObservationCreate:
        if isinstance(payload, ObservationCreate):
            return payload
        return self._parse_model(ObservationCreate, payload)

    @staticmethod
    def _parse_model(model, payload):
        if not isinstance(payload, dict):
            raise ValidationError("Submission must be an object")
        try:
            return model.model_validate(payload)
        except PydanticValidationError as exc:
            details = pydantic_error_details(exc.errors())
            raise ValidationError("; ".join(_format_detail(d) for d in details), details=details) from exc


def _format_detail(detail: Dict[str, Any]) -> str:
    return f"{detail['field']}: {detail['message']}" if detail.get("field") else detail["message"]

