"""Observation Store - async SQLAlchemy persistence for products, prices and discounts"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pricecompare.core.errors import StorageError
from pricecompare.models.discount import Discount
from pricecompare.models.observation import PriceObservation
from pricecompare.models.product import Product
from pricecompare.models.store import Store, StoreStatus
from pricecompare.services.geo import BoundingBox

logger = logging.getLogger(__name__)


class ObservationStore:
    """
    Storage collaborator used by the nearby engine and ingest.

    Wraps one AsyncSession. Every SQLAlchemy failure is logged and re-raised
    as StorageError; nothing here retries.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error("Storage failure during %s: %s", operation, exc)
            await self.db.rollback()
            raise StorageError(f"Storage failure during {operation}") from exc

    async def find_active_observations(
        self,
        barcode: str,
        barcode_type: str,
        within: Optional[BoundingBox] = None,
    ) -> List[PriceObservation]:
        """
        Active observations for a product, with product and store joined.

        Only observations from ACTIVE stores or with no store are returned.
        ``within`` is a coarse prefilter on the observation's own coordinates.
        """
        query = (
            select(PriceObservation)
            .join(Product, PriceObservation.product_id == Product.id)
            .outerjoin(Store, PriceObservation.store_id == Store.id)
            .where(
                Product.barcode == barcode,
                Product.barcode_type == barcode_type,
                PriceObservation.is_active.is_(True),
                or_(PriceObservation.store_id.is_(None), Store.status == StoreStatus.ACTIVE),
            )
            .order_by(PriceObservation.observed_at.desc())
        )

        if within is not None:
            query = query.where(
                PriceObservation.latitude >= within.min_lat,
                PriceObservation.latitude <= within.max_lat,
            )
            if not within.spans_all_longitudes:
                query = query.where(
                    PriceObservation.longitude >= within.min_lon,
                    PriceObservation.longitude <= within.max_lon,
                )

        async with self._guard("find_active_observations"):
            result = await self.db.execute(query)
            return list(result.unique().scalars().all())

    async def get_product(self, barcode: str, barcode_type: str) -> Optional[Product]:
        async with self._guard("get_product"):
            result = await self.db.execute(
                select(Product).where(Product.barcode == barcode, Product.barcode_type == barcode_type)
            )
            return result.scalar_one_or_none()

    async def upsert_product(self, barcode: str, barcode_type: str, name: Optional[str] = None) -> Product:
        """Get existing product or create new one. The name is only overwritten when given."""
        product = await self.get_product(barcode, barcode_type)

        if product is None:
            product = Product(barcode=barcode, barcode_type=barcode_type, name=name)
            try:
                self.db.add(product)
                await self.db.flush()
            except IntegrityError:
                # Lost a race with another submission; take theirs
                await self.db.rollback()
                product = await self.get_product(barcode, barcode_type)
                if product is None:
                    raise StorageError("Product vanished after concurrent insert")
            except SQLAlchemyError as exc:
                logger.error("Storage failure during upsert_product: %s", exc)
                await self.db.rollback()
                raise StorageError("Storage failure during upsert_product") from exc

        if name and product.name != name:
            product.name = name
        return product

    async def create_observation(self, observation: PriceObservation) -> PriceObservation:
        async with self._guard("create_observation"):
            self.db.add(observation)
            await self.db.commit()
            await self.db.refresh(observation)
            await self.db.refresh(observation, ["product", "store"])
            return observation

    async def find_active_discounts(self, store_ids: Iterable[int], now: datetime) -> List[Discount]:
        store_ids = list(store_ids)
        if not store_ids:
            return []

        async with self._guard("find_active_discounts"):
            result = await self.db.execute(
                select(Discount)
                .where(
                    Discount.store_id.in_(store_ids),
                    Discount.is_active.is_(True),
                    Discount.valid_from <= now,
                    Discount.valid_until >= now,
                )
                .order_by(Discount.value.desc(), Discount.id)
            )
            return list(result.scalars().all())

    async def create_discount(self, discount: Discount) -> Discount:
        async with self._guard("create_discount"):
            self.db.add(discount)
            await self.db.commit()
            await self.db.refresh(discount)
            return discount

    async def get_store(self, store_id: int) -> Optional[Store]:
        async with self._guard("get_store"):
            result = await self.db.execute(select(Store).where(Store.id == store_id))
            return result.scalar_one_or_none()

    async def list_active_stores(self, within: Optional[BoundingBox] = None, limit: Optional[int] = 100) -> List[Store]:
        query = select(Store).where(Store.status == StoreStatus.ACTIVE)
        if within is not None:
            query = query.where(Store.latitude >= within.min_lat, Store.latitude <= within.max_lat)
            if not within.spans_all_longitudes:
                query = query.where(Store.longitude >= within.min_lon, Store.longitude <= within.max_lon)
        query = query.order_by(Store.id)
        if limit is not None:
            query = query.limit(limit)

        async with self._guard("list_active_stores"):
            result = await self.db.execute(query)
            return list(result.scalars().all())

    async def get_observation(self, observation_id: int) -> Optional[PriceObservation]:
        async with self._guard("get_observation"):
            result = await self.db.execute(
                select(PriceObservation).where(PriceObservation.id == observation_id)
            )
            return result.unique().scalar_one_or_none()

    async def deactivate_observation(self, observation_id: int) -> None:
        """Soft delete: the row stays so past comparisons remain reproducible."""
        async with self._guard("deactivate_observation"):
            await self.db.execute(
                update(PriceObservation)
                .where(PriceObservation.id == observation_id)
                .values(is_active=False)
            )
            await self.db.commit()

    async def price_history(
        self,
        barcode: str,
        barcode_type: str,
        since: datetime,
        store_id: Optional[int] = None,
    ) -> List[PriceObservation]:
        query = (
            select(PriceObservation)
            .join(Product, PriceObservation.product_id == Product.id)
            .where(
                Product.barcode == barcode,
                Product.barcode_type == barcode_type,
                PriceObservation.is_active.is_(True),
                PriceObservation.observed_at >= since,
            )
            .order_by(PriceObservation.observed_at.asc(), PriceObservation.id.asc())
        )
        if store_id is not None:
            query = query.where(PriceObservation.store_id == store_id)

        async with self._guard("price_history"):
            result = await self.db.execute(query)
            return list(result.unique().scalars().all())
