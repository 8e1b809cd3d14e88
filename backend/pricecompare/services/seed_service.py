"""Seed service for initial data"""
import logging
from decimal import Decimal

from sqlalchemy import select

from pricecompare.core.database import AsyncSessionLocal
from pricecompare.models.product import Product
from pricecompare.models.store import Store, StoreStatus

logger = logging.getLogger(__name__)


async def seed_data(session_factory=AsyncSessionLocal):
    """Seed sample stores and products if empty"""
    async with session_factory() as db:
        # Check if already seeded
        result = await db.execute(select(Store).limit(1))
        if result.scalar_one_or_none():
            return  # Already seeded

        # Turku and Helsinki area stores
        stores = [
            Store(name='K-Market Kauppahalli', address='Eerikinkatu 16, Turku', latitude=Decimal('60.4510000'), longitude=Decimal('22.2680000'), status=StoreStatus.ACTIVE),
            Store(name='S-Market Hansa', address='Yliopistonkatu 22, Turku', latitude=Decimal('60.4517000'), longitude=Decimal('22.2667000'), status=StoreStatus.ACTIVE),
            Store(name='Lidl Turku Itäharju', address='Karjakatu 35, Turku', latitude=Decimal('60.4550000'), longitude=Decimal('22.3050000'), status=StoreStatus.ACTIVE),
            Store(name='Prisma Kamppi', address='Urho Kekkosen katu 1, Helsinki', latitude=Decimal('60.1690000'), longitude=Decimal('24.9330000'), status=StoreStatus.ACTIVE),
            Store(name='K-Citymarket Ruoholahti', address='Itämerenkatu 21, Helsinki', latitude=Decimal('60.1630000'), longitude=Decimal('24.9140000'), status=StoreStatus.PENDING),
        ]

        products = [
            Product(barcode='6408430000128', barcode_type='EAN13', name='Valio Kevytmaito 1L'),
            Product(barcode='6415712500129', barcode_type='EAN13', name='Fazer Sininen 200g'),
            Product(barcode='6410405082657', barcode_type='EAN13', name='Paulig Juhla Mokka 500g'),
        ]

        db.add_all(stores)
        db.add_all(products)
        await db.commit()
        logger.info("Database seeded with %d stores and %d products", len(stores), len(products))
