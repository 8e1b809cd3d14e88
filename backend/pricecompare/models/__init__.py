from pricecompare.models.product import Product
from pricecompare.models.store import Store, StoreStatus
from pricecompare.models.observation import PriceObservation, ObservationSource
from pricecompare.models.discount import Discount, DiscountType

__all__ = [
    "Product",
    "Store",
    "StoreStatus",
    "PriceObservation",
    "ObservationSource",
    "Discount",
    "DiscountType",
]
