"""Discount Resolver - currently valid discounts per store"""
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from pricecompare.core.database import to_naive_utc
from pricecompare.models.discount import Discount, DiscountType


class DiscountResolver:
    """
    Read-only view over the store's discount records.

    The storage query already filters on the validity window, but the filter
    is applied again here so the contract never depends on how a storage
    backend treats soft-deleted or expired rows.
    """

    def __init__(self, store):
        self.store = store

    async def active_discounts_for_stores(
        self,
        store_ids: Iterable[int],
        now: datetime,
    ) -> Dict[int, List[Discount]]:
        """Map store id -> discounts valid at ``now``, best (highest value) first."""
        now = to_naive_utc(now)
        wanted = {store_id for store_id in store_ids if store_id is not None}
        if not wanted:
            return {}

        candidates = await self.store.find_active_discounts(sorted(wanted), now)

        by_store: Dict[int, List[Discount]] = defaultdict(list)
        for discount in candidates:
            if discount.store_id in wanted and discount.is_current(now):
                by_store[discount.store_id].append(discount)

        for discounts in by_store.values():
            discounts.sort(key=lambda d: (-Decimal(d.value), d.id or 0))

        return dict(by_store)


def applicable(discounts: Iterable[Discount], product_id: Optional[int]) -> List[Discount]:
    """Discounts scoped to this product plus store-wide ones, order preserved."""
    return [d for d in discounts if d.product_id is None or d.product_id == product_id]


def discounted_amount(amount: Decimal, discount: Discount) -> Decimal:
    """Price after one discount, never below zero."""
    amount = Decimal(amount)
    value = Decimal(discount.value)

    if discount.discount_type == DiscountType.PERCENTAGE:
        reduced = amount * (Decimal(100) - value) / Decimal(100)
    else:
        reduced = amount - value

    return max(reduced, Decimal("0")).quantize(Decimal("0.01"))


def best_price(amount: Decimal, discounts: Iterable[Discount]) -> Decimal:
    """Lowest price reachable with any single discount (discounts do not stack)."""
    amount = Decimal(amount)
    prices = [discounted_amount(amount, d) for d in discounts]
    return min(prices, default=amount)
