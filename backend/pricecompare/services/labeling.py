"""Price labeling - rank-based price labels and barcode checks"""
import enum
import re
from bisect import bisect_right
from typing import Sequence


class PriceLabel(str, enum.Enum):
    VERY_INEXPENSIVE = "very inexpensive"
    INEXPENSIVE = "inexpensive"
    AVERAGE = "average"
    EXPENSIVE = "expensive"
    VERY_EXPENSIVE = "very expensive"
    UNKNOWN = "unknown"


# Upper bound of the rank ratio for each label, cheapest first
LABEL_THRESHOLDS = (
    (0.10, PriceLabel.VERY_INEXPENSIVE),
    (0.30, PriceLabel.INEXPENSIVE),
    (0.70, PriceLabel.AVERAGE),
    (0.90, PriceLabel.EXPENSIVE),
)


def label(price, all_prices: Sequence) -> PriceLabel:
    """
    Label a price by its rank within all_prices.

    The rank is the index of the last price <= ``price`` in the ascending
    list (0 when none are), divided by ``max(len - 1, 1)``. Because it is
    rank based, two close prices can land on different sides of a
    threshold. NaN must be rejected by the caller.
    """
    if not all_prices:
        return PriceLabel.UNKNOWN

    ordered = sorted(all_prices)
    position = max(bisect_right(ordered, price) - 1, 0)
    ratio = position / max(len(ordered) - 1, 1)

    for upper, price_label in LABEL_THRESHOLDS:
        if ratio <= upper:
            return price_label
    return PriceLabel.VERY_EXPENSIVE


def price_score(price, all_prices: Sequence) -> int:
    """
    Value score 0-100 relative to the comparison set (higher = better value).

    Magnitude based, unlike ``label``: 100 at the minimum, 0 at the maximum.
    """
    if price is None or price <= 0:
        return 0

    prices = [p for p in all_prices if p is not None and p > 0]
    if not prices:
        return 50

    low, high = min(prices), max(prices)
    if low == high:
        return 100

    position = float(high - price) / float(high - low)
    return round(max(0.0, min(100.0, position * 100)))


_DIGITS = re.compile(r"^\d+$")

# barcode type -> expected digit count
_CHECK_DIGIT_LENGTHS = {
    "EAN13": 13,
    "EAN8": 8,
    "UPC_A": 12,
}


def normalize_barcode_type(barcode_type: str) -> str:
    """'ean-13', 'EAN 13' and 'upc-a' map onto EAN13 / UPC_A."""
    cleaned = re.sub(r"[\s\-]", "", barcode_type.strip().upper())
    if cleaned == "UPCA":
        return "UPC_A"
    return cleaned


def _gtin_check_digit_ok(digits: str) -> bool:
    # GTIN weights run 3,1,3,... from the digit left of the check digit
    body, check = digits[:-1], int(digits[-1])
    total = sum(int(d) * (3 if i % 2 == 0 else 1) for i, d in enumerate(reversed(body)))
    return (10 - total % 10) % 10 == check


def validate_barcode(barcode: str, barcode_type: str) -> bool:
    if not barcode or not barcode_type or not isinstance(barcode, str):
        return False

    kind = normalize_barcode_type(barcode_type)
    length = _CHECK_DIGIT_LENGTHS.get(kind)
    if length is None:
        # CODE128 and friends carry no check digit we can verify here
        return bool(barcode.strip())

    if not _DIGITS.match(barcode) or len(barcode) != length:
        return False
    return _gtin_check_digit_ok(barcode)
