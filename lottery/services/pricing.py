from __future__ import annotations

from ..errors import ValidationError


def price_for_bulk(discount_divisor: int, unit_price: int, count: int) -> int:
    """Total cost of ``count`` tickets with the volume discount applied.

    ``unit_price * count * (discount_divisor + 1 - count) // discount_divisor``;
    integer division keeps the rounding dust with the pool.
    """
    if count < 1:
        raise ValidationError("Number of tickets must be > 0")
    if count > discount_divisor:
        raise ValidationError("Bulk size exceeds discount divisor")
    return (unit_price * count * (discount_divisor + 1 - count)) // discount_divisor
