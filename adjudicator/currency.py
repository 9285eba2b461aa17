"""Dollar/cent conversion used at the persistence boundary.

Monetary values travel through the pipeline as dollars (floats) and are stored
as integer cents.  Conversion goes through ``Decimal`` so that values with at
most two fractional digits survive a round trip exactly.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

_ONE = Decimal("1")
_HUNDRED = Decimal("100")


def dollars_to_cents(dollars: float) -> int:
    """Convert a dollar amount to integer cents, rounding half-up."""
    return int((Decimal(str(dollars)) * _HUNDRED).quantize(_ONE, rounding=ROUND_HALF_UP))


def cents_to_dollars(cents: int | Decimal) -> float:
    """Convert integer cents back to a dollar amount."""
    return float(Decimal(cents) / _HUNDRED)


def optional_cents(dollars: Optional[float]) -> Optional[int]:
    return None if dollars is None else dollars_to_cents(dollars)


def optional_dollars(cents: Optional[int | Decimal]) -> Optional[float]:
    return None if cents is None else cents_to_dollars(cents)
