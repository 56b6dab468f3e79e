"""Integer percentage helpers.

Rates in reports are whole percentages rounded half up, so ``2.5`` becomes
``3`` and ``62.5`` becomes ``63``. Python's ``round`` rounds half to even and
``int`` truncates, so neither is used here.
"""

from __future__ import annotations

import math
from decimal import Decimal
from fractions import Fraction


def round_half_up(value) -> int:
    """Round to the nearest integer, with halves going towards +infinity."""

    if isinstance(value, float):
        # str() keeps the shortest repr, so 2.675 stays 2.675 rather than 2.67499...
        value = Decimal(str(value))
    return math.floor(Fraction(value) + Fraction(1, 2))


def percent(numerator: int, denominator: int) -> int:
    """Return ``numerator / denominator`` as a rounded percentage, 0 when undefined."""

    if not denominator or denominator <= 0:
        return 0
    return round_half_up(Fraction(100 * numerator, denominator))
