"""
Shared numeric helpers for the overview pipeline.

Collaborator payloads are loosely typed JSON: numbers arrive as strings, nulls
or garbage. Every stage reads them through `to_number`/`to_text` so a malformed
field degrades to 0 or "" instead of raising.

Rounding follows the dashboard convention (half rounds up, toward +inf), which
differs from Python's built-in banker's rounding; use `round_half_up`/`round_to`
for anything that ends up in the response.
"""

import math
from typing import Any, Optional, Sequence

import numpy as np


def to_text(value: Any) -> str:
    """Trimmed string form of a payload value; None becomes ""."""
    if value is None:
        return ""
    return str(value).strip()


def to_number(value: Any) -> float:
    """
    Coerce a payload value to a finite float.

    Booleans count as 1/0, numeric strings are parsed, anything else
    (None, "", "n/a", NaN, inf) yields 0.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return min(high, max(low, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def round_to(value: float, digits: int = 2) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def percent_change(current: float, previous: float) -> Optional[float]:
    """
    Period-over-period change in percent.

    A zero baseline reports 0 when nothing changed and 100 otherwise, so a
    first-ever value shows as growth rather than null.

    Example:
        >>> percent_change(120, 100)
        20.0
        >>> percent_change(5, 0)
        100.0
    """
    if not (math.isfinite(current) and math.isfinite(previous)):
        return None
    if previous == 0:
        return 0.0 if current == 0 else 100.0
    return (current - previous) / previous * 100


def percent_change_finite(current: float, previous: float) -> Optional[float]:
    """Like percent_change, but null whenever the previous value is not positive."""
    if not (math.isfinite(current) and math.isfinite(previous)):
        return None
    if previous <= 0:
        return None
    return (current - previous) / previous * 100


def rate(numerator: float, denominator: float) -> Optional[float]:
    """numerator / denominator, or None for a non-positive denominator."""
    if not (math.isfinite(numerator) and math.isfinite(denominator)):
        return None
    if denominator <= 0:
        return None
    return numerator / denominator


def percentile(values: Sequence[float], p: float) -> Optional[float]:
    """
    Nearest-rank percentile: sorted(values)[floor(p/100 * (n - 1))].

    Returns None for an empty sample. numpy's "lower" method applies exactly
    this index rule without interpolation.
    """
    if not values:
        return None
    return float(np.percentile(np.asarray(values, dtype=float), p, method="lower"))


def mean(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return float(np.mean(np.asarray(values, dtype=float)))
