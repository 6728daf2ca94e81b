"""Small numeric helpers shared by the scoring modules."""

import math
from typing import Any


def round_half_up(value: float, digits: int = 0) -> float:
    """Round .5 upwards (the builtin round() uses banker's rounding)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def as_list(value: Any) -> list:
    """Malformed (non-list) fields are treated as empty."""
    return value if isinstance(value, list) else []
