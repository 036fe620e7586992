"""
Rounding & formatting policy shared by every quotation component.

Rules:
  - Money rounds to the nearest whole currency unit, half-up (2.5 → 3).
  - System kW below 1 keeps its decimals (0.68 stays 0.68); from 1 kW upward
    it rounds to the nearest whole kW, half-up (3.49 → 3, 3.50 → 4).
  - Free-text numeric form input never raises: anything unparseable becomes
    the caller's default.
"""

import math
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Union

from solarquote.config import SINGLE_PHASE, THREE_PHASE

Number = Union[int, float]

_NON_DIGITS = re.compile(r"[^\d]")
_LEADING_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


# ---------------------------------------------------------------------------
# Lenient coercion
# ---------------------------------------------------------------------------

def to_number(value: Any, default: Number = 0) -> Number:
    """
    Coerce form input to a finite number.

    Accepts ints, floats, numeric strings and strings with a unit suffix
    ("5kW", "3.5 kva"). Booleans, None, NaN/inf and unparseable text return
    ``default``.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        try:
            finite = math.isfinite(value)
        except OverflowError:
            return default
        return value if finite else default
    match = _LEADING_NUMBER.search(str(value).replace(",", ""))
    if not match:
        return default
    text = match.group(0)
    number = float(text)
    if not math.isfinite(number):
        return default
    return int(number) if "." not in text else number


def to_count(value: Any, default: int = 0) -> int:
    """Coerce form input to a non-negative whole count (fractions truncate)."""
    number = to_number(value, default)
    if number < 0:
        return default
    return int(number)


def to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def to_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------

def round_half_up(value: Number, decimals: int = 0) -> float:
    """Round half away from zero at ``decimals`` places, avoiding banker's rounding."""
    if isinstance(value, float) and not math.isfinite(value):
        return 0.0
    try:
        quantum = Decimal(1).scaleb(-decimals)
        return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        return 0.0


def round_money(value: Number) -> int:
    """Round a currency amount to the nearest whole unit (half-up)."""
    return int(round_half_up(value, 0))


def round_system_kw(kw: Number) -> Number:
    """
    Round system capacity for rate calculations and display.

    0.68 → 0.68 (sub-1 kW preserved), 1.64 → 2, 3.49 → 3, 3.50 → 4.
    Non-positive capacity is 0.
    """
    if kw <= 0:
        return 0
    if kw < 1:
        return kw
    return int(round_half_up(kw, 0))


def format_kw_for_display(kw: Number) -> str:
    """
    Format capacity for quotation display.

    0.68 → "0.68", 0.50 → "0.5", 1.64 → "2", 9.90 → "10".
    """
    if kw < 1:
        text = f"{round_half_up(kw, 2):.2f}"
        return text.rstrip("0").rstrip(".") or "0"
    return str(int(round_half_up(kw, 0)))


# ---------------------------------------------------------------------------
# Panel capacity
# ---------------------------------------------------------------------------

def parse_panel_watts(panel_watts: Any) -> int:
    """
    Parse a free-text panel rating: "540W" → 540, "540" → 540, 540 → 540.

    Every non-digit character is stripped before parsing; an empty result is 0.
    """
    if panel_watts is None or isinstance(panel_watts, bool):
        return 0
    if isinstance(panel_watts, int):
        return panel_watts if panel_watts > 0 else 0
    if isinstance(panel_watts, float):
        return int(panel_watts) if math.isfinite(panel_watts) and panel_watts > 0 else 0
    cleaned = _NON_DIGITS.sub("", str(panel_watts).strip())
    try:
        return int(cleaned) if cleaned else 0
    except ValueError:
        # Past the interpreter's int digit limit.
        return 0


def calculate_system_kw(panel_watts: Any, panel_count: Any) -> float:
    """
    Unrounded system capacity: (panel watts × panel count) / 1000.
    Capacity too large to represent as a float is 0.

    540 W × 3 → 1.62 kW; "530" × 6 → 3.18 kW.
    """
    watts = parse_panel_watts(panel_watts)
    count = to_count(panel_count)
    if watts <= 0 or count <= 0:
        return 0.0
    try:
        kw = watts * count / 1000
    except OverflowError:
        return 0.0
    return kw if math.isfinite(kw) else 0.0


def phase_for_capacity(capacity: Optional[Number], threshold: float) -> str:
    """single_phase strictly below ``threshold``, three_phase at or above it."""
    return SINGLE_PHASE if (capacity or 0) < threshold else THREE_PHASE
