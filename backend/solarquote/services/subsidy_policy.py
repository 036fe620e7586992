"""Government subsidy policy — tiered by capacity, residential on-grid/hybrid only."""
import logging
from typing import List, Optional, Tuple

from solarquote.config import (
    DEFAULT_PROPERTY_TYPE,
    SUBSIDY_PROJECT_TYPES,
    SUBSIDY_PROPERTY_TYPES,
    SUBSIDY_TIERS,
)

logger = logging.getLogger("solarquote-subsidy")


def calculate_subsidy(kw: float, property_type: str, project_type: str) -> int:
    """
    Subsidy for a system of ``kw`` (the UNROUNDED computed capacity).

    Applies only to residential properties with on_grid or hybrid projects:
        kw ≤ 1       → 30 000
        1 < kw ≤ 2   → 60 000
        2 < kw ≤ 10  → 78 000
        kw > 10      → 0
    """
    if property_type not in SUBSIDY_PROPERTY_TYPES:
        return 0
    if project_type not in SUBSIDY_PROJECT_TYPES:
        return 0
    for upper_kw, amount in SUBSIDY_TIERS:
        if kw <= upper_kw:
            return amount
    return 0


def resolve_property_type(property_type: Optional[str]) -> Tuple[str, List[str]]:
    """
    Apply the documented default when the customer record carries no property type.

    Returns the resolved type and any warnings for the caller to log or surface.
    """
    if property_type:
        return property_type, []
    logger.warning(f"propertyType missing — defaulting to '{DEFAULT_PROPERTY_TYPE}'")
    return DEFAULT_PROPERTY_TYPE, [
        f"propertyType not supplied; defaulted to '{DEFAULT_PROPERTY_TYPE}' for subsidy"
    ]


def subsidy_for(
    kw: float, property_type: Optional[str], project_type: str
) -> Tuple[int, List[str]]:
    """``calculate_subsidy`` with the missing-property-type default applied."""
    resolved, warnings = resolve_property_type(property_type)
    return calculate_subsidy(kw, resolved, project_type), warnings
