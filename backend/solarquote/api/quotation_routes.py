"""
Quotation API routes

POST /api/quotations/aggregate — totals and advance / balance split for a project list
POST /api/subsidy              — subsidy amount for a capacity
"""
import logging
from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from solarquote.config import get_settings
from solarquote.models.project_models import ProjectRecord
from solarquote.services.quotation_aggregator import QuotationAggregator
from solarquote.services.subsidy_policy import subsidy_for

router = APIRouter(tags=["Quotations"])
logger = logging.getLogger("solarquote-api.quotations")


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AggregateRequest(_Request):
    quotation_id: Optional[str] = None
    projects: List[ProjectRecord] = Field(default_factory=list)
    property_type: Optional[str] = None
    advance_payment_percentage: Optional[float] = None
    payment_terms: Optional[str] = None


class SubsidyRequest(_Request):
    kw: float
    project_type: str
    property_type: Optional[str] = None


@router.post("/api/quotations/aggregate")
async def aggregate_quotation(req: AggregateRequest):
    """Recompute every quotation total from the full project list."""
    settings = get_settings()
    aggregator = QuotationAggregator({"advance_pct": settings["advance_payment_pct"]})
    result = aggregator.build(
        req.projects,
        property_type=req.property_type,
        payment_terms=req.payment_terms,
        advance_pct=req.advance_payment_percentage,
    )
    logger.info(
        f"Aggregated {len(req.projects)} project(s)",
        extra={"quotation_id": req.quotation_id},
    )
    return {
        "quotation": result.quotation.model_dump(by_alias=True),
        "warnings": result.warnings,
    }


@router.post("/api/subsidy")
async def calculate_subsidy(req: SubsidyRequest):
    amount, warnings = subsidy_for(
        req.kw, req.property_type or get_settings()["default_property_type"], req.project_type
    )
    return {"subsidyAmount": amount, "warnings": warnings}
