"""
QuotationAggregator — rolls per-project prices into quotation totals and the
advance / balance payment split.

Totals are always recomputed from the full current project list, never patched
incrementally.

Formulae:
    total_system_cost      = Σ base_price
    total_gst_amount       = Σ gst_amount
    total_with_gst         = Σ project_value        (service projects: per-unit value)
    total_subsidy_amount   = Σ subsidy_amount
    total_customer_payment = total_with_gst − total_subsidy_amount
    advance_amount         = round(total_customer_payment × advance% / 100)
    balance_amount         = total_customer_payment − advance_amount
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from solarquote.config import DEFAULT_ADVANCE_PCT, PAYMENT_TERMS_ADVANCE_PCT
from solarquote.models.project_models import ProjectRecord, Quotation
from solarquote.services.derivation_engine import DerivationEngine
from solarquote.services.rounding_policy import round_money, to_number

logger = logging.getLogger("solarquote-aggregator")


@dataclass(frozen=True)
class AggregationResult:
    quotation: Quotation
    warnings: List[str] = field(default_factory=list)
    rejections: List[str] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return not self.rejections


class QuotationAggregator:
    """Stateless cross-project totals; every mutation returns a new Quotation."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        engine: Optional[DerivationEngine] = None,
    ) -> None:
        cfg = config or {}
        self.default_advance_pct: float = float(cfg.get("advance_pct", DEFAULT_ADVANCE_PCT))
        self.engine = engine or DerivationEngine(cfg)

    # ------------------------------------------------------------------
    # 1. Totals
    # ------------------------------------------------------------------

    def resolve_advance_pct(
        self,
        advance_pct: Optional[Any] = None,
        payment_terms: Optional[str] = None,
    ) -> float:
        """Explicit percentage wins, then the payment-terms mapping, then the default."""
        if advance_pct is not None:
            return min(max(float(to_number(advance_pct, self.default_advance_pct)), 0.0), 100.0)
        if payment_terms in PAYMENT_TERMS_ADVANCE_PCT:
            return PAYMENT_TERMS_ADVANCE_PCT[payment_terms]
        return self.default_advance_pct

    def calculate_totals(
        self, projects: Sequence[ProjectRecord], advance_pct: float
    ) -> Dict[str, float]:
        total_system_cost = sum(p.base_price for p in projects)
        total_gst_amount = sum(p.gst_amount for p in projects)
        total_with_gst = sum(p.project_value for p in projects)
        total_subsidy_amount = sum(p.subsidy_amount for p in projects)
        total_customer_payment = total_with_gst - total_subsidy_amount

        advance_amount = round_money(total_customer_payment * advance_pct / 100)
        balance_amount = total_customer_payment - advance_amount

        return {
            "total_system_cost": total_system_cost,
            "total_gst_amount": total_gst_amount,
            "total_with_gst": total_with_gst,
            "total_subsidy_amount": total_subsidy_amount,
            "total_customer_payment": total_customer_payment,
            "advance_payment_percentage": advance_pct,
            "advance_amount": advance_amount,
            "balance_amount": balance_amount,
        }

    def aggregate(
        self,
        quotation: Quotation,
        advance_pct: Optional[Any] = None,
    ) -> AggregationResult:
        """Recompute every total of ``quotation`` from its full project list."""
        if advance_pct is None:
            advance_pct = quotation.advance_payment_percentage
        pct = self.resolve_advance_pct(advance_pct)
        totals = self.calculate_totals(quotation.projects, pct)

        warnings: List[str] = []
        if quotation.projects and totals["total_system_cost"] == 0:
            warnings.append("Total system cost is zero - please verify project values")
        for warning in warnings:
            logger.warning(warning)

        logger.debug(
            f"Quotation aggregated: {len(quotation.projects)} project(s), "
            f"customer payment {totals['total_customer_payment']}"
        )
        return AggregationResult(quotation=quotation.model_copy(update=totals), warnings=warnings)

    def build(
        self,
        projects: Sequence[ProjectRecord],
        property_type: Optional[str] = None,
        payment_terms: Optional[str] = None,
        advance_pct: Optional[Any] = None,
    ) -> AggregationResult:
        """Fresh quotation around an existing project list."""
        quotation = Quotation(
            projects=list(projects),
            property_type=property_type,
            advance_payment_percentage=self.resolve_advance_pct(advance_pct, payment_terms),
        )
        if payment_terms:
            quotation = quotation.model_copy(update={"payment_terms": payment_terms})
        return self.aggregate(quotation)

    # ------------------------------------------------------------------
    # 2. Project list mutations (each re-aggregates from scratch)
    # ------------------------------------------------------------------

    def _with_projects(self, quotation: Quotation, projects: List[ProjectRecord]) -> AggregationResult:
        return self.aggregate(quotation.model_copy(update={"projects": projects}))

    def _reject(self, quotation: Quotation, reason: str) -> AggregationResult:
        logger.warning(reason)
        return AggregationResult(quotation=quotation, rejections=[reason])

    def add_project(self, quotation: Quotation, project: ProjectRecord) -> AggregationResult:
        return self._with_projects(quotation, [*quotation.projects, project])

    def remove_project(self, quotation: Quotation, index: int) -> AggregationResult:
        if not 0 <= index < len(quotation.projects):
            return self._reject(quotation, f"No project at position {index}")
        projects = [p for i, p in enumerate(quotation.projects) if i != index]
        return self._with_projects(quotation, projects)

    def replace_project(self, quotation: Quotation, index: int, project: ProjectRecord) -> AggregationResult:
        if not 0 <= index < len(quotation.projects):
            return self._reject(quotation, f"No project at position {index}")
        projects = list(quotation.projects)
        projects[index] = project
        return self._with_projects(quotation, projects)

    def apply_project_edits(self, quotation: Quotation, index: int, edits: Any) -> AggregationResult:
        """Run the derivation engine on one project, then re-aggregate the quotation."""
        if not 0 <= index < len(quotation.projects):
            return self._reject(quotation, f"No project at position {index}")
        derived = self.engine.apply(quotation.projects[index], edits, quotation.property_type)
        result = self.replace_project(quotation, index, derived.record)
        return AggregationResult(
            quotation=result.quotation,
            warnings=[*derived.warnings, *result.warnings],
            rejections=[*derived.rejections, *result.rejections],
        )
