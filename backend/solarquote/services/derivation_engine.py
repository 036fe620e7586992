"""
DerivationEngine — keeps every derived project field consistent with the
fields a salesperson actually edits.

Covers:
  - Panel split: panel_count = dcr + non-DCR, with total-count redistribution
  - System capacity from panel watts × panel count
  - Two pricing paths (solar):
      forward  — project_value edited:  base, tax and price/kW follow
      inverse  — price/kW, system kW or GST edited:  base, tax and value follow
  - Service-only pricing (water heater / pump): per-unit split, qty-multiplied payment
  - Inverter phase from capacity (< 6 single, ≥ 6 three), re-applied on capacity edits only
  - Electrical accessory count from inverter quantity
  - Subsidy and customer payment
  - Battery backup watts / hours (delegated to backup_calculator)

Every edit produces a new record. Malformed numeric input is coerced, never
raised; unknown or derived fields and over-cap scenario lists are rejected and
reported in the result with the record left as it was for that edit.
"""

import logging
import math
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic.alias_generators import to_camel

from solarquote.config import (
    BATTERY_PROJECT_TYPES,
    DEFAULT_GST_PCT_SERVICE,
    DEFAULT_GST_PCT_SOLAR,
    INVERTER_PHASES,
    PHASE_THRESHOLD,
    PROJECT_DEFAULTS,
    SOLAR_PROJECT_TYPES,
    SUBSIDY_PROJECT_TYPES,
)
from solarquote.models.project_models import PROJECT_MODELS, ProjectRecord
from solarquote.services import backup_calculator
from solarquote.services.rounding_policy import (
    calculate_system_kw,
    phase_for_capacity,
    round_money,
    round_system_kw,
    to_count,
    to_flag,
    to_number,
    to_text,
)
from solarquote.services.subsidy_policy import calculate_subsidy, resolve_property_type

logger = logging.getLogger("solarquote-engine")

# Fields the form may never write: they are outputs of a derivation pass.
_DERIVED_FIELDS = frozenset({
    "project_type",
    "base_price",
    "gst_amount",
    "subsidy_amount",
    "customer_payment",
    "electrical_count",
    "backup_solutions",
    "backup_hours",
    "manually_edited",
})

_SOLAR_HANDLERS: Dict[str, str] = {
    "panel_watts": "_edit_panel_watts",
    "dcr_panel_count": "_edit_split_count",
    "non_dcr_panel_count": "_edit_split_count",
    "panel_count": "_edit_panel_count",
    "system_kw": "_edit_system_kw",
    "price_per_kw": "_edit_price_per_kw",
    "gst_percentage": "_edit_gst_percentage",
    "project_value": "_edit_project_value",
    "inverter_kw": "_edit_inverter_kw",
    "inverter_phase": "_edit_inverter_phase",
    "inverter_qty": "_edit_inverter_qty",
    "electrical_accessories": "_edit_electrical_accessories",
    "others": "_edit_text",
}

_BATTERY_HANDLERS: Dict[str, str] = {
    **_SOLAR_HANDLERS,
    "inverter_kva": "_edit_inverter_kva",
    "battery_ah": "_edit_battery",
    "battery_count": "_edit_battery",
    "voltage": "_edit_number",
    "backup_watts": "_edit_backup_watts",
    "usage_watts": "_edit_usage_watts",
}

_HANDLERS: Dict[str, Dict[str, str]] = {
    "on_grid": _SOLAR_HANDLERS,
    "off_grid": _BATTERY_HANDLERS,
    "hybrid": _BATTERY_HANDLERS,
    "water_heater": {
        "project_value": "_edit_project_value",
        "gst_percentage": "_edit_gst_percentage",
        "qty": "_edit_qty",
        "litre": "_edit_count",
        "water_heater_model": "_edit_text",
        "brand": "_edit_text",
        "others": "_edit_text",
    },
    "water_pump": {
        "project_value": "_edit_project_value",
        "gst_percentage": "_edit_gst_percentage",
        "qty": "_edit_qty",
        "drive_hp": "_edit_drive_hp",
        "hp": "_edit_drive_hp",
        "panel_watts": "_edit_panel_watts",
        "dcr_panel_count": "_edit_split_count",
        "non_dcr_panel_count": "_edit_split_count",
        "panel_count": "_edit_panel_count",
        "inverter_phase": "_edit_inverter_phase",
        "others": "_edit_text",
    },
}


def _build_field_lookup(project_type: str) -> Dict[str, str]:
    """Map every accepted spelling (snake_case, camelCase alias) to the Python field name."""
    model_cls = PROJECT_MODELS[project_type]
    names = set(_HANDLERS[project_type]) | {
        name for name in model_cls.model_fields if name in _DERIVED_FIELDS
    }
    if project_type in BATTERY_PROJECT_TYPES:
        names |= {"backup_hours", "manually_edited"}

    lookup: Dict[str, str] = {}
    for name in names:
        lookup[name] = name
        lookup[to_camel(name)] = name
        info = model_cls.model_fields.get(name)
        if info is not None and info.alias:
            lookup[info.alias] = name
    return lookup


_FIELD_LOOKUP: Dict[str, Dict[str, str]] = {pt: _build_field_lookup(pt) for pt in _HANDLERS}


# ---------------------------------------------------------------------------
# Edit commands & results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Edit:
    """One field edit coming from the form layer."""
    field: str
    value: Any = None

    @classmethod
    def parse(cls, raw: Any) -> Optional["Edit"]:
        if isinstance(raw, Edit):
            return raw
        if isinstance(raw, Mapping) and "field" in raw:
            return cls(field=str(raw["field"]), value=raw.get("value"))
        if isinstance(raw, (tuple, list)) and len(raw) == 2:
            return cls(field=str(raw[0]), value=raw[1])
        return None


def normalize_edits(edits: Any) -> Tuple[List[Edit], List[str]]:
    """
    Accept a single Edit, a {field: value} mapping (applied in insertion order),
    or a sequence of Edit / (field, value) / {"field", "value"} items.
    """
    if edits is None:
        return [], []
    if isinstance(edits, Edit):
        return [edits], []
    if isinstance(edits, Mapping):
        if set(edits) == {"field", "value"}:
            return [Edit(field=str(edits["field"]), value=edits["value"])], []
        return [Edit(field=str(k), value=v) for k, v in edits.items()], []
    if isinstance(edits, (str, bytes)) or not isinstance(edits, Iterable):
        return [], [f"Unrecognised edit payload: {edits!r}"]

    parsed: List[Edit] = []
    rejected: List[str] = []
    for raw in edits:
        edit = Edit.parse(raw)
        if edit is None:
            rejected.append(f"Unrecognised edit: {raw!r}")
        else:
            parsed.append(edit)
    return parsed, rejected


@dataclass(frozen=True)
class DerivationResult:
    record: Optional[ProjectRecord]
    warnings: List[str] = field(default_factory=list)
    rejections: List[str] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return not self.rejections


@dataclass
class _Notes:
    warnings: List[str] = field(default_factory=list)
    rejections: List[str] = field(default_factory=list)


def _capacity_text(kw: float) -> Optional[str]:
    if kw <= 0:
        return None
    return str(int(kw)) if float(kw).is_integer() else str(kw)


# ---------------------------------------------------------------------------
# DerivationEngine
# ---------------------------------------------------------------------------

class DerivationEngine:
    """
    Pure, stateless recompute of project records.

    Edits are resolved one at a time, in the order given: each edit settles
    every dependent field before the next one reads the record.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        cfg = config or {}
        self.solar_gst_pct: float = float(cfg.get("solar_gst_pct", DEFAULT_GST_PCT_SOLAR))
        self.service_gst_pct: float = float(cfg.get("service_gst_pct", DEFAULT_GST_PCT_SERVICE))
        self.phase_threshold: float = float(cfg.get("phase_threshold", PHASE_THRESHOLD))
        self.default_property_type: Optional[str] = cfg.get("default_property_type")

    # ------------------------------------------------------------------
    # 1. Public operations
    # ------------------------------------------------------------------

    def new_project(self, project_type: str, property_type: Optional[str] = None) -> DerivationResult:
        """Build a fully derived record for ``project_type`` from the standard defaults."""
        model_cls = PROJECT_MODELS.get(project_type)
        if model_cls is None:
            reason = f"Unknown project type '{project_type}'"
            logger.warning(reason)
            return DerivationResult(record=None, rejections=[reason])

        defaults = dict(PROJECT_DEFAULTS[project_type])
        defaults["gst_percentage"] = (
            self.solar_gst_pct if project_type in SOLAR_PROJECT_TYPES else self.service_gst_pct
        )
        record = model_cls(**defaults)
        if project_type == "water_pump":
            record = record.model_copy(
                update={"inverter_phase": phase_for_capacity(to_number(record.drive_hp), self.phase_threshold)}
            )
        if project_type in BATTERY_PROJECT_TYPES:
            record = record.model_copy(
                update={"backup_solutions": backup_calculator.seed_default_scenarios(record.backup_solutions)}
            )
        return self.derive(record, property_type)

    def derive(self, record: ProjectRecord, property_type: Optional[str] = None) -> DerivationResult:
        """Repair any broken invariant and settle every derived field, without an edit."""
        return self.apply(record, [], property_type)

    def apply(
        self,
        record: ProjectRecord,
        edits: Any,
        property_type: Optional[str] = None,
    ) -> DerivationResult:
        """
        Apply ``edits`` to ``record`` and return the re-derived record.

        Args:
            record:        Current project record (never mutated).
            edits:         Edit, {field: value} mapping, or sequence of edits.
            property_type: Customer property type; defaults to residential
                           (with a warning) where subsidy depends on it.
        """
        start = time.perf_counter()
        project_type = record.project_type
        notes = _Notes()

        parsed, unparsed = normalize_edits(edits)
        notes.rejections.extend(unparsed)

        resolved_property_type = property_type or self.default_property_type
        if project_type in SUBSIDY_PROJECT_TYPES:
            resolved_property_type, defaulted = resolve_property_type(resolved_property_type)
            notes.warnings.extend(defaulted)

        state: Dict[str, Any] = dict(record)
        self._normalize(project_type, state)
        self._settle(project_type, state, resolved_property_type)

        lookup = _FIELD_LOOKUP[project_type]
        handlers = _HANDLERS[project_type]
        for edit in parsed:
            name = lookup.get(edit.field)
            if name is None:
                notes.rejections.append(f"'{edit.field}' is not a field of a {project_type} project")
                continue
            if name not in handlers:
                notes.rejections.append(f"'{edit.field}' is derived and cannot be edited directly")
                continue
            getattr(self, handlers[name])(project_type, state, name, edit.value, notes)
            self._settle(project_type, state, resolved_property_type)

        for reason in notes.rejections:
            logger.warning(f"Edit rejected on {project_type} project: {reason}")

        duration_ms = round((time.perf_counter() - start) * 1000, 3)
        logger.debug(
            "derivation pass",
            extra={"project_type": project_type, "edits": len(parsed), "duration_ms": duration_ms},
        )
        return DerivationResult(
            record=record.model_copy(update=state),
            warnings=notes.warnings,
            rejections=notes.rejections,
        )

    # ------------------------------------------------------------------
    # 2. Consistency passes
    # ------------------------------------------------------------------

    def _normalize(self, project_type: str, state: Dict[str, Any]) -> None:
        """Repair only what is inconsistent so a consistent record passes through unchanged."""
        if "panel_count" in state:
            split_total = state["dcr_panel_count"] + state["non_dcr_panel_count"]
            if split_total == 0 and state["panel_count"] > 0:
                self._redistribute(state, state["panel_count"])
            else:
                state["panel_count"] = split_total

        is_solar = project_type in SOLAR_PROJECT_TYPES
        if is_solar:
            kw = calculate_system_kw(state["panel_watts"], state["panel_count"])
            if not math.isclose(kw, state["system_kw"], abs_tol=1e-9):
                state["system_kw"] = kw
                self._rate_from_base(state)

        if not math.isclose(
            state["base_price"] + state["gst_amount"], state["project_value"], abs_tol=1e-6
        ):
            if is_solar:
                self._price_forward(state)
            else:
                self._split_price(state)

        if project_type == "water_pump" and state["drive_hp"] != state["hp"]:
            mirrored = state["drive_hp"] or state["hp"]
            state["drive_hp"] = state["hp"] = mirrored

    def _settle(self, project_type: str, state: Dict[str, Any], property_type: Optional[str]) -> None:
        """Recompute subsidy, payment and the other always-derived fields."""
        if project_type in SOLAR_PROJECT_TYPES:
            subsidy = calculate_subsidy(state["system_kw"], property_type, project_type)
            state["subsidy_amount"] = subsidy
            state["customer_payment"] = state["project_value"] - subsidy
            state["electrical_count"] = (
                state["inverter_qty"] if state["electrical_accessories"] else 0
            )
        else:
            # Per-unit value split by tax, payment multiplied by quantity.
            state["subsidy_amount"] = 0
            state["customer_payment"] = state["project_value"] * state["qty"]

        if project_type in BATTERY_PROJECT_TYPES:
            state["backup_solutions"] = backup_calculator.sync_backup(
                state["backup_solutions"], state["battery_ah"], state["battery_count"]
            )

    # ------------------------------------------------------------------
    # 3. Pricing
    # ------------------------------------------------------------------

    @staticmethod
    def _split_price(state: Dict[str, Any]) -> None:
        """base = round(value / (1 + gst/100)); tax = value − base."""
        project_value = state["project_value"]
        base_price = round_money(project_value / (1 + state["gst_percentage"] / 100))
        state["base_price"] = base_price
        state["gst_amount"] = project_value - base_price

    @staticmethod
    def _rate_from_base(state: Dict[str, Any]) -> None:
        rounded_kw = round_system_kw(state["system_kw"])
        state["price_per_kw"] = round_money(state["base_price"] / rounded_kw) if rounded_kw > 0 else 0

    def _price_forward(self, state: Dict[str, Any]) -> None:
        self._split_price(state)
        self._rate_from_base(state)

    def _price_inverse(self, state: Dict[str, Any]) -> None:
        """base = round(kW × price/kW); tax = round(base × gst/100); value = base + tax."""
        rounded_kw = round_system_kw(state["system_kw"])
        if rounded_kw <= 0:
            # Nothing to price per kW against yet: keep the quoted value.
            self._split_price(state)
            return
        base_price = round_money(rounded_kw * state["price_per_kw"])
        gst_amount = round_money(base_price * state["gst_percentage"] / 100)
        state["base_price"] = base_price
        state["gst_amount"] = gst_amount
        state["project_value"] = base_price + gst_amount

    # ------------------------------------------------------------------
    # 4. Panels & capacity
    # ------------------------------------------------------------------

    @staticmethod
    def _redistribute(state: Dict[str, Any], total: int) -> None:
        """
        New total below the current non-DCR count: everything becomes non-DCR.
        Otherwise non-DCR stays and DCR absorbs the difference.
        """
        if total < state["non_dcr_panel_count"]:
            state["non_dcr_panel_count"] = total
            state["dcr_panel_count"] = 0
        else:
            state["dcr_panel_count"] = total - state["non_dcr_panel_count"]
        state["panel_count"] = total

    def _capacity_changed(self, project_type: str, state: Dict[str, Any]) -> None:
        if project_type not in SOLAR_PROJECT_TYPES:
            return
        state["system_kw"] = calculate_system_kw(state["panel_watts"], state["panel_count"])
        self._rate_from_base(state)

    # ------------------------------------------------------------------
    # 5. Field handlers
    # ------------------------------------------------------------------

    def _edit_panel_watts(self, project_type, state, name, value, notes) -> None:
        state[name] = to_text(value)
        self._capacity_changed(project_type, state)

    def _edit_split_count(self, project_type, state, name, value, notes) -> None:
        state[name] = to_count(value)
        state["panel_count"] = state["dcr_panel_count"] + state["non_dcr_panel_count"]
        self._capacity_changed(project_type, state)

    def _edit_panel_count(self, project_type, state, name, value, notes) -> None:
        self._redistribute(state, to_count(value))
        self._capacity_changed(project_type, state)

    def _edit_system_kw(self, project_type, state, name, value, notes) -> None:
        notes.warnings.append(
            "systemKW is derived from panel watts × panel count; "
            "the supplied value was ignored and the price re-derived"
        )
        self._price_inverse(state)

    def _edit_price_per_kw(self, project_type, state, name, value, notes) -> None:
        state[name] = max(to_number(value), 0)
        self._price_inverse(state)

    def _edit_gst_percentage(self, project_type, state, name, value, notes) -> None:
        state[name] = min(max(to_number(value), 0), 100)
        if project_type in SOLAR_PROJECT_TYPES:
            self._price_inverse(state)
        else:
            self._split_price(state)

    def _edit_project_value(self, project_type, state, name, value, notes) -> None:
        state[name] = max(to_number(value), 0)
        if project_type in SOLAR_PROJECT_TYPES:
            self._price_forward(state)
        else:
            self._split_price(state)

    def _edit_inverter_kw(self, project_type, state, name, value, notes) -> None:
        kw = max(to_number(value), 0)
        state[name] = kw
        if project_type in BATTERY_PROJECT_TYPES:
            state["inverter_kva"] = _capacity_text(kw)
        state["inverter_phase"] = phase_for_capacity(kw, self.phase_threshold)

    def _edit_inverter_kva(self, project_type, state, name, value, notes) -> None:
        text = to_text(value)
        kva = max(to_number(text), 0)
        state[name] = text or None
        state["inverter_kw"] = kva
        state["inverter_phase"] = phase_for_capacity(kva, self.phase_threshold)

    def _edit_inverter_phase(self, project_type, state, name, value, notes) -> None:
        phase = to_text(value)
        if phase not in INVERTER_PHASES:
            notes.warnings.append(f"Unknown inverter phase '{phase}'; kept '{state[name]}'")
            return
        state[name] = phase

    def _edit_inverter_qty(self, project_type, state, name, value, notes) -> None:
        qty = to_count(value, default=1)
        state[name] = qty if qty >= 1 else 1

    def _edit_electrical_accessories(self, project_type, state, name, value, notes) -> None:
        state[name] = to_flag(value)

    def _edit_battery(self, project_type, state, name, value, notes) -> None:
        state[name] = to_count(value)
        state["backup_solutions"] = backup_calculator.apply_battery_change(
            state["backup_solutions"], state["battery_ah"], state["battery_count"]
        )

    def _edit_backup_watts(self, project_type, state, name, value, notes) -> None:
        state["backup_solutions"] = backup_calculator.set_backup_watts(state["backup_solutions"], value)

    def _edit_usage_watts(self, project_type, state, name, value, notes) -> None:
        if value is not None and not isinstance(value, (list, tuple)):
            value = [value]
        result = backup_calculator.replace_usage_scenarios(state["backup_solutions"], value)
        if not result.accepted:
            notes.rejections.append(result.reason)
            return
        state["backup_solutions"] = result.backup

    def _edit_drive_hp(self, project_type, state, name, value, notes) -> None:
        text = to_text(value)
        state["drive_hp"] = state["hp"] = text
        state["inverter_phase"] = phase_for_capacity(to_number(text), self.phase_threshold)

    def _edit_qty(self, project_type, state, name, value, notes) -> None:
        qty = to_count(value, default=1)
        state[name] = qty if qty >= 1 else 1

    def _edit_count(self, project_type, state, name, value, notes) -> None:
        state[name] = to_count(value)

    def _edit_number(self, project_type, state, name, value, notes) -> None:
        state[name] = max(to_number(value), 0)

    def _edit_text(self, project_type, state, name, value, notes) -> None:
        state[name] = to_text(value)


# ---------------------------------------------------------------------------
# Invariants & hand-off
# ---------------------------------------------------------------------------

def verify_invariants(record: ProjectRecord) -> List[str]:
    """Return a description of every violated record invariant (empty when consistent)."""
    violations: List[str] = []
    project_type = record.project_type

    if hasattr(record, "panel_count"):
        if record.panel_count != record.dcr_panel_count + record.non_dcr_panel_count:
            violations.append("panelCount != dcrPanelCount + nonDcrPanelCount")

    if project_type in SOLAR_PROJECT_TYPES:
        expected_kw = calculate_system_kw(record.panel_watts, record.panel_count)
        if not math.isclose(record.system_kw, expected_kw, abs_tol=1e-9):
            violations.append("systemKW != panelWatts × panelCount / 1000")
        if not math.isclose(
            record.customer_payment, record.project_value - record.subsidy_amount, abs_tol=1e-6
        ):
            violations.append("customerPayment != projectValue − subsidyAmount")
    else:
        if record.subsidy_amount != 0:
            violations.append("service projects carry no subsidy")
        if not math.isclose(record.customer_payment, record.project_value * record.qty, abs_tol=1e-6):
            violations.append("customerPayment != projectValue × qty")

    if abs(record.base_price + record.gst_amount - record.project_value) > 1:
        violations.append("basePrice + gstAmount != projectValue")

    if project_type in BATTERY_PROJECT_TYPES:
        backup = record.backup_solutions
        if len(backup.backup_hours) != len(backup.usage_watts):
            violations.append("backupHours not aligned with usageWatts")

    return violations


def bom_payload(record: ProjectRecord, property_type: Optional[str] = None) -> Dict[str, Any]:
    """Record + property type as handed to the external Bill-of-Materials generator."""
    resolved, warnings = resolve_property_type(property_type)
    violations = verify_invariants(record)
    if violations:
        logger.warning(f"BOM hand-off for inconsistent {record.project_type} record: {violations}")
    return {
        "project": record.model_dump(by_alias=True),
        "propertyType": resolved,
        "invariantViolations": violations,
        "warnings": warnings,
    }


_engine = DerivationEngine()


def apply_edits(record: ProjectRecord, edits: Any, property_type: Optional[str] = None) -> ProjectRecord:
    """``apply(record, fieldEdits) → record'`` with default engine settings."""
    return _engine.apply(record, edits, property_type).record
