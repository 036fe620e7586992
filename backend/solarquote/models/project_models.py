"""
Project & quotation data shapes.

Each project variant is its own frozen model carrying only its own fields;
``ProjectRecord`` is the union discriminated on ``projectType``. Wire format
(JSON in/out of the API) is camelCase; Python attributes are snake_case.

Records are immutable: the derivation engine returns a new record for every
edit and never mutates the one it was given.
"""
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from solarquote.config import (
    DEFAULT_ADVANCE_PCT,
    DEFAULT_GST_PCT_SERVICE,
    DEFAULT_GST_PCT_SOLAR,
    DEFAULT_PAYMENT_TERMS,
    SINGLE_PHASE,
)

InverterPhase = Literal["single_phase", "three_phase"]


class _WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python, immutable once built."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class BackupSolutions(_WireModel):
    """Battery runtime estimate for off-grid / hybrid systems."""
    backup_watts: float = 0
    usage_watts: List[float] = Field(default_factory=list, max_length=5)
    backup_hours: List[float] = Field(default_factory=list)   # 1:1 with usage_watts
    manually_edited: bool = False


# ── Shared fields ─────────────────────────────────────────────────────────────

class _ProjectBase(_WireModel):
    project_value: float = 0          # unit price including tax
    gst_percentage: float = DEFAULT_GST_PCT_SOLAR
    base_price: float = 0
    gst_amount: float = 0
    subsidy_amount: float = 0
    customer_payment: float = 0
    others: str = ""


class _PanelMixin(_WireModel):
    panel_watts: str = ""
    dcr_panel_count: int = 0
    non_dcr_panel_count: int = 0
    panel_count: int = 0


class _SolarBase(_ProjectBase, _PanelMixin):
    system_kw: float = Field(0, alias="systemKW")
    price_per_kw: float = Field(0, alias="pricePerKW")
    inverter_kw: float = Field(0, alias="inverterKW")
    inverter_phase: InverterPhase = SINGLE_PHASE
    inverter_qty: int = 1
    electrical_accessories: bool = False
    electrical_count: Optional[int] = 0


class _BatteryMixin(_WireModel):
    inverter_kva: Optional[str] = Field(None, alias="inverterKVA")
    battery_ah: int = Field(0, alias="batteryAH")
    battery_count: int = 0
    voltage: float = 0
    backup_solutions: BackupSolutions = Field(default_factory=BackupSolutions)


# ── Variants ──────────────────────────────────────────────────────────────────

class OnGridProject(_SolarBase):
    project_type: Literal["on_grid"] = "on_grid"


class OffGridProject(_SolarBase, _BatteryMixin):
    project_type: Literal["off_grid"] = "off_grid"


class HybridProject(_SolarBase, _BatteryMixin):
    project_type: Literal["hybrid"] = "hybrid"


class WaterHeaterProject(_ProjectBase):
    project_type: Literal["water_heater"] = "water_heater"
    gst_percentage: float = DEFAULT_GST_PCT_SERVICE
    litre: int = 0
    qty: int = 1
    water_heater_model: str = ""
    brand: str = ""


class WaterPumpProject(_ProjectBase, _PanelMixin):
    project_type: Literal["water_pump"] = "water_pump"
    gst_percentage: float = DEFAULT_GST_PCT_SERVICE
    drive_hp: str = Field("", alias="driveHP")
    hp: str = ""                      # mirrors drive_hp
    inverter_phase: InverterPhase = SINGLE_PHASE
    qty: int = 1


ProjectRecord = Annotated[
    Union[OnGridProject, OffGridProject, HybridProject, WaterHeaterProject, WaterPumpProject],
    Field(discriminator="project_type"),
]

SolarProject = Union[OnGridProject, OffGridProject, HybridProject]
BatteryProject = Union[OffGridProject, HybridProject]
ServiceProject = Union[WaterHeaterProject, WaterPumpProject]

PROJECT_MODELS = {
    "on_grid": OnGridProject,
    "off_grid": OffGridProject,
    "hybrid": HybridProject,
    "water_heater": WaterHeaterProject,
    "water_pump": WaterPumpProject,
}


# ── Quotation ─────────────────────────────────────────────────────────────────

class Quotation(_WireModel):
    """Ordered project list plus quotation-level totals and payment split."""
    projects: List[ProjectRecord] = Field(default_factory=list)
    property_type: Optional[str] = None
    payment_terms: str = DEFAULT_PAYMENT_TERMS
    total_system_cost: float = 0
    total_gst_amount: float = Field(0, alias="totalGSTAmount")
    total_with_gst: float = Field(0, alias="totalWithGST")
    total_subsidy_amount: float = 0
    total_customer_payment: float = 0
    advance_payment_percentage: float = DEFAULT_ADVANCE_PCT
    advance_amount: float = 0
    balance_amount: float = 0
