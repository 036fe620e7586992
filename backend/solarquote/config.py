"""
Quotation configuration — single source of truth for tax defaults, capacity
thresholds, subsidy tiers, backup derating, payment terms and project defaults.

Import from here in all services rather than hardcoding values.
"""
from __future__ import annotations

import os

# ── Project variants ───────────────────────────────────────────────────────────
SOLAR_PROJECT_TYPES: tuple[str, ...] = ("on_grid", "off_grid", "hybrid")
BATTERY_PROJECT_TYPES: tuple[str, ...] = ("off_grid", "hybrid")
SERVICE_PROJECT_TYPES: tuple[str, ...] = ("water_heater", "water_pump")
PROJECT_TYPES: tuple[str, ...] = SOLAR_PROJECT_TYPES + SERVICE_PROJECT_TYPES

PROPERTY_TYPES: tuple[str, ...] = ("residential", "commercial", "agri", "other")
DEFAULT_PROPERTY_TYPE: str = "residential"


# ── Tax ────────────────────────────────────────────────────────────────────────
DEFAULT_GST_PCT_SOLAR: float = 8.9
DEFAULT_GST_PCT_SERVICE: float = 0.0


# ── Inverter phase ─────────────────────────────────────────────────────────────
# Capacity strictly below this (kW / kVA / drive HP) is wired single phase.
PHASE_THRESHOLD: float = 6.0
SINGLE_PHASE: str = "single_phase"
THREE_PHASE: str = "three_phase"
INVERTER_PHASES: tuple[str, ...] = (SINGLE_PHASE, THREE_PHASE)


# ── Government subsidy ─────────────────────────────────────────────────────────
# (upper bound kW inclusive, amount). Capacity above the last bound gets nothing.
SUBSIDY_TIERS: list[tuple[float, int]] = [
    (1.0, 30_000),
    (2.0, 60_000),
    (10.0, 78_000),
]
SUBSIDY_PROPERTY_TYPES: tuple[str, ...] = ("residential",)
SUBSIDY_PROJECT_TYPES: tuple[str, ...] = ("on_grid", "hybrid")


# ── Battery backup ─────────────────────────────────────────────────────────────
BACKUP_WATTS_PER_AH: float = 10.0
BACKUP_DERATING_PCT: float = 0.03            # flat 3 % conversion loss
MAX_USAGE_SCENARIOS: int = 5
DEFAULT_USAGE_WATTS: list[float] = [800, 750, 550, 450, 200]
BACKUP_HOURS_DECIMALS: int = 2


# ── Payment split ──────────────────────────────────────────────────────────────
DEFAULT_ADVANCE_PCT: float = 90.0
PAYMENT_TERMS_ADVANCE_PCT: dict[str, float] = {
    "advance_90_balance_10": 90.0,
    "advance_50_balance_50": 50.0,
    "full_advance": 100.0,
    "credit_30_days": 0.0,
}
DEFAULT_PAYMENT_TERMS: str = "advance_90_balance_10"


# ── Project defaults (used by the project factory) ─────────────────────────────
PROJECT_DEFAULTS: dict[str, dict] = {
    "on_grid": {
        "panel_watts": "530",
        "inverter_qty": 1,
        "gst_percentage": DEFAULT_GST_PCT_SOLAR,
    },
    "off_grid": {
        "panel_watts": "530",
        "inverter_qty": 1,
        "battery_ah": 150,
        "battery_count": 4,
        "voltage": 12,
        "gst_percentage": DEFAULT_GST_PCT_SOLAR,
    },
    "hybrid": {
        "panel_watts": "530",
        "inverter_qty": 1,
        "battery_ah": 150,
        "battery_count": 4,
        "voltage": 12,
        "gst_percentage": DEFAULT_GST_PCT_SOLAR,
    },
    "water_heater": {
        "litre": 100,
        "qty": 1,
        "water_heater_model": "non_pressurized",
        "gst_percentage": DEFAULT_GST_PCT_SERVICE,
    },
    "water_pump": {
        "drive_hp": "1",
        "hp": "1",
        "qty": 1,
        "gst_percentage": DEFAULT_GST_PCT_SERVICE,
    },
}


# ── Runtime settings (environment) ─────────────────────────────────────────────

def get_settings() -> dict:
    """Read runtime settings from the environment, falling back to module defaults."""
    cors_default = "http://localhost:3000,http://localhost:8000"
    try:
        advance_pct = float(os.getenv("ADVANCE_PAYMENT_PCT", DEFAULT_ADVANCE_PCT))
    except ValueError:
        advance_pct = DEFAULT_ADVANCE_PCT
    return {
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "json_logs": os.getenv("LOG_FORMAT", "json").lower() != "text",
        "cors_origins": [
            o.strip() for o in os.getenv("CORS_ORIGINS", cors_default).split(",") if o.strip()
        ],
        "advance_payment_pct": advance_pct,
        # Unset means "residential with a warning" (see subsidy_policy).
        "default_property_type": os.getenv("DEFAULT_PROPERTY_TYPE") or None,
    }
