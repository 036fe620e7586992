"""
conftest.py — Shared pytest fixtures for the Solar Quote backend test suite.

No database or external service fixtures are defined here.  All tests in this
suite are pure unit tests that exercise the derivation and aggregation classes
in isolation (the API tests run the FastAPI app in-process).

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``solarquote.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any solarquote imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# DerivationEngine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def engine():
    """
    DerivationEngine with all defaults (no overrides).

    Defaults:
      GST = 8.9 % (solar), 0 % (water heater / pump), phase threshold = 6.
    """
    from solarquote.services.derivation_engine import DerivationEngine
    return DerivationEngine()


@pytest.fixture(scope="session")
def commercial_engine():
    """DerivationEngine whose missing property type resolves to commercial (no subsidy)."""
    from solarquote.services.derivation_engine import DerivationEngine
    return DerivationEngine({"default_property_type": "commercial"})


# ---------------------------------------------------------------------------
# QuotationAggregator fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def aggregator():
    """QuotationAggregator with the standard 90 % advance."""
    from solarquote.services.quotation_aggregator import QuotationAggregator
    return QuotationAggregator()


# ---------------------------------------------------------------------------
# Sample records
# ---------------------------------------------------------------------------

@pytest.fixture
def priced_on_grid(engine):
    """
    On-grid, 3 × 540 W DCR panels at 50 000 / kW, residential.

      systemKW   = 540 × 3 / 1000 = 1.62 (rounds to 2 for pricing)
      basePrice  = 2 × 50 000      = 100 000
      gstAmount  = 100 000 × 8.9 % = 8 900
      value      = 108 900
      subsidy    = 60 000 (1 < 1.62 ≤ 2)
      payment    = 48 900
    """
    record = engine.new_project("on_grid", "residential").record
    return engine.apply(
        record,
        [("panel_watts", "540"), ("dcr_panel_count", 3), ("price_per_kw", 50000)],
        "residential",
    ).record


@pytest.fixture
def split_on_grid():
    """On-grid with 6 DCR + 4 non-DCR panels (panelCount = 10), 540 W."""
    from solarquote.models.project_models import OnGridProject
    return OnGridProject(
        panel_watts="540",
        dcr_panel_count=6,
        non_dcr_panel_count=4,
        panel_count=10,
        system_kw=5.4,
    )


@pytest.fixture
def off_grid(engine):
    """Off-grid from factory defaults: 150 AH × 4 batteries, default usage scenarios."""
    return engine.new_project("off_grid").record


@pytest.fixture
def two_on_grid_projects():
    """
    Two already-derived on-grid projects:
      A: base 50 000, GST 4 450, value 54 450
      B: base 70 000, GST 6 230, value 76 230
    """
    from solarquote.models.project_models import OnGridProject
    return [
        OnGridProject(base_price=50000, gst_amount=4450, project_value=54450, customer_payment=54450),
        OnGridProject(base_price=70000, gst_amount=6230, project_value=76230, customer_payment=76230),
    ]
