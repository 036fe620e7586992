"""
Project configuration API routes

POST /api/projects/new               — fully derived record from variant defaults
POST /api/projects/derive            — apply form edits, return the re-derived record
POST /api/projects/backup-scenarios  — add / update / remove a usage scenario
POST /api/projects/bom-payload       — hand-off payload for the BOM generator
"""
import logging
from typing import Any, List, Literal, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from solarquote.config import BATTERY_PROJECT_TYPES, PROJECT_TYPES, get_settings
from solarquote.models.project_models import ProjectRecord
from solarquote.services import backup_calculator
from solarquote.services.derivation_engine import DerivationEngine, bom_payload

router = APIRouter(prefix="/api/projects", tags=["Projects"])
logger = logging.getLogger("solarquote-api.projects")


def _engine() -> DerivationEngine:
    settings = get_settings()
    return DerivationEngine({"default_property_type": settings["default_property_type"]})


# ── Pydantic Models ─────────────────────────────────────────────────────────

class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NewProjectRequest(_Request):
    project_type: str
    property_type: Optional[str] = None


class FieldEdit(_Request):
    field: str
    value: Any = None


class DeriveRequest(_Request):
    project: ProjectRecord
    edits: List[FieldEdit] = Field(default_factory=list)
    property_type: Optional[str] = None


class BackupScenarioRequest(_Request):
    project: ProjectRecord
    action: Literal["add", "update", "remove"]
    index: Optional[int] = None
    usage_watts: Optional[float] = None


class BomPayloadRequest(_Request):
    project: ProjectRecord
    property_type: Optional[str] = None


# ── Routes ───────────────────────────────────────────────────────────────────

@router.post("/new")
async def new_project(req: NewProjectRequest):
    """Fresh record for one project variant, every derived field settled."""
    if req.project_type not in PROJECT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown project type '{req.project_type}'. Expected one of {list(PROJECT_TYPES)}",
        )
    result = _engine().new_project(req.project_type, req.property_type)
    return {
        "project": result.record.model_dump(by_alias=True),
        "warnings": result.warnings,
        "rejections": result.rejections,
    }


@router.post("/derive")
async def derive_project(req: DeriveRequest):
    """Apply edits in order; rejected edits are reported, never raised."""
    edits = [(e.field, e.value) for e in req.edits]
    result = _engine().apply(req.project, edits, req.property_type)
    return {
        "project": result.record.model_dump(by_alias=True),
        "warnings": result.warnings,
        "rejections": result.rejections,
    }


@router.post("/backup-scenarios")
async def update_backup_scenarios(req: BackupScenarioRequest):
    """Scenario list edits for off-grid / hybrid records (max 5 scenarios)."""
    project = req.project
    if project.project_type not in BATTERY_PROJECT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"{project.project_type} projects carry no backup solutions",
        )

    backup = project.backup_solutions
    if req.action == "add":
        outcome = backup_calculator.add_usage_scenario(backup, req.usage_watts)
    else:
        if req.index is None:
            raise HTTPException(status_code=400, detail=f"'index' is required for action '{req.action}'")
        if req.action == "update":
            outcome = backup_calculator.update_usage_scenario(backup, req.index, req.usage_watts)
        else:
            outcome = backup_calculator.remove_usage_scenario(backup, req.index)

    updated = project.model_copy(update={"backup_solutions": outcome.backup})
    return {
        "project": updated.model_dump(by_alias=True),
        "accepted": outcome.accepted,
        "reason": outcome.reason,
    }


@router.post("/bom-payload")
async def build_bom_payload(req: BomPayloadRequest):
    """Record + property type for the external Bill-of-Materials generator."""
    return bom_payload(req.project, req.property_type or get_settings()["default_property_type"])
