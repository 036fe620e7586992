"""
Backup-Solutions Calculator — battery runtime estimates for off-grid & hybrid.

Formula:
    backup_watts = round(battery_AH × battery_count × 10 × (1 − 3 %))
    backup_hours[i] = backup_watts / usage_watts[i]     (0 when usage is 0)

Backup watts follow the battery inputs: any AH / count change recomputes them
and clears ``manually_edited``, discarding a previous hand-entered value.

Up to 5 usage scenarios; adding a sixth is rejected and the record unchanged.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from solarquote.config import (
    BACKUP_DERATING_PCT,
    BACKUP_HOURS_DECIMALS,
    BACKUP_WATTS_PER_AH,
    DEFAULT_USAGE_WATTS,
    MAX_USAGE_SCENARIOS,
)
from solarquote.models.project_models import BackupSolutions
from solarquote.services.rounding_policy import round_half_up, round_money, to_count, to_number

logger = logging.getLogger("solarquote-backup")


@dataclass(frozen=True)
class ScenarioResult:
    backup: BackupSolutions
    accepted: bool = True
    reason: str = ""


# ---------------------------------------------------------------------------
# Formulae
# ---------------------------------------------------------------------------

def calculate_backup_watts(battery_ah: int, battery_count: int) -> int:
    """100 AH × 2 batteries → 100 × 2 × 10 × 0.97 = 1940 W."""
    base_watts = to_count(battery_ah) * to_count(battery_count) * BACKUP_WATTS_PER_AH
    return round_money(base_watts * (1.0 - BACKUP_DERATING_PCT))


def calculate_backup_hours(backup_watts: float, usage_watts: List[float]) -> List[float]:
    hours = []
    for usage in usage_watts:
        if usage <= 0:
            hours.append(0.0)
        else:
            hours.append(round_half_up(backup_watts / usage, BACKUP_HOURS_DECIMALS))
    return hours


def refresh_hours(backup: BackupSolutions) -> BackupSolutions:
    """Re-derive every scenario's hours from the current backup watts."""
    return backup.model_copy(
        update={"backup_hours": calculate_backup_hours(backup.backup_watts, backup.usage_watts)}
    )


# ---------------------------------------------------------------------------
# Backup watts sources
# ---------------------------------------------------------------------------

def apply_battery_change(backup: BackupSolutions, battery_ah: int, battery_count: int) -> BackupSolutions:
    """Battery inputs changed: formula wins again, manual override is dropped."""
    if backup.manually_edited:
        logger.info("Battery inputs changed — discarding manual backup watts override")
    updated = backup.model_copy(
        update={
            "backup_watts": calculate_backup_watts(battery_ah, battery_count),
            "manually_edited": False,
        }
    )
    return refresh_hours(updated)


def sync_backup(backup: BackupSolutions, battery_ah: int, battery_count: int) -> BackupSolutions:
    """Keep auto-calculated watts current; leave a manual override in place."""
    if backup.manually_edited:
        return refresh_hours(backup)
    updated = backup.model_copy(
        update={"backup_watts": calculate_backup_watts(battery_ah, battery_count)}
    )
    return refresh_hours(updated)


def set_backup_watts(backup: BackupSolutions, watts) -> BackupSolutions:
    """Hand-entered backup watts; malformed input becomes 0."""
    value = to_number(watts)
    updated = backup.model_copy(
        update={"backup_watts": max(value, 0), "manually_edited": True}
    )
    return refresh_hours(updated)


# ---------------------------------------------------------------------------
# Usage scenarios
# ---------------------------------------------------------------------------

def _usage_value(watts) -> float:
    value = to_number(watts)
    return value if value > 0 else 0


def add_usage_scenario(backup: BackupSolutions, usage_watts) -> ScenarioResult:
    if len(backup.usage_watts) >= MAX_USAGE_SCENARIOS:
        reason = f"At most {MAX_USAGE_SCENARIOS} usage scenarios are allowed"
        logger.warning(reason)
        return ScenarioResult(backup=backup, accepted=False, reason=reason)
    updated = backup.model_copy(
        update={"usage_watts": [*backup.usage_watts, _usage_value(usage_watts)]}
    )
    return ScenarioResult(backup=refresh_hours(updated))


def update_usage_scenario(backup: BackupSolutions, index: int, usage_watts) -> ScenarioResult:
    if not 0 <= index < len(backup.usage_watts):
        reason = f"No usage scenario at position {index}"
        logger.warning(reason)
        return ScenarioResult(backup=backup, accepted=False, reason=reason)
    usage = list(backup.usage_watts)
    usage[index] = _usage_value(usage_watts)
    return ScenarioResult(backup=refresh_hours(backup.model_copy(update={"usage_watts": usage})))


def remove_usage_scenario(backup: BackupSolutions, index: int) -> ScenarioResult:
    if not 0 <= index < len(backup.usage_watts):
        reason = f"No usage scenario at position {index}"
        logger.warning(reason)
        return ScenarioResult(backup=backup, accepted=False, reason=reason)
    usage = [w for i, w in enumerate(backup.usage_watts) if i != index]
    return ScenarioResult(backup=refresh_hours(backup.model_copy(update={"usage_watts": usage})))


def replace_usage_scenarios(backup: BackupSolutions, usage_watts: Optional[list]) -> ScenarioResult:
    """Replace the whole scenario list (form sends the full array)."""
    values = [_usage_value(w) for w in (usage_watts or [])]
    if len(values) > MAX_USAGE_SCENARIOS:
        reason = f"At most {MAX_USAGE_SCENARIOS} usage scenarios are allowed (got {len(values)})"
        logger.warning(reason)
        return ScenarioResult(backup=backup, accepted=False, reason=reason)
    return ScenarioResult(backup=refresh_hours(backup.model_copy(update={"usage_watts": values})))


def seed_default_scenarios(backup: BackupSolutions) -> BackupSolutions:
    """Fill an empty scenario list with the standard 800/750/550/450/200 W loads."""
    if backup.usage_watts:
        return backup
    return refresh_hours(backup.model_copy(update={"usage_watts": list(DEFAULT_USAGE_WATTS)}))
