"""
test_backup_calculator.py — Unit tests for battery backup estimates.

Formula:
    backup_watts   = round(AH × count × 10 × 0.97)
    backup_hours_i = round(backup_watts / usage_watts_i, 2)   (0 when usage is 0)

Tests cover:
  - Backup watts derating and hours per scenario
  - Manual override and its reset on battery changes
  - Scenario list add / update / remove / replace with the 5-item cap
  - Default scenario seeding
"""

import pytest

from solarquote.models.project_models import BackupSolutions
from solarquote.services import backup_calculator as bc


@pytest.fixture
def backup_1940():
    """100 AH × 2 batteries → 1 940 W with a single 500 W scenario."""
    return bc.apply_battery_change(BackupSolutions(usage_watts=[500]), 100, 2)


# ===========================================================================
# Class 1: Formulae
# ===========================================================================

class TestBackupFormula:

    def test_backup_watts_100ah_x2(self):
        """100 × 2 × 10 = 2 000 W, less 3 % = 1 940 W."""
        assert bc.calculate_backup_watts(100, 2) == 1940

    def test_backup_watts_factory_defaults(self):
        """150 AH × 4 → 6 000 × 0.97 = 5 820 W."""
        assert bc.calculate_backup_watts(150, 4) == 5820

    def test_backup_watts_no_batteries(self):
        assert bc.calculate_backup_watts(150, 0) == 0

    def test_backup_hours(self, backup_1940):
        """1 940 / 500 = 3.88 h."""
        assert backup_1940.backup_watts == 1940
        assert backup_1940.backup_hours == [3.88]

    def test_zero_usage_gives_zero_hours(self):
        assert bc.calculate_backup_hours(1940, [0, 970]) == [0.0, 2.0]

    def test_hours_round_to_two_decimals(self):
        """5 820 / 550 = 10.5818… → 10.58."""
        assert bc.calculate_backup_hours(5820, [550]) == [10.58]


# ===========================================================================
# Class 2: Manual override
# ===========================================================================

class TestManualOverride:

    def test_manual_watts_sets_flag_and_hours(self, backup_1940):
        """3 000 W over 500 W → 6 h."""
        edited = bc.set_backup_watts(backup_1940, 3000)
        assert edited.manually_edited is True
        assert edited.backup_watts == 3000
        assert edited.backup_hours == [6.0]

    def test_sync_keeps_manual_value(self, backup_1940):
        edited = bc.set_backup_watts(backup_1940, 3000)
        synced = bc.sync_backup(edited, 100, 2)
        assert synced.backup_watts == 3000
        assert synced.manually_edited is True

    def test_battery_change_discards_manual_value(self, backup_1940):
        """After a manual 3 000 W, count 2 → 3: 100 × 3 × 10 × 0.97 = 2 910 W, flag cleared."""
        edited = bc.set_backup_watts(backup_1940, 3000)
        changed = bc.apply_battery_change(edited, 100, 3)
        assert changed.backup_watts == 2910
        assert changed.manually_edited is False

    def test_malformed_manual_watts_is_zero(self, backup_1940):
        edited = bc.set_backup_watts(backup_1940, "lots")
        assert edited.backup_watts == 0
        assert edited.backup_hours == [0.0]

    def test_original_not_mutated(self, backup_1940):
        bc.set_backup_watts(backup_1940, 3000)
        assert backup_1940.backup_watts == 1940
        assert backup_1940.manually_edited is False


# ===========================================================================
# Class 3: Usage scenarios
# ===========================================================================

class TestUsageScenarios:

    def test_add_scenario(self, backup_1940):
        """1 940 / 970 = 2 h."""
        result = bc.add_usage_scenario(backup_1940, 970)
        assert result.accepted
        assert result.backup.usage_watts == [500, 970]
        assert result.backup.backup_hours == [3.88, 2.0]

    def test_sixth_scenario_rejected(self):
        full = bc.seed_default_scenarios(BackupSolutions())
        result = bc.add_usage_scenario(full, 100)
        assert not result.accepted
        assert "5" in result.reason
        assert result.backup == full

    def test_update_scenario(self, backup_1940):
        """1 940 / 1 000 = 1.94 h."""
        result = bc.update_usage_scenario(backup_1940, 0, 1000)
        assert result.accepted
        assert result.backup.backup_hours == [1.94]

    def test_update_bad_index_rejected(self, backup_1940):
        result = bc.update_usage_scenario(backup_1940, 3, 1000)
        assert not result.accepted
        assert result.backup == backup_1940

    def test_remove_scenario(self, backup_1940):
        result = bc.remove_usage_scenario(backup_1940, 0)
        assert result.accepted
        assert result.backup.usage_watts == []
        assert result.backup.backup_hours == []

    def test_remove_bad_index_rejected(self, backup_1940):
        result = bc.remove_usage_scenario(backup_1940, -1)
        assert not result.accepted

    def test_replace_over_cap_rejected(self, backup_1940):
        result = bc.replace_usage_scenarios(backup_1940, [1, 2, 3, 4, 5, 6])
        assert not result.accepted
        assert result.backup == backup_1940

    def test_replace_coerces_garbage_to_zero(self, backup_1940):
        result = bc.replace_usage_scenarios(backup_1940, ["abc", 970])
        assert result.backup.usage_watts == [0, 970]
        assert result.backup.backup_hours == [0.0, 2.0]

    def test_seed_defaults(self):
        seeded = bc.seed_default_scenarios(BackupSolutions())
        assert seeded.usage_watts == [800, 750, 550, 450, 200]
        assert len(seeded.backup_hours) == 5

    def test_seed_leaves_existing_scenarios(self, backup_1940):
        assert bc.seed_default_scenarios(backup_1940) == backup_1940
