from __future__ import annotations

from pathlib import Path

import pytest

from timecard_engine.settings_manager import DEFAULT_SETTINGS, SETTING_INFO, SettingsManager


@pytest.fixture()
def manager(settings_file: Path) -> SettingsManager:
    return SettingsManager(settings_file)


def test_loads_every_documented_setting(manager: SettingsManager):
    assert set(manager.export_settings()) == set(SETTING_INFO)
    assert manager.get_setting("DEFAULT_PAY_PERIOD_RULE") == "sun_sat_biweekly"
    assert manager.get_setting("TEMPLATE_LAYOUTS")["global_totals"]["category_rows"]["NIGHT"] == 13

    grouped = manager.get_all_settings()
    assert set(grouped) == {"template", "pay_periods", "holidays", "remote_holidays", "job_matching"}
    assert grouped["job_matching"] == {"JOB_CODE_SUGGESTION_CUTOFF": 70.0}


def test_file_settings_match_defaults(manager: SettingsManager):
    assert manager.export_settings() == DEFAULT_SETTINGS


def test_update_round_trips_through_the_file(manager: SettingsManager, settings_file: Path):
    rules = manager.get_setting("PAY_PERIOD_RULES")
    rules["mon_weekly"] = {"start_weekday": "MONDAY", "weeks": 1, "epoch_anchor": "2025-01-06",
                           "numbering": "sequential"}

    assert manager.update_settings({
        "HOLIDAY_HOURS_PER_DAY": 7.5,
        "DEFAULT_HOLIDAY_REGION": "CA",
        "PAY_PERIOD_RULES": rules,
    }), manager.last_errors

    reloaded = SettingsManager(settings_file)
    assert reloaded.get_setting("HOLIDAY_HOURS_PER_DAY") == 7.5
    assert reloaded.get_setting("DEFAULT_HOLIDAY_REGION") == "CA"
    assert reloaded.get_setting("PAY_PERIOD_RULES")["mon_weekly"]["start_weekday"] == "MONDAY"
    assert reloaded.get_setting("TEMPLATE_LAYOUTS") == DEFAULT_SETTINGS["TEMPLATE_LAYOUTS"]
    assert reloaded.get_setting("MAX_RETRIES") == 3


@pytest.mark.parametrize("updates", [
    {"HOLIDAY_HOURS_PER_DAY": -1},
    {"HOLIDAY_HOURS_PER_DAY": "eight"},
    {"MAX_RETRIES": 2.5},
    {"HOLIDAY_SKIP_WORKED_DAYS": "yes"},
    {"NAGER_API_BASE_URL": "http://date.nager.at"},
    {"NOT_A_SETTING": 1},
    {"ACTIVE_TEMPLATE_LAYOUT": "missing_layout"},
    {"DEFAULT_PAY_PERIOD_RULE": "monthly"},
    {"PERIOD_LABEL_FORMAT": "Period"},
    {"TEMPLATE_LAYOUTS": {"global_totals": {"mode": "diagonal"}}},
    {"PAY_PERIOD_RULES": {"sun_sat_biweekly": {"start_weekday": "SUNDAY", "weeks": 2,
                                               "epoch_anchor": "2024-12-16", "numbering": "odd"}}},
])
def test_invalid_updates_are_rejected(manager: SettingsManager, settings_file: Path, updates: dict):
    before = settings_file.read_text(encoding="utf-8")
    assert not manager.update_settings(updates)
    assert manager.last_errors
    assert settings_file.read_text(encoding="utf-8") == before


def test_reset_to_defaults(manager: SettingsManager, settings_file: Path):
    assert manager.update_settings({"MAX_RETRIES": 9, "OUTPUT_FILENAME_PREFIX": "tc_"})
    assert manager.reset_to_defaults()
    assert SettingsManager(settings_file).export_settings() == DEFAULT_SETTINGS


def test_missing_file_falls_back_to_defaults(tmp_path: Path):
    manager = SettingsManager(tmp_path / "absent.py")
    assert manager.export_settings() == {}
    assert manager.get_all_settings()["holidays"]["HOLIDAY_JOB_CODE"] == "Stat"
    assert not manager.update_settings({"MAX_RETRIES": 1})
