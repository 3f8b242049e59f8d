import json
import sys
from dataclasses import replace

import pytest

import cycle_sim
from cycle_sim_report_csv import OUTPUT_FILES
from cycle_sim_types import ResourceCapacities


def test_runs_a_scenario_object(baseline):
    out = cycle_sim.run_simulation(baseline, artifacts='kpi_only')
    assert out['success'] is True
    assert out['kpis']['rounds_completed_total'] == 2
    assert out['kpis']['blasts_total'] == 2
    assert out['result'].intervals == ()


def test_runs_a_raw_payload():
    out = cycle_sim.run_simulation({"simDays": 2, "numHeadings": 1}, artifacts='kpi_only')
    assert out['success'] is True
    assert out['kpis']['sim_days'] == 2


def test_invalid_scenario_reports_failure():
    out = cycle_sim.run_simulation({"tickMin": 7}, artifacts='kpi_only')
    assert out['success'] is False
    assert 'tick_minutes' in out['error']
    assert out['kpis'] == {}


def test_adapter_conflict_reports_failure():
    out = cycle_sim.run_simulation({"simDays": 2, "days": 3}, artifacts='kpi_only')
    assert out['success'] is False
    assert 'sim_days' in out['error']


def test_deadlock_reports_failure(baseline):
    sc = replace(baseline, resources=ResourceCapacities(drill_rigs=1, loaders=0, charge_crews=1, support_crews=1))
    out = cycle_sim.run_simulation(sc, artifacts='kpi_only')
    assert out['success'] is False
    assert 'deadlock' in out['error']


def test_full_run_writes_reports(baseline, tmp_path):
    out = cycle_sim.run_simulation(baseline, settings_override={'out_dir': tmp_path})
    assert out['success'] is True
    assert len(out['result'].intervals) > 0
    for name in OUTPUT_FILES.values():
        assert (tmp_path / name).exists()


def test_horizon_from_environment(baseline, monkeypatch):
    monkeypatch.setenv('SIM_HORIZON_DAYS', '2')
    out = cycle_sim.run_simulation(baseline, artifacts='kpi_only')
    assert out['kpis']['sim_days'] == 2
    assert out['kpis']['sim_minutes'] == 2880


def test_main_exits_on_failure(tmp_path, monkeypatch):
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps({"numHeadings": 0}))
    monkeypatch.setattr(sys, 'argv', ['cycle_sim', str(path)])
    monkeypatch.setenv('SIM_KPI_ONLY', 'true')
    with pytest.raises(SystemExit) as exc_info:
        cycle_sim.main()
    assert exc_info.value.code == 1
