from dataclasses import replace

import pytest

from cycle_sim_config import default_scenario
from cycle_sim_core import simulate, simulate_detailed
from cycle_sim_errors import ScenarioValidationError, SimulationDeadlockError
from cycle_sim_types import (BlastPolicy, KpiRecord, ResourceCapacities, ResourceKind, RunOptions,
                             ShiftConfig, Stage, StageDurations)
from cycle_sim_validate import check_timeline

from tests.conftest import make_scenario

TIMELINE = RunOptions(record_timeline=True)


def _spans(result, heading_id="H1"):
    return [(iv.stage, iv.start_min, iv.end_min) for iv in result.intervals_for(heading_id)]


def test_immediate_policy_baseline(baseline):
    result = simulate_detailed(baseline, TIMELINE)

    assert result.kpis.rounds_completed_total == 2
    assert result.kpis.metres_advanced_total == 6
    assert _spans(result) == [
        (Stage.DRILL, 0, 180),
        (Stage.CHARGE, 180, 240),
        (Stage.REENTRY, 240, 270),
        (Stage.IDLE, 270, 480),
        (Stage.MUCK, 480, 720),
        (Stage.DRILL, 720, 900),
        (Stage.CHARGE, 900, 960),
        (Stage.REENTRY, 960, 990),
        (Stage.MUCK, 990, 1230),
        (Stage.DRILL, 1230, 1410),
        (Stage.IDLE, 1410, 1440),
    ]
    check_timeline(result, baseline)


def test_end_of_shift_policy_baseline(baseline_end_of_shift):
    result = simulate_detailed(baseline_end_of_shift, TIMELINE)

    assert result.kpis.rounds_completed_total == 1
    assert result.kpis.metres_advanced_total == 3
    assert _spans(result) == [
        (Stage.DRILL, 0, 180),
        (Stage.CHARGE, 180, 240),
        (Stage.BLAST_READY, 240, 480),
        (Stage.MUCK, 480, 720),
        (Stage.DRILL, 720, 900),
        (Stage.CHARGE, 900, 960),
        (Stage.BLAST_READY, 960, 1440),
    ]
    check_timeline(result, baseline_end_of_shift)


def test_end_of_shift_blasting_completes_fewer_rounds(baseline, baseline_end_of_shift):
    immediate = simulate(baseline)
    deferred = simulate(baseline_end_of_shift)
    assert deferred.rounds_completed_total < immediate.rounds_completed_total


def test_change_window_absorbs_reentry():
    sc = make_scenario(
        BlastPolicy.END_OF_SHIFT,
        shift=ShiftConfig(workable_minutes=420, scheduled_minutes=480, blast_policy=BlastPolicy.END_OF_SHIFT),
    )
    result = simulate_detailed(sc, TIMELINE)
    spans = _spans(result)
    assert spans[2] == (Stage.BLAST_READY, 240, 420)
    assert spans[3] == (Stage.WAITING_FOR_BLAST, 420, 480)
    assert spans[4] == (Stage.MUCK, 480, 720)
    check_timeline(result, sc)


def test_shared_drill_rig_makes_second_heading_wait():
    sc = make_scenario(headings=2, resources=ResourceCapacities(drill_rigs=1, loaders=2, charge_crews=1, support_crews=2))
    result = simulate_detailed(sc, TIMELINE)

    first, second = result.intervals_for("H2")[:2]
    assert (first.stage, first.start_min, first.end_min) == (Stage.WAITING_FOR_RESOURCE, 0, 180)
    assert first.waiting_resource_kind is ResourceKind.DRILL_RIG
    assert (second.stage, second.start_min, second.end_min) == (Stage.DRILL, 180, 360)
    assert second.resource_unit == "DRILL_RIG-1"
    check_timeline(result, sc)


@pytest.mark.parametrize("overrides", [
    dict(),
    dict(headings=3, resources=ResourceCapacities(drill_rigs=1, loaders=1, charge_crews=1, support_crews=1)),
    dict(durations=StageDurations(drill=150, charge=45, muck=200, support=90), jumbo_bolting=True, headings=3,
         resources=ResourceCapacities(drill_rigs=2, loaders=1, charge_crews=1, support_crews=0)),
    dict(shift=ShiftConfig(workable_minutes=540, scheduled_minutes=600, blast_policy=BlastPolicy.END_OF_SHIFT)),
])
def test_timeline_invariants_hold(overrides):
    sc = replace(default_scenario(), sim_days=5, **overrides)
    result = simulate_detailed(sc, TIMELINE)
    check_timeline(result, sc)
    assert result.kpis.rounds_completed_total > 0


def test_runs_are_deterministic():
    sc = replace(default_scenario(), sim_days=4, headings=4,
                 resources=ResourceCapacities(drill_rigs=2, loaders=1, charge_crews=1, support_crews=4))
    first = simulate_detailed(sc, TIMELINE)
    second = simulate_detailed(sc, TIMELINE)
    assert first.intervals == second.intervals
    assert first.kpis == second.kpis


def test_kpi_identities():
    sc = replace(default_scenario(), sim_days=7, headings=3)
    kpis = simulate(sc)

    assert isinstance(kpis, KpiRecord)
    assert kpis.metres_advanced_total == pytest.approx(kpis.rounds_completed_total * sc.metres_per_round)
    assert kpis.rounds_per_day_total == pytest.approx(kpis.rounds_completed_total / 7)
    assert kpis.metres_per_day_total == pytest.approx(kpis.metres_advanced_total / 7)
    assert kpis.rounds_completed_per_heading == pytest.approx(kpis.rounds_completed_total / 3)
    assert sum(kpis.rounds_by_heading) == kpis.rounds_completed_total
    assert 0.0 <= kpis.heading_utilization <= 1.0
    assert all(0.0 <= u <= 1.0 for u in kpis.resource_utilization.values())
    # Every heading is in exactly one stage at every minute of the horizon.
    assert sum(kpis.stage_minutes.values()) == 3 * kpis.sim_minutes


def test_baseline_utilization(baseline):
    kpis = simulate(baseline)
    assert kpis.busy_minutes_by_heading == (1140,)
    assert kpis.heading_utilization == pytest.approx(1140 / 1440)
    assert kpis.resource_utilization["drill_rig"] == pytest.approx(540 / 1440)
    assert kpis.resource_utilization["loader"] == pytest.approx(480 / 1440)


def test_horizon_override(baseline):
    kpis = simulate(baseline, RunOptions(horizon_days=2))
    assert kpis.sim_days == 2
    assert kpis.sim_minutes == 2880
    assert kpis.rounds_completed_total > 2


def test_capacity_override_applies(baseline):
    sc = replace(baseline, headings=2)
    options = RunOptions(resources=ResourceCapacities(drill_rigs=1, loaders=1, charge_crews=1, support_crews=1),
                         record_timeline=True)
    result = simulate_detailed(sc, options)
    assert any(iv.stage is Stage.WAITING_FOR_RESOURCE for iv in result.intervals_for("H2"))


def test_zero_loaders_is_a_deadlock(baseline):
    sc = replace(baseline, resources=ResourceCapacities(drill_rigs=1, loaders=0, charge_crews=1, support_crews=1))
    with pytest.raises(SimulationDeadlockError) as exc_info:
        simulate(sc)
    kpis = exc_info.value.kpis
    assert kpis.rounds_completed_total == 0
    assert kpis.stage_minutes["WAITING_FOR_RESOURCE"] > 0


def test_short_horizon_without_rounds_is_not_a_deadlock(baseline):
    kpis = simulate(baseline, RunOptions(horizon_days=0.25))
    assert kpis.rounds_completed_total == 0


def test_invalid_scenario_rejected_before_run(baseline):
    with pytest.raises(ScenarioValidationError):
        simulate(replace(baseline, headings=0))


def test_same_minute_loader_tie_goes_to_first_heading():
    # Both headings reach MUCK at 480; H2 gets there from an earlier timer and resumes first.
    sc = make_scenario(
        headings=2,
        durations=StageDurations(drill=60, charge=30, muck=240),
        resources=ResourceCapacities(drill_rigs=1, loaders=1, charge_crews=1, support_crews=2),
    )
    result = simulate_detailed(sc, TIMELINE)

    assert (Stage.MUCK, 480, 720) in _spans(result, "H1")
    h2 = _spans(result, "H2")
    assert (Stage.IDLE, 360, 480) in h2
    assert (Stage.WAITING_FOR_RESOURCE, 480, 720) in h2
    assert (Stage.MUCK, 720, 960) in h2
    check_timeline(result, sc)


def test_blasts_are_counted(baseline, baseline_end_of_shift):
    assert simulate(baseline).blasts_total == 2
    kpis = simulate(baseline_end_of_shift)
    assert kpis.blasts_total >= kpis.rounds_completed_total
