# cycle_sim_core.py
from __future__ import annotations
from dataclasses import replace
from typing import Dict, List, Optional, Tuple
import math
import os
import simpy

from cycle_sim_blast import BlastPolicyGate
from cycle_sim_calendar import DAY_MINUTES, ShiftCalendar
from cycle_sim_heading import heading_cycle, new_heading, stage_minutes_for
from cycle_sim_kpi import compute_kpis
from cycle_sim_resources import Allocation, ResourcePool
from cycle_sim_types import (HeadingState, KpiRecord, ResourceKind, RunOptions, Scenario,
                             SimulationResult, Stage, StageRun)
from cycle_sim_validate import assert_simulation_progress, validate_scenario

# Check if quiet mode is enabled (for batch runs and tests)
QUIET_MODE = os.environ.get('SIM_QUIET_MODE', 'false').lower() == 'true'


def _log_progress(msg):
    """Print progress message only if not in quiet mode."""
    if not QUIET_MODE:
        print(msg, flush=True)


def apply_run_options(scenario: Scenario, options: Optional[RunOptions]) -> Scenario:
    """Fold run-option overrides (horizon, capacities) into the scenario."""
    if options is None:
        return scenario
    if options.horizon_days is not None:
        scenario = replace(scenario, sim_days=options.horizon_days)
    if options.resources is not None:
        scenario = replace(scenario, resources=options.resources)
    return scenario


class CycleSimulation:
    def __init__(self, scenario: Scenario, record_timeline: bool = False, settings: Optional[dict] = None):
        self.scenario = scenario
        self.settings = settings or {}
        self.record_timeline = record_timeline
        self.env = simpy.Environment()
        self.sim_minutes = scenario.sim_minutes

        self.minutes = stage_minutes_for(scenario)
        self.calendar = ShiftCalendar.from_shift(scenario.shift)
        self.pool = ResourcePool(self.env, scenario.capacities())
        self.gate = BlastPolicyGate(
            self.env, scenario.shift.blast_policy, self.calendar, self.pool,
            reentry_minutes=self.minutes[Stage.REENTRY],
        )
        self.headings: List[HeadingState] = [new_heading(i, self.minutes) for i in range(scenario.headings)]

        self.timeline: List[StageRun] = []
        self.stage_minutes: Dict[Stage, int] = {stage: 0 for stage in Stage}
        # heading index -> (stage, start, resource kind, unit name, waiting kind)
        self._open: Dict[int, Tuple] = {}

    def log_stage(self, heading: HeadingState, stage: Stage,
                  alloc: Optional[Allocation] = None, waiting_kind: Optional[ResourceKind] = None):
        """Close the heading's open interval (if the stage changed) and open a new one at now."""
        now = self.env.now
        kind = alloc.kind if alloc is not None else None
        unit = alloc.unit_name if alloc is not None else None
        key = (stage, kind, unit, waiting_kind)
        current = self._open.get(heading.index)
        if current is not None:
            if (current[0], current[2], current[3], current[4]) == key:
                return
            self._close(heading, current, now)
        self._open[heading.index] = (stage, now, kind, unit, waiting_kind)

    def _close(self, heading: HeadingState, current: Tuple, end: float):
        stage, start, kind, unit, waiting_kind = current
        end = min(end, self.sim_minutes)
        if end <= start:
            return
        self.stage_minutes[stage] += end - start
        if self.record_timeline:
            self.timeline.append(StageRun(
                heading_id=heading.heading_id,
                stage=stage,
                start_min=start,
                end_min=end,
                resource_kind=kind,
                resource_unit=unit,
                waiting_resource_kind=waiting_kind,
            ))

    def _close_all(self):
        for h in self.headings:
            current = self._open.pop(h.index, None)
            if current is not None:
                self._close(h, current, self.sim_minutes)

    def run(self) -> SimulationResult:
        sc = self.scenario
        _log_progress(f"\nModel Summary: {sc.name}")
        _log_progress(f"  Headings:   {sc.headings}")
        _log_progress(f"  Horizon:    {sc.sim_days} days ({self.sim_minutes} min, tick {sc.tick_minutes} min)")
        _log_progress(f"  Shifts:     {self.calendar.shifts_per_day}/day x {sc.shift.scheduled_minutes} min "
                      f"({sc.shift.workable_minutes} workable), blasting {sc.shift.blast_policy.value}")
        caps = ", ".join(f"{k.value}={n}" for k, n in self.pool.capacity.items())
        _log_progress(f"  Resources:  {caps}")

        for h in self.headings:
            self.env.process(heading_cycle(
                self.env, h, sc, self.minutes, self.pool, self.calendar, self.gate,
                self.sim_minutes, self.log_stage,
            ))

        horizon_days = max(1, math.ceil(self.sim_minutes / DAY_MINUTES))
        step_pct = max(1, min(int(self.settings.get("progress_step_pct", 10) or 10), 50))
        checkpoints = []
        for p in range(step_pct, 100, step_pct):
            d = int(round(horizon_days * (p / 100.0)))
            if not checkpoints or d > checkpoints[-1][1]:
                checkpoints.append((p, d))
        cp_idx = 0

        for day in range(1, horizon_days + 1):
            self.env.run(until=min(day * DAY_MINUTES, self.sim_minutes))
            while cp_idx < len(checkpoints) and day >= checkpoints[cp_idx][1]:
                pct = checkpoints[cp_idx][0]
                rounds = sum(h.rounds_completed for h in self.headings)
                _log_progress(f"Progress: {pct}% ({day}/{horizon_days} days, {rounds} rounds)")
                cp_idx += 1

        # Events due exactly at the horizon (stages ending on it) still count.
        while self.env.peek() <= self.sim_minutes:
            self.env.step()
        self._close_all()

        kpis = compute_kpis(self.headings, sc, self.sim_minutes, self.pool, self.stage_minutes,
                            blasts=self.gate.blasts_fired)
        _log_progress(f"Progress: 100% ({horizon_days}/{horizon_days} days)")
        _log_progress("\n=== Simulation Complete ===")
        _log_progress(f"  Blasts fired: {self.gate.blasts_fired}")
        for h in self.headings:
            _log_progress(f"  {h.heading_id}: {h.rounds_completed} rounds, {h.metres_advanced:.1f} m")

        order = {h.heading_id: h.index for h in self.headings}
        intervals = tuple(sorted(self.timeline, key=lambda iv: (order[iv.heading_id], iv.start_min)))
        return SimulationResult(kpis=kpis, sim_minutes=self.sim_minutes, intervals=intervals)


def simulate_detailed(scenario: Scenario, options: Optional[RunOptions] = None,
                      settings: Optional[dict] = None) -> SimulationResult:
    """Validate, run and check one scenario. Raises ScenarioValidationError or SimulationDeadlockError."""
    options = options or RunOptions()
    validate_scenario(scenario, options)
    effective = apply_run_options(scenario, options)
    sim = CycleSimulation(effective, record_timeline=options.record_timeline, settings=settings)
    result = sim.run()
    assert_simulation_progress(result.kpis, effective)
    return result


def simulate(scenario: Scenario, options: Optional[RunOptions] = None) -> KpiRecord:
    options = options or RunOptions()
    return simulate_detailed(scenario, replace(options, record_timeline=False)).kpis
