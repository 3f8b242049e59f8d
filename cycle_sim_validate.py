# cycle_sim_validate.py
from __future__ import annotations
from collections import defaultdict
from numbers import Integral, Real
from typing import Dict, List, Optional, Tuple
import math

from cycle_sim_calendar import DAY_MINUTES, ShiftCalendar
from cycle_sim_errors import ScenarioValidationError, SimulationDeadlockError, SimulationError
from cycle_sim_types import (BlastPolicy, KpiRecord, ResourceCapacities, RunOptions, Scenario,
                             SimulationResult, Stage, WORK_STAGES)


def _is_number(v) -> bool:
    return isinstance(v, Real) and not isinstance(v, bool) and math.isfinite(v)


def _is_whole(v) -> bool:
    if isinstance(v, bool):
        return False
    if isinstance(v, Integral):
        return True
    return _is_number(v) and float(v).is_integer()


def _check_capacities(caps: ResourceCapacities, prefix: str, issues: List[Tuple[str, str]]):
    for name in ("drill_rigs", "loaders", "charge_crews", "support_crews"):
        v = getattr(caps, name)
        if not _is_whole(v) or v < 0:
            issues.append((f"{prefix}.{name}", f"must be a whole number >= 0 (got {v!r})"))


def collect_issues(s: Scenario, options: Optional[RunOptions] = None) -> List[Tuple[str, str]]:
    """Every structural problem with a scenario and its run options, in field order."""
    issues: List[Tuple[str, str]] = []

    if not _is_number(s.sim_days) or s.sim_days <= 0:
        issues.append(("sim_days", f"must be > 0 (got {s.sim_days!r})"))
    elif s.sim_minutes < 1:
        issues.append(("sim_days", "horizon is shorter than one minute"))

    tick_ok = _is_whole(s.tick_minutes) and s.tick_minutes > 0
    if not tick_ok:
        issues.append(("tick_minutes", f"must be a whole number > 0 (got {s.tick_minutes!r})"))
    elif DAY_MINUTES % s.tick_minutes != 0:
        issues.append(("tick_minutes", f"must divide the {DAY_MINUTES}-minute day (got {s.tick_minutes})"))

    if not _is_whole(s.headings) or s.headings <= 0:
        issues.append(("headings", f"must be a whole number > 0 (got {s.headings!r})"))
    if not _is_number(s.metres_per_round) or s.metres_per_round <= 0:
        issues.append(("metres_per_round", f"must be > 0 (got {s.metres_per_round!r})"))

    sh = s.shift
    workable_ok = _is_whole(sh.workable_minutes) and sh.workable_minutes > 0
    scheduled_ok = _is_whole(sh.scheduled_minutes) and sh.scheduled_minutes > 0
    if not workable_ok:
        issues.append(("shift.workable_minutes", f"must be a whole number > 0 (got {sh.workable_minutes!r})"))
    if not scheduled_ok:
        issues.append(("shift.scheduled_minutes", f"must be a whole number > 0 (got {sh.scheduled_minutes!r})"))
    if workable_ok and scheduled_ok:
        if sh.workable_minutes > sh.scheduled_minutes:
            issues.append(("shift.workable_minutes",
                           f"cannot exceed scheduled shift length ({sh.workable_minutes} > {sh.scheduled_minutes})"))
        if tick_ok:
            for name in ("workable_minutes", "scheduled_minutes"):
                if getattr(sh, name) % s.tick_minutes != 0:
                    issues.append((f"shift.{name}", f"must be a multiple of tick_minutes ({s.tick_minutes})"))
        if sh.shifts_per_day is not None and (not _is_whole(sh.shifts_per_day) or sh.shifts_per_day < 1):
            issues.append(("shift.shifts_per_day", f"must be a whole number >= 1 (got {sh.shifts_per_day!r})"))
        elif sh.per_day() < 1:
            issues.append(("shift.scheduled_minutes", f"must fit at least once into a {DAY_MINUTES}-minute day"))
        elif sh.per_day() * sh.scheduled_minutes > DAY_MINUTES:
            issues.append(("shift.shifts_per_day",
                           f"{sh.per_day()} shifts of {sh.scheduled_minutes} min exceed one day"))
    if not isinstance(sh.blast_policy, BlastPolicy):
        issues.append(("shift.blast_policy", f"must be one of {[p.value for p in BlastPolicy]} (got {sh.blast_policy!r})"))

    d = s.durations
    for stage in WORK_STAGES:
        name = stage.value.lower()
        v = d.for_stage(stage)
        required = stage is not Stage.SUPPORT
        if not _is_whole(v) or v < 0 or (required and v == 0):
            bound = "> 0" if required else ">= 0"
            issues.append((f"durations.{name}", f"must be a whole number of minutes {bound} (got {v!r})"))
        elif workable_ok and v > sh.workable_minutes:
            issues.append((f"durations.{name}",
                           f"{v} min cannot fit inside a {sh.workable_minutes}-minute workable shift"))

    if not _is_whole(s.reentry_minutes) or s.reentry_minutes < 0:
        issues.append(("reentry_minutes", f"must be a whole number >= 0 (got {s.reentry_minutes!r})"))
    if s.resources is not None:
        _check_capacities(s.resources, "resources", issues)

    if options is not None:
        if options.horizon_days is not None and (not _is_number(options.horizon_days) or options.horizon_days <= 0):
            issues.append(("options.horizon_days", f"must be > 0 (got {options.horizon_days!r})"))
        if options.resources is not None:
            _check_capacities(options.resources, "options.resources", issues)
    return issues


def validate_scenario(s: Scenario, options: Optional[RunOptions] = None) -> None:
    issues = collect_issues(s, options)
    if issues:
        raise ScenarioValidationError(issues)


def assert_simulation_progress(kpis: KpiRecord, s: Scenario) -> None:
    if s.sim_days >= 1 and kpis.rounds_completed_total == 0:
        raise SimulationDeadlockError(
            f"Simulation produced zero completed rounds over {s.sim_days} days (deadlock). "
            "Check for a resource with zero capacity or a shift/blast setup that blocks the cycle.",
            kpis=kpis,
        )


def check_timeline(result: SimulationResult, s: Scenario) -> None:
    """
    Post-run invariants over a recorded timeline: per-heading contiguity over
    [0, horizon), resource exclusivity per kind and per unit, and shift fit of
    every work interval. Raises SimulationError on the first violation.
    """
    horizon = result.sim_minutes
    by_heading: Dict[str, list] = defaultdict(list)
    for iv in result.intervals:
        by_heading[iv.heading_id].append(iv)

    expected = [f"H{i + 1}" for i in range(s.headings)]
    missing = [h for h in expected if h not in by_heading]
    if missing:
        raise SimulationError(f"no timeline recorded for {', '.join(missing)}")

    calendar = ShiftCalendar.from_shift(s.shift)
    for hid, ivs in by_heading.items():
        ivs = sorted(ivs, key=lambda iv: iv.start_min)
        cursor = 0
        for iv in ivs:
            if iv.start_min != cursor:
                raise SimulationError(f"{hid}: gap or overlap at {cursor} (next interval starts {iv.start_min})")
            if iv.end_min <= iv.start_min:
                raise SimulationError(f"{hid}: empty interval {iv.stage.value} at {iv.start_min}")
            if iv.stage in WORK_STAGES:
                if calendar.fit_stage_into_shift(iv.start_min, iv.duration_min) != iv.start_min:
                    raise SimulationError(f"{hid}: {iv.stage.value} [{iv.start_min}, {iv.end_min}) crosses a shift boundary")
            cursor = iv.end_min
        if cursor != horizon:
            raise SimulationError(f"{hid}: timeline ends at {cursor}, horizon is {horizon}")

    capacities = s.capacities()
    events: Dict[object, list] = defaultdict(list)
    unit_events: Dict[str, list] = defaultdict(list)
    for iv in result.intervals:
        if iv.resource_kind is None:
            continue
        events[iv.resource_kind].append((iv.start_min, 1))
        events[iv.resource_kind].append((iv.end_min, -1))
        unit_events[iv.resource_unit].append((iv.start_min, 1))
        unit_events[iv.resource_unit].append((iv.end_min, -1))

    for kind, evs in events.items():
        level = 0
        for t, delta in sorted(evs, key=lambda e: (e[0], e[1])):
            level += delta
            if level > capacities.get(kind):
                raise SimulationError(f"{kind.value}: {level} units in use at {t}, capacity {capacities.get(kind)}")
    for unit, evs in unit_events.items():
        level = 0
        for t, delta in sorted(evs, key=lambda e: (e[0], e[1])):
            level += delta
            if level > 1:
                raise SimulationError(f"{unit}: held by two headings at {t}")
