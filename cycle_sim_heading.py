# cycle_sim_heading.py
from __future__ import annotations
from typing import Callable, Dict, Optional
import simpy

from cycle_sim_blast import BlastPolicyGate
from cycle_sim_calendar import ShiftCalendar
from cycle_sim_resources import ResourcePool
from cycle_sim_types import HeadingState, ResourceKind, Scenario, Stage, WORK_STAGES


def tick_round_up(minutes: float, tick: int) -> int:
    """Round a duration up to a whole number of ticks."""
    if minutes <= 0:
        return 0
    return int(-(-minutes // tick) * tick)


def stage_minutes_for(scenario: Scenario) -> Dict[Stage, int]:
    """Tick-quantised durations of every timed stage."""
    tick = scenario.tick_minutes
    d = scenario.durations
    return {
        Stage.DRILL: tick_round_up(d.drill, tick),
        Stage.CHARGE: tick_round_up(d.charge, tick),
        Stage.MUCK: tick_round_up(d.muck, tick),
        Stage.SUPPORT: tick_round_up(d.support, tick),
        Stage.REENTRY: tick_round_up(scenario.reentry_minutes, tick),
    }


def resource_for_stage(stage: Stage, jumbo_bolting: bool = False) -> Optional[ResourceKind]:
    if stage is Stage.DRILL:
        return ResourceKind.DRILL_RIG
    if stage is Stage.CHARGE:
        return ResourceKind.CHARGE_CREW
    if stage is Stage.MUCK:
        return ResourceKind.LOADER
    if stage is Stage.SUPPORT:
        return ResourceKind.DRILL_RIG if jumbo_bolting else ResourceKind.SUPPORT_CREW
    return None


def new_heading(index: int, minutes: Dict[Stage, int]) -> HeadingState:
    return HeadingState(
        index=index,
        heading_id=f"H{index + 1}",
        stage=Stage.DRILL,
        remaining_min=minutes[Stage.DRILL],
    )


def complete_round(heading: HeadingState, metres_per_round: float) -> None:
    heading.rounds_completed += 1
    heading.metres_advanced = heading.rounds_completed * metres_per_round


def advance_stage(heading: HeadingState, minutes: Dict[Stage, int], metres_per_round: float) -> None:
    """Move a heading past the stage it just finished."""
    stage = heading.stage
    if stage is Stage.DRILL:
        heading.stage, heading.remaining_min = Stage.CHARGE, minutes[Stage.CHARGE]
    elif stage is Stage.CHARGE:
        heading.stage, heading.remaining_min = Stage.BLAST_READY, 0
    elif stage in (Stage.REENTRY, Stage.WAITING_FOR_BLAST):
        heading.stage, heading.remaining_min = Stage.MUCK, minutes[Stage.MUCK]
    elif stage is Stage.MUCK and minutes[Stage.SUPPORT] > 0:
        heading.stage, heading.remaining_min = Stage.SUPPORT, minutes[Stage.SUPPORT]
    elif stage in (Stage.MUCK, Stage.SUPPORT):
        complete_round(heading, metres_per_round)
        heading.stage, heading.remaining_min = Stage.DRILL, minutes[Stage.DRILL]
    else:
        raise ValueError(f"{heading.heading_id}: no transition out of {stage.value}")


def run_work_stage(env: simpy.Environment, heading: HeadingState, pool: ResourcePool,
                   calendar: ShiftCalendar, horizon: float, jumbo_bolting: bool,
                   log_func: Callable):
    """
    Generator: run the heading's current work stage to completion.

    Returns False when the stage cannot finish inside the horizon, in which
    case it is not started at all and the heading stops.
    """
    stage = heading.stage
    duration = heading.remaining_min
    kind = resource_for_stage(stage, jumbo_bolting)

    while True:
        start = calendar.fit_stage_into_shift(env.now, duration)
        if start + duration > horizon:
            log_func(heading, Stage.IDLE)
            return False
        if start > env.now:
            log_func(heading, Stage.IDLE)
            yield env.timeout(start - env.now)

        alloc = yield from pool.acquire(
            kind, heading.index,
            on_wait=lambda k: log_func(heading, Stage.WAITING_FOR_RESOURCE, waiting_kind=k),
        )
        if calendar.fit_stage_into_shift(env.now, duration) == env.now and env.now + duration <= horizon:
            break
        # Granted too late to fit this shift; give the unit back and re-plan.
        pool.release(alloc)

    log_func(heading, stage, alloc=alloc)
    yield env.timeout(duration)
    pool.release(alloc, busy_minutes=duration)
    heading.busy_min += duration
    heading.remaining_min = 0
    return True


def heading_cycle(env: simpy.Environment, heading: HeadingState, scenario: Scenario,
                  minutes: Dict[Stage, int], pool: ResourcePool, calendar: ShiftCalendar,
                  gate: BlastPolicyGate, horizon: float, log_func: Callable):
    """simpy process driving one heading through DRILL -> ... -> DRILL until the horizon."""
    while True:
        stage = heading.stage
        if stage in WORK_STAGES:
            finished = yield from run_work_stage(
                env, heading, pool, calendar, horizon, scenario.jumbo_bolting, log_func
            )
            if not finished:
                return
        elif stage is Stage.BLAST_READY:
            log_func(heading, Stage.BLAST_READY)
            after, lockout = yield from gate.fire(heading)
            heading.stage, heading.remaining_min = after, lockout
            continue
        else:
            log_func(heading, stage)
            if heading.remaining_min > 0:
                yield env.timeout(heading.remaining_min)
            heading.remaining_min = 0
        advance_stage(heading, minutes, scenario.metres_per_round)
