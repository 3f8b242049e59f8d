# cycle_sim_blast.py
from __future__ import annotations
from typing import Tuple
import simpy

from cycle_sim_calendar import ShiftCalendar
from cycle_sim_resources import ResourcePool
from cycle_sim_types import BlastPolicy, HeadingState, ResourceKind, Stage


class BlastPolicyGate:
    """
    Decides when a BLAST_READY heading fires and what lockout follows.

    IMMEDIATE: fire as soon as a charge/blast crew is free (held for an
    instant), then a fixed REENTRY delay.
    END_OF_SHIFT: hold until the shift-change window opens, fire, then
    WAITING_FOR_BLAST until the next shift starts. Re-entry is absorbed by
    the shift-change window; no extra constant is added.
    """

    def __init__(self, env: simpy.Environment, policy: BlastPolicy, calendar: ShiftCalendar,
                 pool: ResourcePool, reentry_minutes: int):
        self.env = env
        self.policy = policy
        self.calendar = calendar
        self.pool = pool
        self.reentry_minutes = reentry_minutes
        self.blasts_fired = 0

    def end_of_shift_window(self, t: float) -> Tuple[float, float]:
        """(fire time, resume time) for a heading that becomes blast-ready at t."""
        cal = self.calendar
        if not cal.is_working_time(t):
            return t, cal.next_shift_boundary(t)
        if cal.is_workable_time(t):
            return cal.work_end_time(t), cal.shift_end_time(t)
        return t, cal.shift_end_time(t)

    def fire(self, heading: HeadingState):
        """Generator: hold the heading until it fires; returns (next stage, lockout minutes)."""
        if self.policy is BlastPolicy.IMMEDIATE:
            alloc = yield from self.pool.acquire(ResourceKind.CHARGE_CREW, heading.index)
            self.pool.release(alloc)
            self.blasts_fired += 1
            return Stage.REENTRY, self.reentry_minutes

        fire_at, resume_at = self.end_of_shift_window(self.env.now)
        if fire_at > self.env.now:
            yield self.env.timeout(fire_at - self.env.now)
        self.blasts_fired += 1
        return Stage.WAITING_FOR_BLAST, max(0, resume_at - fire_at)
