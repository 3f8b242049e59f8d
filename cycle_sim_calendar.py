# cycle_sim_calendar.py
"""
Shift calendar arithmetic.

Shifts start at the day boundary and run back to back. Each shift has a
scheduled length; the first ``workable_minutes`` of it are available for work
and the rest is the shift-change window. Whatever is left of the day after the
last shift is off-shift. All functions here are pure.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List

from cycle_sim_types import ShiftConfig

DAY_MINUTES = 1440


@dataclass(frozen=True)
class ShiftCalendar:
    scheduled_minutes: int
    workable_minutes: int
    shifts_per_day: int

    @classmethod
    def from_shift(cls, shift: ShiftConfig) -> "ShiftCalendar":
        return cls(
            scheduled_minutes=shift.scheduled_minutes,
            workable_minutes=shift.workable_minutes,
            shifts_per_day=shift.per_day(),
        )

    @property
    def scheduled_per_day(self) -> int:
        return self.shifts_per_day * self.scheduled_minutes

    def day_index(self, t: float) -> int:
        return int(t // DAY_MINUTES)

    def within_day(self, t: float) -> float:
        return t - self.day_index(t) * DAY_MINUTES

    def is_working_time(self, t: float) -> bool:
        """True inside a scheduled shift (shift-change window included)."""
        return self.within_day(t) < self.scheduled_per_day

    def is_workable_time(self, t: float) -> bool:
        """True inside the workable part of a scheduled shift."""
        if not self.is_working_time(t):
            return False
        return (self.within_day(t) % self.scheduled_minutes) < self.workable_minutes

    def shift_start_time(self, t: float) -> float:
        """Start of the shift containing t, or of the next day's first shift when off-shift."""
        day_start = self.day_index(t) * DAY_MINUTES
        offset = t - day_start
        if offset >= self.scheduled_per_day:
            return day_start + DAY_MINUTES
        return day_start + (offset // self.scheduled_minutes) * self.scheduled_minutes

    def next_shift_boundary(self, t: float) -> float:
        """Smallest shift start >= t."""
        day_start = self.day_index(t) * DAY_MINUTES
        offset = t - day_start
        if offset >= self.scheduled_per_day:
            return day_start + DAY_MINUTES
        k = -(-offset // self.scheduled_minutes)   # ceil
        boundary = k * self.scheduled_minutes
        if boundary >= self.scheduled_per_day:
            return day_start + DAY_MINUTES
        return day_start + boundary

    def next_shift_start_after(self, t: float) -> float:
        """Smallest shift start strictly after t."""
        boundary = self.next_shift_boundary(t)
        if boundary > t:
            return boundary
        return self.next_shift_boundary(t + self.scheduled_minutes)

    def shift_end_time(self, t: float) -> float:
        return self.shift_start_time(t) + self.scheduled_minutes

    def work_end_time(self, t: float) -> float:
        """Start of the shift-change window of the shift containing t."""
        return self.shift_start_time(t) + self.workable_minutes

    def fit_stage_into_shift(self, t: float, duration: float) -> float:
        """
        Earliest start >= t at which [start, start + duration) lies inside the
        workable part of a single shift. Returns t itself when it already fits.
        Stages are never split across a shift boundary.
        """
        if self.is_workable_time(t) and t + duration <= self.work_end_time(t):
            return t
        # Durations longer than the workable window never fit; the validator
        # rejects them before a run starts.
        return self.next_shift_start_after(t)


def shift_markers(sim_minutes: float, shifts_per_day: int) -> List[float]:
    """Shift-boundary marker positions for timeline charts."""
    if shifts_per_day <= 0:
        return []
    step = DAY_MINUTES / shifts_per_day
    markers = []
    k = 0
    while k * step <= sim_minutes:
        m = k * step
        markers.append(int(m) if float(m).is_integer() else m)
        k += 1
    return markers
