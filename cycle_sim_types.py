# cycle_sim_types.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class BlastPolicy(str, Enum):
    IMMEDIATE = "immediate"
    END_OF_SHIFT = "end_of_shift"


class Stage(str, Enum):
    DRILL = "DRILL"
    CHARGE = "CHARGE"
    BLAST_READY = "BLAST_READY"
    REENTRY = "REENTRY"
    WAITING_FOR_BLAST = "WAITING_FOR_BLAST"
    MUCK = "MUCK"
    SUPPORT = "SUPPORT"
    # Reported only, never held as HeadingState.stage
    WAITING_FOR_RESOURCE = "WAITING_FOR_RESOURCE"
    IDLE = "IDLE"


class ResourceKind(str, Enum):
    DRILL_RIG = "drill_rig"
    LOADER = "loader"
    CHARGE_CREW = "charge_crew"
    SUPPORT_CREW = "support_crew"


WORK_STAGES = (Stage.DRILL, Stage.CHARGE, Stage.MUCK, Stage.SUPPORT)
GATE_STAGES = (Stage.BLAST_READY, Stage.REENTRY, Stage.WAITING_FOR_BLAST)


@dataclass(frozen=True)
class ShiftConfig:
    workable_minutes: int
    scheduled_minutes: int
    blast_policy: BlastPolicy = BlastPolicy.END_OF_SHIFT
    shifts_per_day: Optional[int] = None

    def per_day(self) -> int:
        if self.shifts_per_day is not None:
            return self.shifts_per_day
        return 1440 // self.scheduled_minutes if self.scheduled_minutes > 0 else 0

    @property
    def change_window_minutes(self) -> int:
        return self.scheduled_minutes - self.workable_minutes


@dataclass(frozen=True)
class StageDurations:
    drill: int
    charge: int
    muck: int
    support: int = 0

    def for_stage(self, stage: Stage) -> int:
        return {
            Stage.DRILL: self.drill,
            Stage.CHARGE: self.charge,
            Stage.MUCK: self.muck,
            Stage.SUPPORT: self.support,
        }[stage]


@dataclass(frozen=True)
class ResourceCapacities:
    drill_rigs: int
    loaders: int
    charge_crews: int
    support_crews: int

    @classmethod
    def defaults_for(cls, headings: int) -> "ResourceCapacities":
        return cls(drill_rigs=headings, loaders=headings, charge_crews=1, support_crews=headings)

    def get(self, kind: ResourceKind) -> int:
        return {
            ResourceKind.DRILL_RIG: self.drill_rigs,
            ResourceKind.LOADER: self.loaders,
            ResourceKind.CHARGE_CREW: self.charge_crews,
            ResourceKind.SUPPORT_CREW: self.support_crews,
        }[kind]


@dataclass(frozen=True)
class Scenario:
    sim_days: float
    tick_minutes: int
    headings: int
    metres_per_round: float
    shift: ShiftConfig
    durations: StageDurations
    resources: Optional[ResourceCapacities] = None
    jumbo_bolting: bool = False   # SUPPORT uses drill rigs instead of support crews
    reentry_minutes: int = 30
    name: str = "Scenario"

    @property
    def sim_minutes(self) -> int:
        return int(round(self.sim_days * 1440))

    def capacities(self) -> ResourceCapacities:
        return self.resources if self.resources is not None else ResourceCapacities.defaults_for(self.headings)


@dataclass(frozen=True)
class RunOptions:
    horizon_days: Optional[float] = None
    resources: Optional[ResourceCapacities] = None
    record_timeline: bool = False


@dataclass
class HeadingState:
    index: int
    heading_id: str
    stage: Stage
    remaining_min: int
    busy_min: int = 0
    rounds_completed: int = 0
    metres_advanced: float = 0.0


@dataclass(frozen=True)
class StageRun:
    heading_id: str
    stage: Stage
    start_min: int
    end_min: int
    resource_kind: Optional[ResourceKind] = None
    resource_unit: Optional[str] = None
    waiting_resource_kind: Optional[ResourceKind] = None

    @property
    def duration_min(self) -> int:
        return self.end_min - self.start_min


@dataclass(frozen=True)
class KpiRecord:
    sim_days: float
    sim_minutes: int

    rounds_completed_total: int
    rounds_completed_per_heading: float
    metres_advanced_total: float
    metres_advanced_per_heading: float

    rounds_per_day_total: float
    metres_per_day_total: float
    rounds_per_heading_per_day: float
    metres_per_heading_per_day: float

    heading_utilization: float
    blasts_total: int

    rounds_by_heading: Tuple[int, ...] = ()
    metres_by_heading: Tuple[float, ...] = ()
    busy_minutes_by_heading: Tuple[int, ...] = ()
    resource_utilization: Dict[str, float] = field(default_factory=dict)
    stage_minutes: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class SimulationResult:
    kpis: KpiRecord
    sim_minutes: int
    intervals: Tuple[StageRun, ...] = ()

    def intervals_for(self, heading_id: str) -> List[StageRun]:
        return [iv for iv in self.intervals if iv.heading_id == heading_id]
