# cycle_sim_kpi.py
from __future__ import annotations
from typing import Dict, List
import pandas as pd

from cycle_sim_resources import ResourcePool
from cycle_sim_types import HeadingState, KpiRecord, Scenario, Stage


def heading_frame(headings: List[HeadingState]) -> pd.DataFrame:
    """One row per heading with its final counters."""
    cols = ["heading_id", "stage", "rounds", "metres", "busy_min"]
    rows = [(h.heading_id, h.stage.value, h.rounds_completed, h.metres_advanced, h.busy_min) for h in headings]
    return pd.DataFrame.from_records(rows, columns=cols)


def compute_kpis(headings: List[HeadingState], scenario: Scenario, sim_minutes: int,
                 pool: ResourcePool, stage_minutes: Dict[Stage, int], blasts: int = 0) -> KpiRecord:
    df = heading_frame(headings)
    n = len(headings)
    sim_days = scenario.sim_days

    rounds_total = int(df["rounds"].sum()) if n else 0
    # Metres derive from rounds so total == rounds * metres_per_round exactly.
    metres_total = rounds_total * scenario.metres_per_round

    if sim_minutes > 0 and n:
        util = (df["busy_min"] / sim_minutes).clip(lower=0.0, upper=1.0)
        heading_util = float(min(1.0, max(0.0, util.mean())))
    else:
        heading_util = 0.0

    rounds_per_heading = rounds_total / n if n else 0.0
    metres_per_heading = metres_total / n if n else 0.0

    return KpiRecord(
        sim_days=sim_days,
        sim_minutes=sim_minutes,
        rounds_completed_total=rounds_total,
        rounds_completed_per_heading=rounds_per_heading,
        metres_advanced_total=metres_total,
        metres_advanced_per_heading=metres_per_heading,
        rounds_per_day_total=rounds_total / sim_days,
        metres_per_day_total=metres_total / sim_days,
        rounds_per_heading_per_day=rounds_per_heading / sim_days,
        metres_per_heading_per_day=metres_per_heading / sim_days,
        heading_utilization=heading_util,
        blasts_total=blasts,
        rounds_by_heading=tuple(int(r) for r in df["rounds"]),
        metres_by_heading=tuple(int(r) * scenario.metres_per_round for r in df["rounds"]),
        busy_minutes_by_heading=tuple(int(b) for b in df["busy_min"]),
        resource_utilization=pool.utilization(sim_minutes),
        stage_minutes={stage.value: int(m) for stage, m in stage_minutes.items()},
    )


def kpis_to_dict(kpis: KpiRecord) -> dict:
    """Flat, JSON-friendly KPI mapping for runners and reports."""
    return {
        'sim_days': kpis.sim_days,
        'sim_minutes': kpis.sim_minutes,
        'rounds_completed_total': kpis.rounds_completed_total,
        'rounds_completed_per_heading': kpis.rounds_completed_per_heading,
        'metres_advanced_total': kpis.metres_advanced_total,
        'metres_advanced_per_heading': kpis.metres_advanced_per_heading,
        'rounds_per_day_total': kpis.rounds_per_day_total,
        'metres_per_day_total': kpis.metres_per_day_total,
        'rounds_per_heading_per_day': kpis.rounds_per_heading_per_day,
        'metres_per_heading_per_day': kpis.metres_per_heading_per_day,
        'heading_utilization': kpis.heading_utilization,
        'blasts_total': kpis.blasts_total,
        'rounds_by_heading': list(kpis.rounds_by_heading),
        'metres_by_heading': list(kpis.metres_by_heading),
        'busy_minutes_by_heading': list(kpis.busy_minutes_by_heading),
        'resource_utilization': dict(kpis.resource_utilization),
        'stage_minutes': dict(kpis.stage_minutes),
    }
