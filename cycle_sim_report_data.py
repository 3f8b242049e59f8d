import pandas as pd
import duckdb

from cycle_sim_calendar import shift_markers
from cycle_sim_kpi import kpis_to_dict
from cycle_sim_types import SimulationResult

TIMELINE_COLUMNS = [
    "heading_id", "stage", "start_min", "end_min", "duration_min",
    "resource_kind", "resource_unit", "waiting_resource_kind",
]


def timeline_frame(result: SimulationResult) -> pd.DataFrame:
    """Recorded stage intervals as a DataFrame, one row per interval."""
    rows = [
        (
            iv.heading_id,
            iv.stage.value,
            iv.start_min,
            iv.end_min,
            iv.duration_min,
            iv.resource_kind.value if iv.resource_kind is not None else None,
            iv.resource_unit,
            iv.waiting_resource_kind.value if iv.waiting_resource_kind is not None else None,
        )
        for iv in result.intervals
    ]
    return pd.DataFrame.from_records(rows, columns=TIMELINE_COLUMNS)


def build_report_frames(result: SimulationResult, shifts_per_day: int = None) -> dict:
    """
    Build all report dataframes once from a simulation result.
    Returns a dict with precomputed DataFrames for CSV output.
    Uses duckdb for the per-heading aggregation.
    """
    frames = {}
    kpis = kpis_to_dict(result.kpis)

    # 1. Scalar KPIs (per-heading lists and dicts go to their own frames)
    scalar = {k: v for k, v in kpis.items() if not isinstance(v, (list, dict))}
    frames["df_kpis"] = pd.DataFrame([scalar])

    # 2. Timeline
    df_timeline = timeline_frame(result)
    frames["df_timeline"] = df_timeline

    # 3. Stage breakdown per heading
    if not df_timeline.empty:
        frames["df_stage_breakdown"] = duckdb.query("""
            SELECT
                heading_id,
                stage,
                SUM(duration_min) AS minutes,
                COUNT(*) AS intervals,
                ROUND(100.0 * SUM(duration_min) / SUM(SUM(duration_min)) OVER (PARTITION BY heading_id), 2) AS pct
            FROM df_timeline
            GROUP BY heading_id, stage
            ORDER BY heading_id, minutes DESC
        """).df()
    else:
        # No recorded timeline: fall back to the totals kept on the KPI record.
        df_stage = pd.DataFrame(list(kpis["stage_minutes"].items()), columns=["stage", "minutes"])
        frames["df_stage_breakdown"] = df_stage[df_stage["minutes"] > 0].reset_index(drop=True)

    # 4. Per heading output
    frames["df_headings"] = pd.DataFrame({
        "heading_id": [f"H{i + 1}" for i in range(len(kpis["rounds_by_heading"]))],
        "rounds": kpis["rounds_by_heading"],
        "metres": kpis["metres_by_heading"],
        "busy_min": kpis["busy_minutes_by_heading"],
    })

    # 5. Resource utilisation
    frames["df_resources"] = pd.DataFrame(
        list(kpis["resource_utilization"].items()), columns=["resource_kind", "utilization"]
    )

    if shifts_per_day:
        frames["shift_markers"] = shift_markers(result.sim_minutes, shifts_per_day)
    return frames
