# cycle_sim_config.py
from pathlib import Path
from dataclasses import dataclass, asdict

from cycle_sim_types import BlastPolicy, Scenario, ShiftConfig, StageDurations


@dataclass
class Config:
    out_dir: Path = Path("cycle_sim_outputs")

    # Simulation settings
    horizon_days: float | None = None     # overrides the scenario horizon when set
    record_timeline: bool = True

    # Output settings
    write_csvs: bool = True

    # Progress logging granularity
    progress_step_pct: int = 10

config = Config()
run_settings = asdict(config)


def default_scenario() -> Scenario:
    """Two-heading baseline: 12 h shifts, blasting at shift change."""
    return Scenario(
        name="Default development scenario",
        sim_days=30,
        tick_minutes=5,
        headings=2,
        metres_per_round=3.8,
        shift=ShiftConfig(
            workable_minutes=720,
            scheduled_minutes=720,
            blast_policy=BlastPolicy.END_OF_SHIFT,
        ),
        durations=StageDurations(drill=180, charge=60, muck=240),
    )
