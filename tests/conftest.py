import os

# Mute progress printing before any simulation module reads it.
os.environ['SIM_QUIET_MODE'] = 'true'

import pytest

from cycle_sim_types import BlastPolicy, Scenario, ShiftConfig, StageDurations


def make_scenario(policy=BlastPolicy.IMMEDIATE, **overrides) -> Scenario:
    """One heading, 180/60/240 min stages, three 480-minute shifts a day, one day."""
    fields = dict(
        name="baseline",
        sim_days=1,
        tick_minutes=5,
        headings=1,
        metres_per_round=3,
        shift=ShiftConfig(workable_minutes=480, scheduled_minutes=480, blast_policy=policy),
        durations=StageDurations(drill=180, charge=60, muck=240),
    )
    fields.update(overrides)
    return Scenario(**fields)


@pytest.fixture
def baseline():
    return make_scenario()


@pytest.fixture
def baseline_end_of_shift():
    return make_scenario(BlastPolicy.END_OF_SHIFT)
