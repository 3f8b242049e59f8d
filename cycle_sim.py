import sys
import os
import json
import time
from pathlib import Path

# Check if quiet mode is enabled (for batch runs and tests)
QUIET_MODE = os.environ.get('SIM_QUIET_MODE', 'false').lower() == 'true'

def log(msg):
    """Print message only if not in quiet mode."""
    if not QUIET_MODE:
        print(msg)

from cycle_sim_config import config, run_settings, default_scenario
from cycle_sim_core import simulate_detailed
from cycle_sim_data_ingest import normalize_scenario
from cycle_sim_errors import SimulationError
from cycle_sim_kpi import kpis_to_dict
from cycle_sim_types import RunOptions, Scenario

from cycle_sim_report_data import build_report_frames
from cycle_sim_report_csv import write_csv_outputs


def _env_settings() -> dict:
    """Settings overrides taken from SIM_* environment variables."""
    settings = {}
    if 'SIM_HORIZON_DAYS' in os.environ:
        try:
            settings['horizon_days'] = float(os.environ['SIM_HORIZON_DAYS'])
        except ValueError:
            log(f"  [WARNING] Ignoring SIM_HORIZON_DAYS={os.environ['SIM_HORIZON_DAYS']!r}")
    if 'SIM_RECORD_TIMELINE' in os.environ:
        settings['record_timeline'] = os.environ['SIM_RECORD_TIMELINE'].lower() == 'true'
    if 'SIM_OUT_DIR' in os.environ:
        settings['out_dir'] = Path(os.environ['SIM_OUT_DIR'])
    return settings


def load_scenario_file(path) -> dict:
    """Read a JSON scenario payload for the adapter."""
    with open(path, 'r') as f:
        return json.load(f)


def run_simulation(scenario=None, artifacts='full', settings_override=None, options=None):
    """
    Run one scenario and return results.

    Args:
        scenario: Scenario, raw payload dict (normalised by the adapter) or None for the default scenario
        artifacts: 'full' to write CSV outputs, 'kpi_only' to skip file generation
        settings_override: Optional dict to override settings
        options: Optional legacy options dict passed to the adapter (e.g. hoursPerShift)

    Returns:
        dict with 'success', 'kpis', and on success the 'result' object
    """
    total_start = time.time()

    settings = dict(run_settings)
    settings.update(_env_settings())
    if settings_override:
        settings.update(settings_override)

    try:
        if scenario is None:
            scenario = default_scenario()
        elif not isinstance(scenario, Scenario):
            scenario = normalize_scenario(scenario, options)

        log(f"Starting simulation: {scenario.name}")
        run_options = RunOptions(
            horizon_days=settings.get('horizon_days'),
            record_timeline=bool(settings.get('record_timeline')) and artifacts == 'full',
        )
        result = simulate_detailed(scenario, run_options, settings=settings)
    except SimulationError as e:
        log(f"\n[ERROR] {e}")
        return {'success': False, 'error': str(e), 'kpis': {}}

    sim_elapsed = time.time() - total_start
    log(f"\nSimulation completed in {sim_elapsed:.1f}s")

    kpis = kpis_to_dict(result.kpis)

    log("\n=== Development Summary ===")
    log(f"  Rounds:      {kpis['rounds_completed_total']} ({kpis['rounds_per_day_total']:.2f}/day)")
    log(f"  Advance:     {kpis['metres_advanced_total']:.1f} m ({kpis['metres_per_day_total']:.2f} m/day)")
    log(f"  Utilization: {kpis['heading_utilization'] * 100:.1f}%")

    # Generate reports only if artifacts='full'
    if artifacts == 'full' and settings.get('write_csvs', True):
        step_start = time.time()
        out_dir = Path(settings.get('out_dir', config.out_dir))
        report_data = build_report_frames(result, shifts_per_day=scenario.shift.per_day())
        write_csv_outputs(result, out_dir, report_data)
        log(f"\nReports generated in {time.time() - step_start:.1f}s")
        log(f"All complete! Check '{out_dir}' for results.")

    return {'success': True, 'kpis': kpis, 'result': result}


def main():
    scenario = None
    if len(sys.argv) > 1:
        scenario = load_scenario_file(sys.argv[1])

    # Check if running in KPI-only mode
    kpi_only = os.environ.get('SIM_KPI_ONLY', 'false').lower() == 'true'
    artifacts = 'kpi_only' if kpi_only else 'full'

    result = run_simulation(scenario, artifacts=artifacts)

    if not result['success']:
        log(f"\n[ERROR] Simulation failed: {result.get('error', 'Unknown error')}")
        sys.exit(1)


if __name__ == "__main__":
    main()
