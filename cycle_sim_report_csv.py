import duckdb
from pathlib import Path
import os
import time

from cycle_sim_report_data import build_report_frames
from cycle_sim_types import SimulationResult

QUIET_MODE = os.environ.get('SIM_QUIET_MODE', 'false').lower() == 'true'

OUTPUT_FILES = {
    "df_kpis": "cycle_sim_outputs_kpis.csv",
    "df_timeline": "cycle_sim_outputs_timeline.csv",
    "df_stage_breakdown": "cycle_sim_outputs_stage_breakdown.csv",
}


def log(msg):
    if not QUIET_MODE:
        print(msg)


def _safe_duckdb_copy(df, file_path: Path) -> Path:
    """
    Copy a DataFrame to CSV using DuckDB.
    If the file is locked, writes to a timestamped fallback path instead.
    Returns the path actually written.
    """
    if file_path.exists():
        try:
            file_path.unlink()
        except OSError:
            timestamp = int(time.time())
            file_path = file_path.parent / f"{file_path.stem}_{timestamp}{file_path.suffix}"
            log(f"  [WARN] File locked. Writing to fallback: {file_path.name}")

    target_path = str(file_path).replace('\\', '/').replace("'", "''")
    duckdb.query(f"COPY df TO '{target_path}' (HEADER, DELIMITER ',')")
    return file_path


def write_csv_outputs(result: SimulationResult, out_dir: Path, report_data: dict = None) -> dict:
    """
    Write the KPI, timeline and stage-breakdown CSVs into out_dir.
    Returns {frame name: written path}. The timeline file is skipped when no
    timeline was recorded.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_data = report_data or build_report_frames(result)

    written = {}
    for key, file_name in OUTPUT_FILES.items():
        df = report_data.get(key)
        if df is None or df.empty:
            continue
        written[key] = _safe_duckdb_copy(df, out_dir / file_name)
    return written
